"""Supabase-backed notification outbox."""

from dataclasses import dataclass

from supabase import Client

from booth_pipeline.domain.notifications import NotificationTask
from booth_pipeline.services.notifications import NotificationQueue


@dataclass
class SupabaseNotificationQueue(NotificationQueue):
    """Queues composed notifications for the mail sender."""

    client: Client

    def enqueue(self, project_id: str, task: NotificationTask) -> None:
        """Insert a queued notification row."""
        (
            self.client.table("notification_tasks")
            .insert(
                {
                    "project_id": project_id,
                    "job_id": task.job_id,
                    "recipient": task.recipient,
                    "status": "queued",
                    "payload": task.to_dict(),
                }
            )
            .execute()
        )
