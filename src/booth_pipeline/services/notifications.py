"""Guest result notifications."""

import logging
from dataclasses import dataclass
from html import escape
from typing import Protocol

from booth_pipeline.domain.errors import ValidationError
from booth_pipeline.domain.jobs import JobRecord, JobStatus, MediaFormat
from booth_pipeline.domain.notifications import NotificationTask
from booth_pipeline.services.jobs import JobService

logger = logging.getLogger(__name__)

VIEW_AND_DOWNLOAD = "View & Download"
WATCH_VIDEO = "Watch Your Video"


class NotificationQueue(Protocol):
    """Outbox consumed by the mail sender."""

    def enqueue(self, project_id: str, task: NotificationTask) -> None:
        """Queue a composed notification."""


@dataclass
class NotificationComposer:
    """Builds format-specific notification content for a finished job."""

    result_page_base_url: str
    placeholder_image_url: str
    subject: str = "Your photo booth result is ready"

    def result_page_url(self, job: JobRecord) -> str:
        base = self.result_page_base_url.rstrip("/")
        return f"{base}/projects/{job.project_id}/sessions/{job.session_id}/result"

    def compose(self, job: JobRecord, recipient: str) -> NotificationTask:
        if job.output is None:
            raise ValidationError(f"Job {job.id} has no output")
        output = job.output
        page_url = self.result_page_url(job)
        if output.format == MediaFormat.VIDEO:
            # Video is never embedded; the visual is a still linking to the page.
            visual = output.thumbnail_url or self.placeholder_image_url
            action_label, action_url = WATCH_VIDEO, page_url
        else:
            visual = output.url
            action_label, action_url = VIEW_AND_DOWNLOAD, output.url
        return NotificationTask(
            job_id=job.id,
            recipient=recipient,
            format=output.format,
            subject=self.subject,
            html=_render_html(visual, action_label, action_url),
            action_label=action_label,
            action_url=action_url,
            thumbnail_url=output.thumbnail_url,
            result_page_url=page_url,
            result_media_url=output.url,
        )


def _render_html(visual_url: str, action_label: str, action_url: str) -> str:
    return (
        '<div style="text-align:center;font-family:sans-serif">'
        f'<a href="{escape(action_url)}">'
        f'<img src="{escape(visual_url)}" alt="Your result" '
        'style="max-width:100%;border-radius:8px"/></a>'
        f'<p><a href="{escape(action_url)}" '
        'style="display:inline-block;padding:12px 24px;background:#111;'
        f'color:#fff;text-decoration:none;border-radius:6px">'
        f"{escape(action_label)}</a></p>"
        "</div>"
    )


@dataclass
class NotificationService:
    """Composes and queues a result notification for a guest."""

    job_service: JobService
    composer: NotificationComposer
    queue: NotificationQueue

    def notify(self, project_id: str, job_id: str, recipient: str) -> NotificationTask:
        if "@" not in recipient:
            raise ValidationError("Recipient must be an email address")
        job = self.job_service.get_job(project_id, job_id)
        if job is None:
            raise ValidationError(f"Job {job_id} not found")
        if job.status != JobStatus.COMPLETED:
            raise ValidationError(f"Job {job_id} is not completed")
        task = self.composer.compose(job, recipient)
        self.queue.enqueue(project_id, task)
        logger.info(
            "Notification queued",
            extra={"job_id": job_id, "format": task.format.value},
        )
        return task
