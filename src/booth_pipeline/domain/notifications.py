"""Models for guest result notifications."""

from dataclasses import dataclass

from booth_pipeline.domain.jobs import MediaFormat


@dataclass(frozen=True)
class NotificationTask:
    """A composed notification, ready to be handed to the mail sender."""

    job_id: str
    recipient: str
    format: MediaFormat
    subject: str
    html: str
    action_label: str
    action_url: str
    thumbnail_url: str | None
    result_page_url: str
    result_media_url: str

    def to_dict(self) -> dict[str, object]:
        return {
            "jobId": self.job_id,
            "recipient": self.recipient,
            "format": self.format.value,
            "subject": self.subject,
            "html": self.html,
            "actionLabel": self.action_label,
            "actionUrl": self.action_url,
            "thumbnailUrl": self.thumbnail_url,
            "resultPageUrl": self.result_page_url,
            "resultMediaUrl": self.result_media_url,
        }
