"""
이메일 알림 핸들러

data 예시:
{
    "to": "user@example.com",
    "subject": "Invoice ready",
    "body": "..."
}
"""

import asyncio
import logging

from pydantic import BaseModel, Field, ValidationError

from worker.base import BaseHandler, handler
from worker.model.handler import NotificationResult
from worker.model.job import Job, JobPayload, utcnow

logger = logging.getLogger(__name__)


class EmailNotificationData(BaseModel):
    """이메일 알림 필수 필드"""
    to: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)


@handler("email_notification")
class EmailNotificationHandler(BaseHandler):
    """이메일 발송 (발송 자체는 외부 협력자, 여기서는 지연만 시뮬레이션)"""

    def __init__(self, work_seconds: float = 2.0, estimated_seconds: float = 5.0):
        self._work_seconds = work_seconds
        self._estimated_seconds = estimated_seconds

    async def validate(self, payload: JobPayload) -> bool:
        try:
            EmailNotificationData.model_validate(payload.data)
        except ValidationError as e:
            logger.debug(f"Invalid email_notification payload: {e.error_count()} error(s)")
            return False
        return True

    async def execute(self, payload: JobPayload, job: Job) -> NotificationResult:
        data = EmailNotificationData.model_validate(payload.data)
        logger.info(f"Sending email to {data.to}: {data.subject}")

        await asyncio.sleep(self._work_seconds)

        return NotificationResult(
            sent=True,
            to=data.to,
            subject=data.subject,
            timestamp=utcnow(),
        )

    def estimate_duration(self, payload: JobPayload) -> float:
        return self._estimated_seconds
