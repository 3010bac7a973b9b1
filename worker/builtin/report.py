"""리포트 생성 핸들러"""

import asyncio
import logging
import uuid
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from worker.base import BaseHandler, handler
from worker.model.handler import ReportResult
from worker.model.job import Job, JobPayload, utcnow

logger = logging.getLogger(__name__)


class ReportRequest(BaseModel):
    """리포트 생성 필수 필드"""
    model_config = ConfigDict(extra='allow')

    type: str = Field(min_length=1)
    user_id: Annotated[str, Field(min_length=1)] | int


@handler("report_generation")
class ReportGenerationHandler(BaseHandler):
    """리포트 생성 후 다운로드 경로 반환"""

    def __init__(self, work_seconds: float = 5.0, estimated_seconds: float = 30.0):
        self._work_seconds = work_seconds
        self._estimated_seconds = estimated_seconds

    async def validate(self, payload: JobPayload) -> bool:
        try:
            ReportRequest.model_validate(payload.data)
        except ValidationError:
            return False
        return True

    async def execute(self, payload: JobPayload, job: Job) -> ReportResult:
        request = ReportRequest.model_validate(payload.data)
        logger.info(f"Generating {request.type} report for user {request.user_id}")

        await asyncio.sleep(self._work_seconds)

        report_id = str(uuid.uuid4())
        return ReportResult(
            report_id=report_id,
            type=request.type,
            user_id=str(request.user_id),
            generated_at=utcnow(),
            download_url=f"/api/reports/{report_id}/download",
        )

    def estimate_duration(self, payload: JobPayload) -> float:
        return self._estimated_seconds
