"""
범용 데이터 처리 핸들러

data 예시:
{
    "operation": "dedupe",
    "data": [1, 2, 2, 3]
}
"""

import asyncio
import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from worker.base import BaseHandler, handler
from worker.model.handler import DataProcessingResult
from worker.model.job import Job, JobPayload, utcnow

logger = logging.getLogger(__name__)


class DataProcessingRequest(BaseModel):
    """데이터 처리 요청"""
    operation: str = Field(min_length=1)
    data: Any = None


@handler("data_processing")
class DataProcessingHandler(BaseHandler):
    """operation 단위 데이터 처리, 처리 건수 반환"""

    def __init__(self, work_seconds: float = 3.0, estimated_seconds: float = 30.0):
        self._work_seconds = work_seconds
        self._estimated_seconds = estimated_seconds

    async def validate(self, payload: JobPayload) -> bool:
        try:
            DataProcessingRequest.model_validate(payload.data)
        except ValidationError:
            return False
        return True

    async def execute(self, payload: JobPayload, job: Job) -> DataProcessingResult:
        request = DataProcessingRequest.model_validate(payload.data)
        logger.info(f"Processing data operation: {request.operation}")

        await asyncio.sleep(self._work_seconds)

        processed = len(request.data) if isinstance(request.data, (list, tuple, dict, str)) else 0
        return DataProcessingResult(
            operation=request.operation,
            processed=processed,
            timestamp=utcnow(),
        )

    def estimate_duration(self, payload: JobPayload) -> float:
        return self._estimated_seconds
