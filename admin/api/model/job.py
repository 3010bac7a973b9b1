"""잡 API 요청/응답 모델 정의"""

from typing import Any

from pydantic import BaseModel, Field

from admin.api.model.common import Pagination
from worker.model.job import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    Job,
    JobOptions,
    JobPayload,
    JobStats,
)


class JobCreateRequest(BaseModel):
    """잡 생성 요청 (미지정 옵션은 기본값 적용)"""
    type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = None
    priority: int | None = Field(default=None, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    delay_seconds: float | None = Field(default=None, ge=0)
    max_retries: int | None = Field(default=None, ge=0)
    timeout_seconds: float | None = Field(default=None, gt=0)
    tags: list[str] | None = None

    def to_payload(self) -> JobPayload:
        return JobPayload(type=self.type, data=self.data, metadata=self.metadata)

    def to_options(self) -> JobOptions:
        options = self.model_dump(
            include={"priority", "delay_seconds", "max_retries", "timeout_seconds", "tags"},
            exclude_none=True,
        )
        return JobOptions(**options)


class JobListResponse(BaseModel):
    """잡 목록 응답"""
    jobs: list[Job]
    stats: JobStats
    pagination: Pagination


class ProgressRequest(BaseModel):
    """진행률 갱신 요청"""
    progress: float


class ProcessorConfigRequest(BaseModel):
    """스케줄러 설정 변경 요청"""
    max_concurrent_jobs: int | None = Field(default=None, ge=1, le=100)
    poll_interval_seconds: float | None = Field(default=None, gt=0, le=600)
