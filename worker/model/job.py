"""
잡 레코드 및 관련 모델 정의
"""

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_PRIORITY = 0
MAX_PRIORITY = 10

DEFAULT_PRIORITY = 0
DEFAULT_DELAY_SECONDS = 0
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 300


def utcnow() -> datetime:
    """현재 UTC 시각"""
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """잡 상태"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ErrorCode(str, Enum):
    """에러 코드"""
    INVALID_PAYLOAD = "InvalidPayload"
    NO_HANDLER = "NoHandler"
    TIMEOUT = "Timeout"
    HANDLER_ERROR = "HandlerError"
    MAX_RETRIES_EXCEEDED = "MaxRetriesExceeded"
    INVALID_STATE = "InvalidState"
    NOT_FOUND = "NotFound"


class JobError(BaseModel):
    """마지막 실패 정보"""
    message: str
    stack: str | None = None
    code: ErrorCode | None = None


class JobPayload(BaseModel):
    """핸들러에 전달되는 페이로드"""
    type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = None


class JobOptions(BaseModel):
    """잡 생성 옵션 (미지정 시 기본값 적용)"""
    priority: int = Field(default=DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    delay_seconds: float = Field(default=DEFAULT_DELAY_SECONDS, ge=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    tags: list[str] = Field(default_factory=list)

    @field_validator('tags')
    @classmethod
    def _unique_tags(cls, tags: list[str]) -> list[str]:
        # 순서 유지 중복 제거
        return list(dict.fromkeys(tags))


class Job(BaseModel):
    """잡 레코드"""
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = None

    priority: int = Field(default=DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    tags: list[str] = Field(default_factory=list)

    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    scheduled_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: JobError | None = None
    result: Any = None
    progress: int | None = Field(default=None, ge=0, le=100)

    @classmethod
    def create(cls, payload: JobPayload, options: JobOptions | None = None) -> "Job":
        """페이로드와 옵션으로 신규 PENDING 잡 생성"""
        options = options or JobOptions()
        now = utcnow()
        return cls(
            type=payload.type,
            data=payload.data,
            metadata=payload.metadata,
            priority=options.priority,
            delay_seconds=options.delay_seconds,
            max_retries=options.max_retries,
            timeout_seconds=options.timeout_seconds,
            tags=options.tags,
            status=JobStatus.PENDING,
            attempts=0,
            created_at=now,
            scheduled_at=now + timedelta(seconds=options.delay_seconds),
        )

    @property
    def payload(self) -> JobPayload:
        return JobPayload(type=self.type, data=self.data, metadata=self.metadata)

    def is_eligible(self, now: datetime | None = None) -> bool:
        """PENDING 이고 scheduled_at 이 지났으면 실행 가능"""
        now = now or utcnow()
        return self.status == JobStatus.PENDING and self.scheduled_at <= now


class JobFilter(BaseModel):
    """잡 목록 조회 필터"""
    status: JobStatus | None = None
    type: str | None = None
    tags: list[str] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)


class JobStats(BaseModel):
    """상태별 잡 수"""
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0


class ProcessorStatus(BaseModel):
    """스케줄러 상태"""
    is_running: bool
    in_flight_count: int
    max_concurrent_jobs: int
    poll_interval_seconds: float
    registered_types: list[str]
