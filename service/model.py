"""
JobService 설정 모델

config/service.yaml 구조:
    store:    Key/Value 저장소 (memory | sqlite)
    worker:   스케줄러 설정
    handlers: 내장 핸들러 생성자 인자
    logging:  로깅 설정
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from store.job_store import DEFAULT_TTL_SECONDS


class StoreConfig(BaseModel):
    """저장소 설정"""
    backend: Literal["memory", "sqlite"] = "memory"
    name: str = Field(default="default", description="저장소 이름 (로그 식별용)")
    path: str = Field(default="./data/jobq.db", description="sqlite 파일 경로")
    ttl_seconds: int = Field(default=DEFAULT_TTL_SECONDS, ge=60)
    options: dict[str, Any] = Field(default_factory=dict, description="sqlite PRAGMA 옵션")


class WorkerSettings(BaseModel):
    """스케줄러 설정"""
    max_concurrent_jobs: int = Field(default=5, ge=1, le=100)
    poll_interval_seconds: float = Field(default=5.0, gt=0, le=600)
    shutdown_timeout_seconds: float = Field(default=30.0, ge=0)


class LoggingSettings(BaseModel):
    """로깅 설정"""
    level: str = "INFO"
    json_format: bool = True
    log_file: str | None = None


class ServiceConfig(BaseModel):
    """JobService 전체 설정"""
    store: StoreConfig = Field(default_factory=StoreConfig)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    handlers: dict[str, dict[str, Any]] = Field(default_factory=dict)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
