"""
JobService: 잡 큐 공개 API

잡 생성/조회/재시도/취소/삭제와 스케줄러 시작/중지/설정을 제공합니다.

사용 예시:
    service = JobService(JobStore(MemoryStore()))
    job = await service.create_job(
        JobPayload(type="email_notification", data={"to": "a@b.c", "subject": "hi", "body": "..."}),
        JobOptions(priority=5),
    )
    await service.start()
"""

import inspect
import logging
from datetime import datetime, timezone
from typing import Any

from service.exception import InvalidPayloadError, InvalidStateError, JobNotFoundError
from service.model import ServiceConfig
from store.base import BaseKeyValueStore
from store.job_store import JobStore
from store.memory import MemoryStore
from store.sqlite3 import SQLiteStore
from worker.base import HandlerRegistry, JobHandler
from worker.executor import Executor
from worker.main import Scheduler, SchedulerConfig
from worker.model.job import (
    Job,
    JobFilter,
    JobOptions,
    JobPayload,
    JobStats,
    JobStatus,
    ProcessorStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

# update_job 으로 바꿀 수 없는 필드
_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class JobService:
    """잡 큐 서비스 (공개 API)"""

    def __init__(
        self,
        job_store: JobStore,
        registry: HandlerRegistry | None = None,
        config: SchedulerConfig | None = None,
    ):
        self._job_store = job_store
        self._registry = registry if registry is not None else HandlerRegistry.with_builtin()
        self._executor = Executor(job_store, self._registry)
        self._scheduler = Scheduler(job_store, self._executor, config)

    @classmethod
    async def from_config(cls, config: ServiceConfig | dict[str, Any]) -> "JobService":
        """설정으로 저장소/레지스트리/스케줄러를 구성"""
        config = ServiceConfig.model_validate(config)

        kv: BaseKeyValueStore
        if config.store.backend == "sqlite":
            kv = await SQLiteStore.create(
                config.store.name,
                {"path": config.store.path, "options": config.store.options},
            )
        else:
            kv = MemoryStore(config.store.name)

        return cls(
            JobStore(kv, ttl_seconds=config.store.ttl_seconds),
            HandlerRegistry.with_builtin(config.handlers),
            SchedulerConfig(**config.worker.model_dump()),
        )

    @property
    def job_store(self) -> JobStore:
        return self._job_store

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    # ============================================================
    # 핸들러
    # ============================================================

    def register_handler(self, job_type: str, job_handler: JobHandler) -> None:
        """핸들러 등록 (같은 type 은 마지막 등록이 유효)"""
        self._registry.register(job_type, job_handler)

    def estimate_duration(self, payload: JobPayload | dict[str, Any]) -> float | None:
        """핸들러의 예상 실행 시간(초), 참고용"""
        payload = JobPayload.model_validate(payload)
        job_handler = self._registry.resolve(payload.type)
        estimate = getattr(job_handler, "estimate_duration", None)
        return estimate(payload) if estimate is not None else None

    # ============================================================
    # 잡 생명주기
    # ============================================================

    async def create_job(
        self,
        payload: JobPayload | dict[str, Any],
        options: JobOptions | dict[str, Any] | None = None,
    ) -> Job:
        """
        잡 생성

        Raises:
            InvalidPayloadError: 핸들러 validate 가 False 를 반환
        """
        payload = JobPayload.model_validate(payload)
        options = JobOptions.model_validate(options or {})

        job_handler = self._registry.resolve(payload.type)
        if job_handler is None:
            logger.warning(f"No handler registered for job type: {payload.type}")
        elif not await _call_validate(job_handler, payload):
            raise InvalidPayloadError(payload.type)

        job = Job.create(payload, options)
        await self._job_store.save(job)
        logger.info(
            f"Job created: id={job.id}, type={job.type}, priority={job.priority}, "
            f"scheduled_at={job.scheduled_at.isoformat()}"
        )
        return job

    async def get_job(self, job_id: str) -> Job | None:
        """id로 잡 조회"""
        return await self._job_store.get(job_id)

    async def update_job(self, job_id: str, **fields: Any) -> Job:
        """
        잡 필드 병합 (status / priority 변경 시 인덱스 재작성)

        Raises:
            JobNotFoundError: 잡이 없음
            ValueError: 알 수 없거나 변경 불가한 필드
        """
        invalid = set(fields) - (set(Job.model_fields) - _IMMUTABLE_FIELDS)
        if invalid:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(invalid))}")

        updated = await self._job_store.update(job_id, **fields)
        if updated is None:
            raise JobNotFoundError(job_id)
        return updated

    async def get_jobs(self, job_filter: JobFilter | dict[str, Any] | None = None) -> list[Job]:
        """
        필터 조건으로 잡 목록 조회 (created_at 내림차순)

        status 미지정 시 모든 상태 x 우선순위 버킷을 스캔합니다.
        """
        job_filter = JobFilter.model_validate(job_filter or {})
        statuses = [job_filter.status] if job_filter.status else None
        jobs = await self._job_store.scan(statuses)

        if job_filter.type:
            jobs = [job for job in jobs if job.type == job_filter.type]
        if job_filter.tags:
            wanted = set(job_filter.tags)
            jobs = [job for job in jobs if wanted.intersection(job.tags)]
        if job_filter.start_date:
            start = _as_utc(job_filter.start_date)
            jobs = [job for job in jobs if job.created_at >= start]
        if job_filter.end_date:
            end = _as_utc(job_filter.end_date)
            jobs = [job for job in jobs if job.created_at <= end]

        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs[job_filter.offset:job_filter.offset + job_filter.limit]

    async def get_job_stats(self) -> JobStats:
        """상태별 잡 수"""
        counts = await self._job_store.count_by_status()
        return JobStats(
            total=sum(counts.values()),
            **{status.value: count for status, count in counts.items()},
        )

    async def retry_job(self, job_id: str) -> Job:
        """
        실패한 잡 재시도 (FAILED -> PENDING)

        Raises:
            JobNotFoundError: 잡이 없음
            InvalidStateError: FAILED 가 아님
        """
        job = await self._require(job_id)
        if job.status != JobStatus.FAILED:
            raise InvalidStateError(job_id, "retry", job.status.value)

        updated = await self._job_store.update(
            job_id,
            expected_status=JobStatus.FAILED,
            status=JobStatus.PENDING,
            scheduled_at=max(utcnow(), job.created_at),
            attempts=0,
            error=None,
            result=None,
            progress=None,
            completed_at=None,
        )
        if updated is None:
            raise InvalidStateError(job_id, "retry", await self._current_status(job_id))

        logger.info(f"Retried job: id={job_id}")
        return updated

    async def cancel_job(self, job_id: str) -> Job:
        """
        잡 취소

        실행 중인 잡은 중단하지 않고 레코드만 CANCELLED 로 표시합니다.

        Raises:
            JobNotFoundError: 잡이 없음
            InvalidStateError: 이미 COMPLETED / CANCELLED
        """
        job = await self._require(job_id)
        if job.status in (JobStatus.COMPLETED, JobStatus.CANCELLED):
            raise InvalidStateError(job_id, "cancel", job.status.value)

        updated = await self._job_store.update(
            job_id,
            expected_status=job.status,
            status=JobStatus.CANCELLED,
            completed_at=utcnow(),
        )
        if updated is None:
            raise InvalidStateError(job_id, "cancel", await self._current_status(job_id))

        if job.status == JobStatus.PROCESSING:
            logger.info(f"Cancelled job while processing (attempt keeps running): id={job_id}")
        else:
            logger.info(f"Cancelled job: id={job_id}, previous_status={job.status.value}")
        return updated

    async def delete_job(self, job_id: str) -> None:
        """잡 삭제 (없으면 무시)"""
        if await self._job_store.delete(job_id):
            logger.info(f"Deleted job: id={job_id}")

    async def update_job_progress(self, job_id: str, progress: float) -> Job | None:
        """
        진행률 갱신 (0~100으로 보정)

        PROCESSING 상태가 아니면 무시하고 None 반환.
        """
        clamped = int(max(0, min(100, progress)))
        job = await self._job_store.get(job_id)
        if job is None or job.status != JobStatus.PROCESSING:
            logger.debug(f"Ignoring progress update: id={job_id}")
            return None
        return await self._job_store.update(
            job_id,
            expected_status=JobStatus.PROCESSING,
            progress=clamped,
        )

    # ============================================================
    # 스케줄러
    # ============================================================

    async def start(self) -> None:
        await self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()

    async def shutdown(self) -> None:
        """스케줄러 graceful shutdown 후 저장소 연결 해제"""
        await self._scheduler.shutdown()
        await self._job_store.kv.close()

    async def configure(
        self,
        max_concurrent_jobs: int | None = None,
        poll_interval_seconds: float | None = None,
    ) -> None:
        await self._scheduler.configure(
            max_concurrent_jobs=max_concurrent_jobs,
            poll_interval_seconds=poll_interval_seconds,
        )

    def get_processor_status(self) -> ProcessorStatus:
        config = self._scheduler.config
        return ProcessorStatus(
            is_running=self._scheduler.is_running,
            in_flight_count=self._scheduler.in_flight_count,
            max_concurrent_jobs=config.max_concurrent_jobs,
            poll_interval_seconds=config.poll_interval_seconds,
            registered_types=self._registry.names(),
        )

    async def _require(self, job_id: str) -> Job:
        job = await self._job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def _current_status(self, job_id: str) -> str:
        job = await self._job_store.get(job_id)
        return job.status.value if job else "deleted"


async def _call_validate(job_handler: JobHandler, payload: JobPayload) -> bool:
    """validate 는 선택 사항이며 sync / async 모두 허용"""
    validate = getattr(job_handler, "validate", None)
    if validate is None:
        return True
    is_valid = validate(payload)
    if inspect.isawaitable(is_valid):
        is_valid = await is_valid
    return bool(is_valid)


def _as_utc(value: datetime) -> datetime:
    """naive datetime 은 UTC 로 간주"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
