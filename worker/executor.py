"""
잡 실행기 모듈

잡 한 건의 한 번의 시도(attempt)를 담당합니다.
"""

import asyncio
import logging
import traceback
from datetime import timedelta
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

from store.job_store import JobStore
from worker.base import HandlerRegistry
from worker.exception import HandlerNotFoundError, JobTimeoutError
from worker.model.job import ErrorCode, Job, JobError, JobStatus, utcnow

logger = logging.getLogger(__name__)


def backoff_seconds(previous_attempts: int) -> int:
    """재시도 대기 시간 (지터 없는 지수 백오프: 1, 2, 4, ...)"""
    return 2 ** previous_attempts


class Executor:
    """잡 실행기"""

    def __init__(self, job_store: JobStore, registry: HandlerRegistry):
        self._job_store = job_store
        self._registry = registry
        self._in_flight: set[str] = set()

    @property
    def in_flight(self) -> frozenset[str]:
        """실행 중인 잡 id"""
        return frozenset(self._in_flight)

    def is_in_flight(self, job_id: str) -> bool:
        return job_id in self._in_flight

    async def execute(self, job: Job) -> bool:
        """
        잡 1회 실행

        Args:
            job: 실행할 잡 (스케줄러가 조회한 레코드)

        Returns:
            bool: 실행 성공 여부
        """
        if job.id in self._in_flight:
            logger.warning(f"Job already in flight: id={job.id}")
            return False

        self._in_flight.add(job.id)
        try:
            return await self._run_attempt(job)
        finally:
            self._in_flight.discard(job.id)

    async def _run_attempt(self, job: Job) -> bool:
        # 1. PENDING -> PROCESSING (claim)
        claimed = await self._claim(job)
        if claimed is None:
            logger.warning(f"Failed to claim job: id={job.id}")
            return False

        logger.info(
            f"Starting job execution: id={claimed.id}, type={claimed.type}, "
            f"attempt={claimed.attempts}/{claimed.max_retries + 1}"
        )

        # 2. 핸들러 조회 (없으면 재시도 없이 실패)
        try:
            job_handler = self._registry.get(claimed.type)
        except HandlerNotFoundError as e:
            logger.error(f"Handler not found: id={claimed.id}, type={claimed.type}")
            await self._fail_permanently(claimed, JobError(message=e.message, code=ErrorCode.NO_HANDLER))
            return False

        # 3. 핸들러 실행 (타임아웃 적용)
        try:
            result = await asyncio.wait_for(
                job_handler.execute(claimed.payload, claimed),
                timeout=claimed.timeout_seconds
            )
        except asyncio.TimeoutError:
            timeout_error = JobTimeoutError(claimed.id, claimed.timeout_seconds)
            logger.error(f"Job execution timed out: id={claimed.id}, timeout={claimed.timeout_seconds}s")
            await self._fail(claimed, JobError(message=timeout_error.message, code=ErrorCode.TIMEOUT))
            return False
        except Exception as e:
            logger.error(f"Job execution failed: id={claimed.id}, error={e}")
            await self._fail(
                claimed,
                JobError(
                    message=str(e) or type(e).__name__,
                    stack=traceback.format_exc(),
                    code=ErrorCode.HANDLER_ERROR,
                ),
            )
            return False

        # 4. 결과 직렬화 (JSON 불가 결과는 핸들러 실패로 처리)
        try:
            result = _to_jsonable(result)
        except PydanticSerializationError as e:
            logger.error(f"Job result is not serializable: id={claimed.id}, error={e}")
            await self._fail(
                claimed,
                JobError(
                    message=f"Handler result is not JSON serializable: {e}",
                    code=ErrorCode.HANDLER_ERROR,
                ),
            )
            return False

        return await self._complete(claimed, result)

    async def _claim(self, job: Job) -> Job | None:
        """PENDING 상태일 때만 PROCESSING 으로 변경"""
        current = await self._job_store.get(job.id)
        if current is None or current.status != JobStatus.PENDING:
            return None
        return await self._job_store.update(
            job.id,
            expected_status=JobStatus.PENDING,
            status=JobStatus.PROCESSING,
            started_at=utcnow(),
            attempts=current.attempts + 1,
        )

    async def _complete(self, job: Job, result: Any) -> bool:
        """실행 완료 (COMPLETED)"""
        updated = await self._job_store.update(
            job.id,
            expected_status=JobStatus.PROCESSING,
            status=JobStatus.COMPLETED,
            completed_at=utcnow(),
            result=result,
            progress=100,
        )
        if updated is None:
            logger.info(f"Job result discarded (superseded while running): id={job.id}")
            return False

        logger.info(f"Job {job.id} completed successfully")
        return True

    async def _fail(self, job: Job, error: JobError) -> None:
        """실패 처리: 재시도 예산이 남았으면 PENDING 으로 복귀"""
        previous_attempts = job.attempts - 1
        if previous_attempts < job.max_retries:
            delay = backoff_seconds(previous_attempts)
            updated = await self._job_store.update(
                job.id,
                expected_status=JobStatus.PROCESSING,
                status=JobStatus.PENDING,
                scheduled_at=utcnow() + timedelta(seconds=delay),
                error=error,
            )
            if updated is None:
                logger.info(f"Retry skipped (superseded while running): id={job.id}")
                return
            logger.info(
                f"Job {job.id} failed, scheduling retry {job.attempts}/{job.max_retries} in {delay}s"
            )
            return

        await self._fail_permanently(
            job,
            error.model_copy(update={"code": ErrorCode.MAX_RETRIES_EXCEEDED}),
        )

    async def _fail_permanently(self, job: Job, error: JobError) -> None:
        """최종 실패 (FAILED)"""
        updated = await self._job_store.update(
            job.id,
            expected_status=JobStatus.PROCESSING,
            status=JobStatus.FAILED,
            completed_at=utcnow(),
            error=error,
        )
        if updated is None:
            logger.info(f"Failure discarded (superseded while running): id={job.id}")
            return
        logger.error(f"Job {job.id} failed permanently: {error.message} ({error.code.value})")


def _to_jsonable(result: Any) -> Any:
    """
    핸들러 결과를 JSON 호환 값으로 변환 (pydantic 모델, datetime 포함)

    Raises:
        PydanticSerializationError: JSON 으로 표현할 수 없는 값
    """
    return to_jsonable_python(result)
