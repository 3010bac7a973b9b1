"""
Scheduler: 잡 폴링/디스패치 모듈

PENDING 버킷을 높은 우선순위부터 폴링하여, 동시 실행 한도 안에서
실행 가능한 잡을 Executor 태스크로 디스패치합니다.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass

from store.job_store import JobStore
from worker.executor import Executor
from worker.model.job import Job

logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    """스케줄러 설정"""
    max_concurrent_jobs: int = 5
    poll_interval_seconds: float = 5.0
    shutdown_timeout_seconds: float = 30.0


class Scheduler:
    """
    잡 스케줄러

    stopped -> running (start), running -> stopped (stop).
    디스패치된 잡은 독립 태스크로 실행되며, 다음 폴링은 완료를 기다리지 않습니다.
    """

    def __init__(self, job_store: JobStore, executor: Executor, config: SchedulerConfig | None = None):
        self._job_store = job_store
        self._executor = executor
        self._config = config or SchedulerConfig()
        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._loop_task: asyncio.Task | None = None
        self._running_tasks: dict[str, asyncio.Task] = {}

    async def start(self) -> None:
        """폴링 루프 시작 (이미 실행 중이면 무시)"""
        if self._running:
            logger.warning("Scheduler is already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._loop_task = asyncio.create_task(self._main_loop(), name="jobq-scheduler")

        logger.info(
            f"Scheduler started (max_concurrent_jobs={self._config.max_concurrent_jobs}, "
            f"poll_interval={self._config.poll_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """폴링 루프 중지 (실행 중인 잡은 계속 진행)"""
        if not self._running:
            return

        logger.info("Stopping Scheduler...")
        self._running = False
        if self._stop_event:
            self._stop_event.set()

        if self._loop_task is not None:
            try:
                await self._loop_task
            except asyncio.CancelledError:
                logger.info("Scheduler loop cancelled")
            self._loop_task = None
        logger.info("Scheduler stopped")

    async def shutdown(self) -> None:
        """graceful shutdown: 루프 중지 후 실행 중인 잡 완료 대기"""
        await self.stop()
        await self._wait_running_tasks()

    async def configure(
        self,
        max_concurrent_jobs: int | None = None,
        poll_interval_seconds: float | None = None,
    ) -> None:
        """
        실행 중 설정 변경

        poll_interval 변경 시 실행 중이면 폴링 루프만 재시작합니다 (실행 중인 잡 유지).
        """
        if max_concurrent_jobs is not None:
            if max_concurrent_jobs < 1:
                raise ValueError("max_concurrent_jobs must be >= 1")
            self._config.max_concurrent_jobs = max_concurrent_jobs
            logger.info(f"Scheduler max_concurrent_jobs set to {max_concurrent_jobs}")

        if poll_interval_seconds is not None:
            if poll_interval_seconds <= 0:
                raise ValueError("poll_interval_seconds must be > 0")
            changed = poll_interval_seconds != self._config.poll_interval_seconds
            self._config.poll_interval_seconds = poll_interval_seconds
            logger.info(f"Scheduler poll_interval set to {poll_interval_seconds}s")
            if changed and self._running:
                await self.stop()
                await self.start()

    async def _main_loop(self) -> None:
        """메인 폴링 루프"""
        while self._running:
            try:
                await self.poll_and_dispatch()
            except Exception as e:
                logger.error(f"Error in poll_and_dispatch: {e}", exc_info=True)

            # 다음 폴링까지 대기 (stop 시 즉시 종료)
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.poll_interval_seconds
                )
                break  # stop_event가 set되면 루프 종료
            except asyncio.TimeoutError:
                pass  # 타임아웃이면 계속 폴링

    async def poll_and_dispatch(self) -> list[asyncio.Task]:
        """
        한 번의 폴링: 실행 가능한 잡 조회 후 디스패치

        Returns:
            이번 폴링에서 생성된 실행 태스크 목록
        """
        available = self._config.max_concurrent_jobs - len(self._running_tasks)
        if available <= 0:
            logger.debug("No concurrency headroom, skipping poll")
            return []

        exclude = set(self._running_tasks) | self._executor.in_flight
        jobs = await self._job_store.eligible(limit=available, exclude=exclude)
        if not jobs:
            logger.debug("No eligible jobs found")
            return []

        logger.debug(f"Found {len(jobs)} eligible jobs")

        tasks = []
        for job in jobs:
            # 중복 인덱스 항목 방어
            if job.id in self._running_tasks or self._executor.is_in_flight(job.id):
                continue
            task = asyncio.create_task(self._execute_job(job), name=f"job-{job.id}")
            self._running_tasks[job.id] = task
            task.add_done_callback(functools.partial(self._on_task_done, job.id))
            tasks.append(task)
        return tasks

    async def _execute_job(self, job: Job) -> None:
        """잡 실행 (워커 태스크)"""
        try:
            await self._executor.execute(job)
        except Exception as e:
            logger.error(f"Unexpected error executing job {job.id}: {e}", exc_info=True)

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        """태스크 완료 콜백"""
        self._running_tasks.pop(job_id, None)
        if not task.cancelled() and task.exception():
            logger.error(f"Task exception: {task.exception()}")

    async def _wait_running_tasks(self) -> None:
        """실행 중인 태스크 완료 대기 (graceful shutdown)"""
        if not self._running_tasks:
            return

        tasks = list(self._running_tasks.values())
        logger.info(f"Waiting for {len(tasks)} running tasks...")

        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=self._config.shutdown_timeout_seconds
            )
            logger.info("All tasks completed")
        except asyncio.TimeoutError:
            logger.warning(
                f"Shutdown timeout ({self._config.shutdown_timeout_seconds}s), "
                f"{len(self._running_tasks)} tasks still running"
            )
            # 강제 취소
            for task in list(self._running_tasks.values()):
                task.cancel()

    async def wait_idle(self) -> None:
        """현재 실행 중인 태스크가 모두 끝날 때까지 대기"""
        while self._running_tasks:
            await asyncio.gather(*list(self._running_tasks.values()), return_exceptions=True)

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        """실행 중 여부"""
        return self._running

    @property
    def in_flight_count(self) -> int:
        """실행 중인 태스크 수"""
        return len(self._running_tasks)
