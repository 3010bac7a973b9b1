"""
공용 fixture 및 테스트용 핸들러

실행: python -m pytest test/ -v
"""

import asyncio
import logging

import pytest_asyncio

from service import JobService
from store import JobStore, MemoryStore
from worker.base import BaseHandler, HandlerRegistry
from worker.executor import Executor
from worker.main import Scheduler, SchedulerConfig
from worker.model.job import Job, JobPayload

# 테스트용 로깅 설정
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


# ============================================================
# 테스트용 핸들러
# ============================================================

class EchoHandler(BaseHandler):
    """data 를 그대로 돌려줌"""

    def __init__(self):
        self.calls: list[str] = []

    async def execute(self, payload: JobPayload, job: Job) -> dict:
        self.calls.append(job.id)
        return {"echo": payload.data}


class FailingHandler(BaseHandler):
    """항상 실패"""

    def __init__(self, message: str = "boom"):
        self.message = message
        self.calls = 0

    async def execute(self, payload: JobPayload, job: Job) -> dict:
        self.calls += 1
        raise RuntimeError(self.message)


class SleepHandler(BaseHandler):
    """data.sleep_seconds 만큼 대기"""

    async def execute(self, payload: JobPayload, job: Job) -> dict:
        await asyncio.sleep(payload.data.get("sleep_seconds", 0))
        return {"slept": payload.data.get("sleep_seconds", 0)}


class GateHandler(BaseHandler):
    """release() 호출 전까지 블로킹 (실행 중 상태 검증용)"""

    def __init__(self):
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    async def execute(self, payload: JobPayload, job: Job) -> dict:
        self.started.set()
        await self._gate.wait()
        return {"released": True}


# 내장 핸들러 작업 시간 0 (테스트 속도)
FAST_BUILTIN_OPTIONS = {
    "email_notification": {"work_seconds": 0},
    "report_generation": {"work_seconds": 0},
    "data_processing": {"work_seconds": 0},
}


# ============================================================
# Fixtures
# ============================================================

@pytest_asyncio.fixture
async def kv():
    """인메모리 Key/Value 저장소"""
    store = MemoryStore("test")
    yield store
    await store.close()


@pytest_asyncio.fixture
async def job_store(kv):
    """테스트용 JobStore"""
    return JobStore(kv)


@pytest_asyncio.fixture
async def registry():
    """내장 핸들러 + 테스트 핸들러 레지스트리"""
    registry = HandlerRegistry.with_builtin(FAST_BUILTIN_OPTIONS)
    registry.register("echo", EchoHandler())
    registry.register("always_fail", FailingHandler())
    registry.register("sleep", SleepHandler())
    return registry


@pytest_asyncio.fixture
async def executor(job_store, registry):
    """Executor 인스턴스"""
    return Executor(job_store, registry)


@pytest_asyncio.fixture
async def scheduler(job_store, executor):
    """Scheduler 인스턴스 (짧은 폴링 간격)"""
    scheduler = Scheduler(
        job_store,
        executor,
        SchedulerConfig(max_concurrent_jobs=5, poll_interval_seconds=0.05, shutdown_timeout_seconds=5),
    )
    yield scheduler
    await scheduler.shutdown()


@pytest_asyncio.fixture
async def service(job_store, registry):
    """JobService 인스턴스"""
    service = JobService(
        job_store,
        registry,
        SchedulerConfig(max_concurrent_jobs=5, poll_interval_seconds=0.05, shutdown_timeout_seconds=5),
    )
    yield service
    await service.scheduler.shutdown()
