"""
Store 테스트

테스트 항목:
1. MemoryStore get/set/delete, TTL 만료
2. SQLiteStore get/set/delete, TTL 만료, purge
3. JobStore 레코드 저장/조회
4. 버킷 인덱스 (동일 우선순위 다중 잡, scheduled_at 순서)
5. 상태 전이 시 재인덱싱
6. stale 인덱스 항목 정리
7. 삭제 멱등성

실행: python -m pytest test/store_test.py -v
"""

import asyncio
import json
from datetime import timedelta

import pytest
import pytest_asyncio

from store import JobStore, MemoryStore, StoreNotInitializedError, StoreSerializationError
from store.sqlite3 import SQLiteStore
from worker.model.job import Job, JobOptions, JobPayload, JobStatus, utcnow


def make_job(priority: int = 0, delay_seconds: float = 0, job_type: str = "echo") -> Job:
    return Job.create(
        JobPayload(type=job_type, data={"n": priority}),
        JobOptions(priority=priority, delay_seconds=delay_seconds),
    )


class PausingStore(MemoryStore):
    """pause_key 조회 직후 resume 될 때까지 대기 (동시성 재현용)"""

    def __init__(self):
        super().__init__("pausing")
        self.pause_key: str | None = None
        self.paused = asyncio.Event()
        self.resume = asyncio.Event()

    async def get(self, key: str) -> str | None:
        value = await super().get(key)
        if key == self.pause_key:
            self.pause_key = None
            self.paused.set()
            await self.resume.wait()
        return value


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    """임시 파일 SQLiteStore"""
    store = await SQLiteStore.create("test", {"path": str(tmp_path / "kv.db")})
    yield store
    await store.close()


# ============================================================
# Key/Value 어댑터
# ============================================================

class TestMemoryStore:
    """MemoryStore 테스트"""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, kv):
        await kv.set("a", "1")
        assert await kv.get("a") == "1"

        await kv.set("a", "2", ttl_seconds=60)
        assert await kv.get("a") == "2"

        await kv.delete("a")
        assert await kv.get("a") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key(self, kv):
        """없는 키 삭제는 무시"""
        await kv.delete("missing")
        assert await kv.get("missing") is None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, kv):
        await kv.set("short", "x", ttl_seconds=1)
        await kv.set("long", "y", ttl_seconds=60)

        await asyncio.sleep(1.1)

        assert await kv.get("short") is None
        assert await kv.get("long") == "y"

    @pytest.mark.asyncio
    async def test_closed_store_raises(self):
        store = MemoryStore("closed")
        await store.close()
        with pytest.raises(StoreNotInitializedError):
            await store.get("a")


class TestSQLiteStore:
    """SQLiteStore 테스트"""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, sqlite_store):
        await sqlite_store.set("job:1", '{"id": "1"}', ttl_seconds=60)
        assert await sqlite_store.get("job:1") == '{"id": "1"}'

        # 덮어쓰기
        await sqlite_store.set("job:1", '{"id": "1", "v": 2}', ttl_seconds=60)
        assert await sqlite_store.get("job:1") == '{"id": "1", "v": 2}'

        await sqlite_store.delete("job:1")
        assert await sqlite_store.get("job:1") is None

    @pytest.mark.asyncio
    async def test_missing_key(self, sqlite_store):
        assert await sqlite_store.get("nope") is None
        await sqlite_store.delete("nope")

    @pytest.mark.asyncio
    async def test_ttl_expiry_and_purge(self, sqlite_store):
        await sqlite_store.set("short", "x", ttl_seconds=1)
        await sqlite_store.set("forever", "y")

        await asyncio.sleep(1.1)

        assert await sqlite_store.get("short") is None
        assert await sqlite_store.get("forever") == "y"
        assert await sqlite_store.count() == 1

        purged = await sqlite_store.purge_expired()
        assert purged == 1

    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path):
        """같은 파일을 다시 열면 값이 유지됨"""
        path = str(tmp_path / "persist.db")
        first = await SQLiteStore.create("first", {"path": path})
        await first.set("k", "v", ttl_seconds=60)
        await first.close()

        second = await SQLiteStore.create("second", {"path": path})
        try:
            assert await second.get("k") == "v"
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_closed_store_raises(self, tmp_path):
        store = await SQLiteStore.create("closed", {"path": str(tmp_path / "closed.db")})
        await store.close()
        with pytest.raises(StoreNotInitializedError):
            await store.get("a")

    @pytest.mark.asyncio
    async def test_job_store_on_sqlite(self, sqlite_store):
        """JobStore 가 SQLiteStore 위에서도 동작"""
        job_store = JobStore(sqlite_store)
        job = await job_store.save(make_job(priority=4))

        loaded = await job_store.get(job.id)
        assert loaded == job
        assert await job_store.bucket(JobStatus.PENDING, 4) == [job.id]


# ============================================================
# JobStore
# ============================================================

class TestJobStore:
    """JobStore 레코드 / 인덱스 테스트"""

    @pytest.mark.asyncio
    async def test_save_and_get(self, job_store, kv):
        job = await job_store.save(make_job(priority=3))

        loaded = await job_store.get(job.id)
        assert loaded == job

        # 키 구조
        assert await kv.get(f"job:{job.id}") is not None
        raw_bucket = await kv.get("jobs:queue:pending:3")
        assert [entry[1] for entry in json.loads(raw_bucket)] == [job.id]

    @pytest.mark.asyncio
    async def test_get_missing(self, job_store):
        assert await job_store.get("missing") is None

    @pytest.mark.asyncio
    async def test_same_priority_jobs_share_bucket(self, job_store):
        """동일 (status, priority) 잡이 서로 덮어쓰지 않음"""
        jobs = [await job_store.save(make_job(priority=2)) for _ in range(5)]

        assert await job_store.bucket(JobStatus.PENDING, 2) == [job.id for job in jobs]

    @pytest.mark.asyncio
    async def test_concurrent_saves_keep_every_entry(self, job_store):
        """동시 저장에도 버킷 항목 유실 없음"""
        jobs = [make_job(priority=7) for _ in range(20)]
        await asyncio.gather(*(job_store.save(job) for job in jobs))

        assert set(await job_store.bucket(JobStatus.PENDING, 7)) == {job.id for job in jobs}

    @pytest.mark.asyncio
    async def test_bucket_ordered_by_scheduled_at(self, job_store):
        later = await job_store.save(make_job(priority=1, delay_seconds=60))
        sooner = await job_store.save(make_job(priority=1))

        assert await job_store.bucket(JobStatus.PENDING, 1) == [sooner.id, later.id]

    @pytest.mark.asyncio
    async def test_update_reindexes_on_status_change(self, job_store):
        job = await job_store.save(make_job(priority=5))

        updated = await job_store.update(job.id, status=JobStatus.PROCESSING, attempts=1)

        assert updated.status == JobStatus.PROCESSING
        assert updated.attempts == 1
        assert await job_store.bucket(JobStatus.PENDING, 5) == []
        assert await job_store.bucket(JobStatus.PROCESSING, 5) == [job.id]

    @pytest.mark.asyncio
    async def test_update_reindexes_on_priority_change(self, job_store):
        job = await job_store.save(make_job(priority=1))

        await job_store.update(job.id, priority=9)

        assert await job_store.bucket(JobStatus.PENDING, 1) == []
        assert await job_store.bucket(JobStatus.PENDING, 9) == [job.id]

    @pytest.mark.asyncio
    async def test_update_expected_status_mismatch(self, job_store):
        job = await job_store.save(make_job())

        result = await job_store.update(
            job.id,
            expected_status=JobStatus.PROCESSING,
            status=JobStatus.COMPLETED,
        )

        assert result is None
        assert (await job_store.get(job.id)).status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_update_missing(self, job_store):
        assert await job_store.update("missing", priority=1) is None

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, job_store, kv):
        job = await job_store.save(make_job(priority=6))

        assert await job_store.delete(job.id) is True
        assert await job_store.delete(job.id) is False

        assert await kv.get(f"job:{job.id}") is None
        assert await job_store.bucket(JobStatus.PENDING, 6) == []

    @pytest.mark.asyncio
    async def test_stale_entry_is_pruned(self, job_store, kv):
        """레코드가 사라진 인덱스 항목은 조회 시 제거됨"""
        live = await job_store.save(make_job(priority=3))
        stale = await job_store.save(make_job(priority=3))
        await kv.delete(f"job:{stale.id}")

        jobs = await job_store.iter_bucket_jobs(JobStatus.PENDING, 3)

        assert [job.id for job in jobs] == [live.id]
        assert await job_store.bucket(JobStatus.PENDING, 3) == [live.id]

    @pytest.mark.asyncio
    async def test_reindexed_entry_survives_concurrent_reader(self):
        """조회 중 상태 전이로 다시 추가된 항목은 stale 정리에서 제거되지 않음"""
        kv = PausingStore()
        job_store = JobStore(kv)
        job = await job_store.save(make_job())
        await job_store.update(job.id, status=JobStatus.PROCESSING)
        # 중단으로 남은 pending 버킷 항목
        await kv.set(
            JobStore.queue_key(JobStatus.PENDING, 0),
            json.dumps([[job.scheduled_at.timestamp(), job.id]]),
        )

        kv.pause_key = JobStore.job_key(job.id)
        reader = asyncio.create_task(job_store.iter_bucket_jobs(JobStatus.PENDING, 0))
        await kv.paused.wait()

        # 리더가 PROCESSING 레코드를 읽은 뒤 재시도 전이
        await job_store.update(job.id, expected_status=JobStatus.PROCESSING, status=JobStatus.PENDING)
        kv.resume.set()

        live = await reader
        assert [j.id for j in live] == [job.id]
        assert live[0].status == JobStatus.PENDING
        assert await job_store.bucket(JobStatus.PENDING, 0) == [job.id]
        assert await job_store.bucket(JobStatus.PROCESSING, 0) == []

    @pytest.mark.asyncio
    async def test_unserializable_update_keeps_index(self, job_store):
        """직렬화 실패 시 레코드와 인덱스 모두 그대로"""
        job = await job_store.save(make_job())
        await job_store.update(job.id, status=JobStatus.PROCESSING)

        with pytest.raises(StoreSerializationError):
            await job_store.update(job.id, status=JobStatus.COMPLETED, result=object())

        assert (await job_store.get(job.id)).status == JobStatus.PROCESSING
        assert await job_store.bucket(JobStatus.PROCESSING, 0) == [job.id]
        assert await job_store.bucket(JobStatus.COMPLETED, 0) == []

    @pytest.mark.asyncio
    async def test_progress_bounds(self, job_store):
        job = await job_store.save(make_job())

        with pytest.raises(ValueError):
            await job_store.update(job.id, progress=500)

        assert (await job_store.get(job.id)).progress is None

    @pytest.mark.asyncio
    async def test_eligible_priority_order(self, job_store):
        low = await job_store.save(make_job(priority=1))
        high = await job_store.save(make_job(priority=8))
        mid = await job_store.save(make_job(priority=4))

        jobs = await job_store.eligible(limit=10)

        assert [job.id for job in jobs] == [high.id, mid.id, low.id]

    @pytest.mark.asyncio
    async def test_eligible_respects_limit_and_schedule(self, job_store):
        first = await job_store.save(make_job(priority=2))
        await job_store.save(make_job(priority=2, delay_seconds=3600))
        await job_store.save(make_job(priority=0))

        assert [job.id for job in await job_store.eligible(limit=1)] == [first.id]
        # 지연된 잡은 제외
        assert len(await job_store.eligible(limit=10)) == 2
        # 미래 시점 기준이면 지연된 잡 포함
        future = utcnow() + timedelta(hours=2)
        assert len(await job_store.eligible(limit=10, now=future)) == 3

    @pytest.mark.asyncio
    async def test_eligible_excludes_ids(self, job_store):
        job = await job_store.save(make_job())

        assert await job_store.eligible(limit=5, exclude={job.id}) == []

    @pytest.mark.asyncio
    async def test_count_by_status(self, job_store):
        await job_store.save(make_job(priority=1))
        await job_store.save(make_job(priority=1))
        done = await job_store.save(make_job(priority=2))
        await job_store.update(done.id, status=JobStatus.COMPLETED)

        counts = await job_store.count_by_status()

        assert counts[JobStatus.PENDING] == 2
        assert counts[JobStatus.COMPLETED] == 1
        assert counts[JobStatus.FAILED] == 0
