"""
잡 저장소 모듈

Job 레코드를 Key/Value 저장소에 직렬화하고, (status, priority) 버킷 인덱스를 관리합니다.

키 구조:
    job:<id>                          잡 레코드 (JSON)
    jobs:queue:<status>:<priority>    버킷 (scheduled_at 순 [timestamp, id] 목록, JSON)

상태 전이 순서:
    1. 이전 버킷에서 id 제거
    2. 레코드 저장
    3. 새 버킷에 id 추가

중간에 중단되어도 레코드는 id로 조회 가능하며, 남은 stale 인덱스 항목은
조회 시 레코드의 실제 상태와 비교해 제거됩니다.
"""

import asyncio
import bisect
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from store.base import BaseKeyValueStore
from store.exception import StoreSerializationError
from worker.model.job import MAX_PRIORITY, MIN_PRIORITY, Job, JobStatus, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 86400
JOB_LOCK_STRIPES = 64

BucketEntry = tuple[float, str]


class JobStore:
    """잡 레코드 + 우선순위 버킷 인덱스 저장소"""

    def __init__(self, kv: BaseKeyValueStore, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self._kv = kv
        self._ttl_seconds = ttl_seconds
        self._bucket_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # 같은 잡의 read-modify-write 직렬화 (executor 결과 기록 vs cancel 등)
        self._job_locks = [asyncio.Lock() for _ in range(JOB_LOCK_STRIPES)]

    @property
    def kv(self) -> BaseKeyValueStore:
        return self._kv

    @staticmethod
    def job_key(job_id: str) -> str:
        return f"job:{job_id}"

    @staticmethod
    def queue_key(status: JobStatus | str, priority: int) -> str:
        status = JobStatus(status)
        return f"jobs:queue:{status.value}:{priority}"

    @staticmethod
    def priorities() -> range:
        """높은 우선순위부터"""
        return range(MAX_PRIORITY, MIN_PRIORITY - 1, -1)

    # ============================================================
    # 레코드
    # ============================================================

    async def get(self, job_id: str) -> Job | None:
        """id로 잡 조회"""
        key = self.job_key(job_id)
        raw = await self._kv.get(key)
        if raw is None:
            return None
        try:
            return Job.model_validate_json(raw)
        except ValidationError as e:
            raise StoreSerializationError(key, str(e))

    async def save(self, job: Job) -> Job:
        """신규 잡 저장 및 인덱싱"""
        await self._write(job)
        await self._bucket_insert(job)
        logger.debug(f"Job saved: id={job.id}, type={job.type}, priority={job.priority}")
        return job

    async def update(
        self,
        job_id: str,
        *,
        expected_status: JobStatus | None = None,
        **fields: Any,
    ) -> Job | None:
        """
        잡 레코드에 필드 병합

        status / priority / scheduled_at 중 하나라도 바뀌면 버킷을 재인덱싱합니다.

        Args:
            job_id: 잡 id
            expected_status: 지정 시 현재 상태가 다르면 쓰지 않고 None 반환
            **fields: 병합할 필드

        Returns:
            갱신된 Job (레코드가 없거나 expected_status 불일치 시 None)
        """
        async with self._job_lock(job_id):
            existing = await self.get(job_id)
            if existing is None:
                return None
            if expected_status is not None and existing.status != expected_status:
                logger.debug(
                    f"Skip update: id={job_id}, expected={expected_status.value}, "
                    f"actual={existing.status.value}"
                )
                return None

            merged = {**existing.model_dump(), **fields, "id": existing.id}
            updated = Job.model_validate(merged)

            reindex = (
                updated.status != existing.status
                or updated.priority != existing.priority
                or updated.scheduled_at != existing.scheduled_at
            )
            # 직렬화 실패 시 인덱스를 건드리기 전에 예외 발생
            raw = self._serialize(updated)
            if reindex:
                await self._bucket_remove(existing.status, existing.priority, existing.id)
            await self._kv.set(self.job_key(updated.id), raw, self._ttl_seconds)
            if reindex:
                await self._bucket_insert(updated)
            return updated

    async def delete(self, job_id: str) -> bool:
        """레코드와 인덱스 항목 삭제 (없으면 False)"""
        async with self._job_lock(job_id):
            job = await self.get(job_id)
            if job is None:
                return False
            await self._bucket_remove(job.status, job.priority, job.id)
            await self._kv.delete(self.job_key(job_id))
        logger.debug(f"Job deleted: id={job_id}")
        return True

    async def _write(self, job: Job) -> None:
        await self._kv.set(self.job_key(job.id), self._serialize(job), self._ttl_seconds)

    def _serialize(self, job: Job) -> str:
        try:
            return job.model_dump_json()
        except PydanticSerializationError as e:
            raise StoreSerializationError(self.job_key(job.id), str(e))

    def _job_lock(self, job_id: str) -> asyncio.Lock:
        return self._job_locks[hash(job_id) % JOB_LOCK_STRIPES]

    # ============================================================
    # 버킷 인덱스
    # ============================================================

    async def bucket(self, status: JobStatus | str, priority: int) -> list[str]:
        """버킷의 잡 id 목록 (scheduled_at 오름차순)"""
        entries = await self._read_bucket(self.queue_key(status, priority))
        return [job_id for _, job_id in entries]

    async def remove_from_bucket(self, status: JobStatus | str, priority: int, job_id: str) -> None:
        """버킷에서 id 제거 (stale 항목 정리용)"""
        await self._bucket_remove(JobStatus(status), priority, job_id)

    async def _read_bucket(self, key: str) -> list[BucketEntry]:
        raw = await self._kv.get(key)
        if raw is None:
            return []
        try:
            return [(float(ts), str(job_id)) for ts, job_id in json.loads(raw)]
        except (TypeError, ValueError) as e:
            raise StoreSerializationError(key, str(e))

    async def _write_bucket(self, key: str, entries: list[BucketEntry]) -> None:
        if entries:
            await self._kv.set(key, json.dumps(entries), self._ttl_seconds)
        else:
            await self._kv.delete(key)

    async def _bucket_insert(self, job: Job) -> None:
        key = self.queue_key(job.status, job.priority)
        async with self._bucket_locks[key]:
            entries = [e for e in await self._read_bucket(key) if e[1] != job.id]
            bisect.insort(entries, (job.scheduled_at.timestamp(), job.id))
            await self._write_bucket(key, entries)

    async def _bucket_remove(self, status: JobStatus, priority: int, job_id: str) -> None:
        key = self.queue_key(status, priority)
        async with self._bucket_locks[key]:
            entries = await self._read_bucket(key)
            remaining = [e for e in entries if e[1] != job_id]
            if len(remaining) != len(entries):
                await self._write_bucket(key, remaining)

    # ============================================================
    # 조회
    # ============================================================

    async def iter_bucket_jobs(self, status: JobStatus, priority: int) -> list[Job]:
        """
        버킷의 살아있는 잡 목록

        레코드가 없거나 상태/우선순위가 버킷과 다른 항목은 버킷에서 제거합니다.
        """
        jobs = []
        for job_id in await self.bucket(status, priority):
            job = await self._live_job(status, priority, job_id)
            if job is not None:
                jobs.append(job)
        return jobs

    async def eligible(
        self,
        limit: int,
        now: datetime | None = None,
        exclude: set[str] | frozenset[str] = frozenset(),
    ) -> list[Job]:
        """
        실행 가능한 PENDING 잡 조회

        높은 우선순위 버킷부터, 버킷 안에서는 scheduled_at 오름차순으로 최대 limit개.
        """
        now = now or utcnow()
        now_ts = now.timestamp()
        found: list[Job] = []
        if limit <= 0:
            return found

        for priority in self.priorities():
            entries = await self._read_bucket(self.queue_key(JobStatus.PENDING, priority))
            for scheduled_ts, job_id in entries:
                if scheduled_ts > now_ts:
                    break  # 정렬되어 있으므로 이후 항목도 아직 대기
                if job_id in exclude:
                    continue
                job = await self._live_job(JobStatus.PENDING, priority, job_id)
                if job is None or not job.is_eligible(now):
                    continue
                found.append(job)
                if len(found) >= limit:
                    return found
        return found

    async def scan(self, statuses: list[JobStatus] | None = None) -> list[Job]:
        """
        상태별 버킷 전체 스캔

        statuses 미지정 시 모든 상태 x 모든 우선순위 버킷을 읽습니다 (O(statuses x priorities)).
        """
        statuses = statuses or list(JobStatus)
        jobs: list[Job] = []
        seen: set[str] = set()
        for status in statuses:
            for priority in self.priorities():
                for job in await self.iter_bucket_jobs(status, priority):
                    if job.id not in seen:
                        seen.add(job.id)
                        jobs.append(job)
        return jobs

    async def count_by_status(self) -> dict[JobStatus, int]:
        """상태별 살아있는 잡 수"""
        counts = {status: 0 for status in JobStatus}
        for status in JobStatus:
            for priority in self.priorities():
                counts[status] += len(await self.iter_bucket_jobs(status, priority))
        return counts

    async def _live_job(self, status: JobStatus, priority: int, job_id: str) -> Job | None:
        job = await self.get(job_id)
        if _in_bucket(job, status, priority):
            return job

        # 제거 전 잡 락 안에서 재확인 (동시 상태 전이로 다시 들어온 항목 보호)
        async with self._job_lock(job_id):
            job = await self.get(job_id)
            if _in_bucket(job, status, priority):
                return job
            logger.debug(
                f"Dropping stale index entry: id={job_id}, bucket={self.queue_key(status, priority)}"
            )
            await self._bucket_remove(status, priority, job_id)
        return None


def _in_bucket(job: Job | None, status: JobStatus, priority: int) -> bool:
    return job is not None and job.status == status and job.priority == priority
