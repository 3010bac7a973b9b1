"""
잡 큐 영속 계층 패키지

사용 예시:
    from store import JobStore, MemoryStore

    job_store = JobStore(MemoryStore())
    await job_store.save(job)
    job = await job_store.get(job.id)
"""

from store.base import BaseKeyValueStore
from store.exception import StoreError, StoreNotInitializedError, StoreSerializationError
from store.job_store import DEFAULT_TTL_SECONDS, JobStore
from store.memory import MemoryStore

__all__ = [
    'BaseKeyValueStore',
    'MemoryStore',
    'JobStore',
    'DEFAULT_TTL_SECONDS',
    'StoreError',
    'StoreNotInitializedError',
    'StoreSerializationError',
]
