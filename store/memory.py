"""
인메모리 Key/Value 저장소

단일 프로세스 실행 및 테스트용 어댑터입니다.
TTL은 monotonic 시계 기준으로 조회 시점에 판정합니다.
"""

import logging
import time

from store.base import BaseKeyValueStore
from store.exception import StoreNotInitializedError

logger = logging.getLogger(__name__)


class MemoryStore(BaseKeyValueStore):
    """dict 기반 Key/Value 저장소"""

    def __init__(self, name: str = "memory"):
        self.name = name
        self._data: dict[str, tuple[str, float | None]] = {}
        self._closed = False

    async def get(self, key: str) -> str | None:
        self._check_open()
        entry = self._data.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            # 만료된 키는 조회 시점에 제거
            del self._data[key]
            logger.debug(f"Key expired: {key}")
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._check_open()
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._check_open()
        self._data.pop(key, None)

    async def close(self) -> None:
        self._closed = True
        self._data.clear()
        logger.info(f"MemoryStore '{self.name}' closed")

    def keys(self) -> list[str]:
        """저장된 키 목록 (만료 판정 없음, 테스트용)"""
        return list(self._data)

    def _check_open(self) -> None:
        if self._closed:
            raise StoreNotInitializedError(self.name)
