"""
SQLite3 Key/Value 저장소 모듈

aiosqlite + aiosql로 kv_store 테이블 위에 TTL 지원 Key/Value 저장소를 제공합니다.
만료 시각(expires_at)은 epoch 초 단위로 저장하며, 만료된 행은 조회에서 제외되고
purge_expired() 호출 시 삭제됩니다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosql
import aiosqlite

from store.base import BaseKeyValueStore
from store.exception import StoreNotInitializedError

logger = logging.getLogger(__name__)

SQL_PATH = Path(__file__).parent / "sql" / "kv.sql"


@dataclass
class SqliteOptions:
    """SQLite 연결 옵션"""
    busy_timeout: int = 5000
    journal_mode: str = 'WAL'
    synchronous: str = 'NORMAL'
    cache_size: int = -2000


class SQLiteStore(BaseKeyValueStore):
    """
    SQLite 기반 Key/Value 저장소

    사용 예시:
        kv = await SQLiteStore.create('default', {'path': './data/jobq.db'})
        await kv.set('job:1', '{}', ttl_seconds=60)
    """

    def __init__(self, name: str, config: dict[str, Any]):
        self.name = name
        self._config = config
        self._connection: aiosqlite.Connection | None = None
        self._queries: Any | None = None
        self._lock = asyncio.Lock()

    @classmethod
    async def create(cls, name: str, config: dict[str, Any]) -> 'SQLiteStore':
        """SQLiteStore 인스턴스 생성 및 초기화"""
        instance = cls(name, config)
        await instance._initialize()
        return instance

    async def _initialize(self) -> None:
        """연결 생성 및 테이블 초기화"""
        db_path = Path(self._config.get('path', f'./data/{self.name}.db'))
        if str(db_path) != ':memory:':
            db_path.parent.mkdir(parents=True, exist_ok=True)

        opts = self._config.get('options', {})
        options = SqliteOptions(
            busy_timeout=opts.get('busy_timeout', 5000),
            journal_mode=opts.get('journal_mode', 'WAL'),
            synchronous=opts.get('synchronous', 'NORMAL'),
            cache_size=opts.get('cache_size', -2000),
        )

        self._connection = await aiosqlite.connect(
            db_path,
            timeout=options.busy_timeout / 1000.0
        )
        await self._connection.execute(f"PRAGMA busy_timeout={options.busy_timeout}")
        await self._connection.execute(f"PRAGMA journal_mode={options.journal_mode}")
        await self._connection.execute(f"PRAGMA synchronous={options.synchronous}")
        await self._connection.execute(f"PRAGMA cache_size={options.cache_size}")

        self._queries = aiosql.from_path(str(SQL_PATH), "aiosqlite")
        await self._queries.create_kv_table(self._connection)
        await self._queries.create_kv_indexes(self._connection)
        await self._connection.commit()

        logger.info(f"SQLiteStore '{self.name}' initialized: {db_path}")

    async def get(self, key: str) -> str | None:
        conn = self._check_open()
        async with self._lock:
            return await self._queries.get_value(conn, key=key, now=time.time())

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        conn = self._check_open()
        expires_at = time.time() + ttl_seconds if ttl_seconds else None
        async with self._lock:
            await self._queries.upsert_value(conn, key=key, value=value, expires_at=expires_at)
            await conn.commit()

    async def delete(self, key: str) -> None:
        conn = self._check_open()
        async with self._lock:
            await self._queries.delete_value(conn, key=key)
            await conn.commit()

    async def purge_expired(self) -> int:
        """만료된 행 삭제, 삭제된 행 수 반환"""
        conn = self._check_open()
        async with self._lock:
            affected_rows = await self._queries.purge_expired(conn, now=time.time())
            await conn.commit()
        if affected_rows:
            logger.debug(f"Purged {affected_rows} expired key(s)")
        return affected_rows or 0

    async def count(self) -> int:
        """만료되지 않은 키 수"""
        conn = self._check_open()
        async with self._lock:
            return await self._queries.count_keys(conn, now=time.time())

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        logger.info(f"SQLiteStore '{self.name}' closed")

    def _check_open(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StoreNotInitializedError(self.name)
        return self._connection
