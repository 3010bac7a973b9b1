"""
SQLite3 Key/Value 저장소 패키지

사용 예시:
    from store.sqlite3 import SQLiteStore

    kv = await SQLiteStore.create('default', {'path': './data/jobq.db'})
    await kv.set('job:1', '{...}', ttl_seconds=86400)
    value = await kv.get('job:1')
    await kv.close()
"""

from store.sqlite3.connection import (
    SQLiteStore,
    SqliteOptions,
)

__all__ = [
    'SQLiteStore',
    'SqliteOptions',
]
