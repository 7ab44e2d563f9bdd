"""Key-value store for public id -> Telegram file_id links.

SQL tables for deployments, an in-process dict for local dev and tests.
"""
import logging
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from filerelay.config import Settings
from filerelay.database import build_engine, build_sessionmaker
from filerelay.models import Base, FileLink

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def put(self, key: str, value: str) -> None: ...

    async def exists(self, key: str) -> bool: ...

    async def close(self) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store. Contents vanish with the process."""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def close(self) -> None:
        return None


class SqlKeyValueStore:
    """Stores links in the ``file_links`` table. Last write wins per key."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "SqlKeyValueStore":
        engine = build_engine(database_url)
        return cls(build_sessionmaker(engine), engine=engine)

    async def create_tables(self) -> None:
        if self._engine is None:
            return
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(FileLink.file_id).where(FileLink.public_id == key)
            )
            return result.scalar_one_or_none()

    async def put(self, key: str, value: str) -> None:
        async with self._session_factory() as db:
            await db.merge(FileLink(public_id=key, file_id=value))
            await db.commit()

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()


async def build_store(settings: Settings) -> KeyValueStore:
    """Create the store selected by ``KV_STORE_TYPE`` and prepare its tables."""
    if settings.KV_STORE_TYPE == "memory":
        logger.warning("Using in-memory link store; links are lost on restart")
        return MemoryKeyValueStore()

    if settings.KV_STORE_TYPE == "sql":
        store = SqlKeyValueStore.from_url(settings.DATABASE_URL)
        await store.create_tables()
        return store

    raise ValueError(f"Unknown KV store type: {settings.KV_STORE_TYPE}")
