"""
Repository Pattern Implementation.

Architecture Decision: Why Repository Pattern?
Separates data access logic from business logic. Makes it easy to:
- Switch database implementations
- Mock data for testing
- Change data sources (local DB to cloud API)

The tracker only needs a load/save contract for one snapshot; the snapshot
repository implements it on top of a generic key-value repository.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from timeflow.domain.models import Snapshot
from timeflow.infra.db import DatabaseEngine, KeyValueModel

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "timetracker-data"


class KeyValueRepository:
    """
    Handles string values stored under string keys.

    An engine passed with owns_engine=True, or one created on demand from the
    settings, is disposed by close(). Injected sessions are never closed here.
    """

    def __init__(self, session: Optional[AsyncSession] = None,
                 engine: Optional[DatabaseEngine] = None,
                 owns_engine: bool = False):
        self.session = session
        self.engine = engine
        self.owns_engine = owns_engine

    async def _get_session(self) -> AsyncSession:
        """Get session - either injected or create new one"""
        if self.session:
            return self.session
        if self.engine is None:
            self.engine = DatabaseEngine.from_settings()
            self.owns_engine = True
        return self.engine.get_session()

    async def get(self, key: str) -> Optional[str]:
        """Get the value stored under key"""
        session = await self._get_session()
        async with session:
            model = await session.get(KeyValueModel, key)
            return model.value if model else None

    async def set(self, key: str, value: str) -> None:
        """Insert or replace the value stored under key"""
        session = await self._get_session()
        async with session:
            model = await session.get(KeyValueModel, key)
            if model is None:
                session.add(KeyValueModel(key=key, value=value))
            else:
                model.value = value
            await session.commit()

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        session = await self._get_session()
        async with session:
            result = await session.execute(
                delete(KeyValueModel).where(KeyValueModel.key == key)
            )
            await session.commit()
            return result.rowcount > 0

    async def list_keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with prefix"""
        session = await self._get_session()
        async with session:
            stmt = select(KeyValueModel.key).order_by(KeyValueModel.key)
            if prefix:
                stmt = stmt.where(KeyValueModel.key.startswith(prefix, autoescape=True))
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def close(self):
        """Dispose the engine if this repository owns it"""
        if self.owns_engine and self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.owns_engine = False


class BaseSnapshotStore(ABC):
    """
    Abstract load/save contract for the tracker state.

    Implementations may raise; the tracker decides how failures are handled.
    """

    @abstractmethod
    async def load(self) -> Optional[Snapshot]:
        """Return the stored snapshot, or None on first run"""

    @abstractmethod
    async def save(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot"""

    async def close(self):
        """Release resources held by the store"""


class SnapshotRepository(BaseSnapshotStore):
    """
    Stores the whole tracker snapshot as one JSON document.

    Instants are written as ISO-8601 strings and keys in camelCase.
    """

    def __init__(self, kv_repo: Optional[KeyValueRepository] = None,
                 storage_key: str = DEFAULT_STORAGE_KEY):
        self.kv_repo = kv_repo or KeyValueRepository()
        self.storage_key = storage_key

    async def load(self) -> Optional[Snapshot]:
        raw = await self.kv_repo.get(self.storage_key)
        if raw is None:
            return None
        return Snapshot.model_validate(json.loads(raw))

    async def save(self, snapshot: Snapshot) -> None:
        payload = snapshot.model_dump(mode="json", by_alias=True)
        await self.kv_repo.set(self.storage_key, json.dumps(payload, ensure_ascii=False))
        logger.debug(f"Snapshot saved: {len(snapshot.entries)} entries")

    async def clear(self) -> bool:
        return await self.kv_repo.delete(self.storage_key)

    async def close(self):
        await self.kv_repo.close()
