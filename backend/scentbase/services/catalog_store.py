"""Catalog store: where accepted perfume records are persisted.

Two implementations share one async interface: a SQLAlchemy-backed store
used whenever ``DATABASE_URL`` is configured, and an in-memory fallback.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scentbase.db.base import utc_now
from scentbase.repositories.perfume_repository import PerfumeRepository, perfume_to_record
from scentbase.schemas.perfume import ScrapedRecord

logger = logging.getLogger(__name__)

PerfumeId = Union[uuid.UUID, str]


def _as_uuid(value: PerfumeId) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class CatalogStore(Protocol):
    async def add(self, record: ScrapedRecord) -> ScrapedRecord: ...

    async def get_by_id(self, perfume_id: PerfumeId) -> Optional[ScrapedRecord]: ...

    async def update(self, perfume_id: PerfumeId, data: Dict[str, Any]) -> Optional[ScrapedRecord]: ...

    async def delete(self, perfume_id: PerfumeId) -> bool: ...

    async def get_all_source_urls(self) -> List[str]: ...


class InMemoryCatalogStore:
    """Process-local store used when no database is configured."""

    def __init__(self) -> None:
        self._records: Dict[uuid.UUID, ScrapedRecord] = {}

    async def add(self, record: ScrapedRecord) -> ScrapedRecord:
        stored = record.model_copy(deep=True)
        if stored.id is None:
            stored.id = uuid.uuid4()
        self._records[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_by_id(self, perfume_id: PerfumeId) -> Optional[ScrapedRecord]:
        key = _as_uuid(perfume_id)
        record = self._records.get(key) if key else None
        return record.model_copy(deep=True) if record else None

    async def update(self, perfume_id: PerfumeId, data: Dict[str, Any]) -> Optional[ScrapedRecord]:
        key = _as_uuid(perfume_id)
        current = self._records.get(key) if key else None
        if current is None:
            return None
        changes = {
            k: v for k, v in data.items()
            if k in ScrapedRecord.model_fields and k not in ("id", "created_at")
        }
        changes["updated_at"] = utc_now()
        merged = ScrapedRecord.model_validate({**current.model_dump(), **changes})
        self._records[key] = merged
        return merged.model_copy(deep=True)

    async def delete(self, perfume_id: PerfumeId) -> bool:
        key = _as_uuid(perfume_id)
        return key is not None and self._records.pop(key, None) is not None

    async def get_all_source_urls(self) -> List[str]:
        return [r.source_url for r in self._records.values() if r.source_url]

    def __len__(self) -> int:
        return len(self._records)


class SqlCatalogStore:
    """Catalog store backed by the ``perfumes`` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def add(self, record: ScrapedRecord) -> ScrapedRecord:
        async with self._session_maker() as session:
            async with session.begin():
                perfume = await PerfumeRepository.create(session, record)
            return perfume_to_record(perfume)

    async def get_by_id(self, perfume_id: PerfumeId) -> Optional[ScrapedRecord]:
        key = _as_uuid(perfume_id)
        if key is None:
            return None
        async with self._session_maker() as session:
            perfume = await PerfumeRepository.get_by_id(session, key)
            return perfume_to_record(perfume) if perfume else None

    async def update(self, perfume_id: PerfumeId, data: Dict[str, Any]) -> Optional[ScrapedRecord]:
        key = _as_uuid(perfume_id)
        if key is None:
            return None
        async with self._session_maker() as session:
            async with session.begin():
                perfume = await PerfumeRepository.get_by_id(session, key)
                if perfume is None:
                    return None
                perfume = await PerfumeRepository.update(session, perfume, data)
            return perfume_to_record(perfume)

    async def delete(self, perfume_id: PerfumeId) -> bool:
        key = _as_uuid(perfume_id)
        if key is None:
            return False
        async with self._session_maker() as session:
            async with session.begin():
                perfume = await PerfumeRepository.get_by_id(session, key)
                if perfume is None:
                    return False
                await PerfumeRepository.delete(session, perfume)
        return True

    async def get_all_source_urls(self) -> List[str]:
        async with self._session_maker() as session:
            return await PerfumeRepository.get_all_source_urls(session)


def create_catalog_store(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> CatalogStore:
    """Pick the SQL store when a database is configured, else fall back to memory."""
    if session_maker is None:
        logger.warning("DATABASE_URL not configured, using in-memory catalog store")
        return InMemoryCatalogStore()
    return SqlCatalogStore(session_maker)
