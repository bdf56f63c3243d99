from __future__ import annotations

from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scentbase.models.perfume import Perfume
from scentbase.schemas.perfume import ScrapedRecord


def record_to_columns(record: ScrapedRecord) -> dict[str, Any]:
    data = record.model_dump(mode="python")
    data["gender"] = record.gender.value
    return data


def perfume_to_record(perfume: Perfume) -> ScrapedRecord:
    return ScrapedRecord(
        id=perfume.id,
        name=perfume.name,
        brand=perfume.brand,
        year=perfume.year,
        perfumer=perfume.perfumer,
        gender=perfume.gender or "unisex",
        concentration=perfume.concentration,
        notes=perfume.notes or {},
        accords=perfume.accords or [],
        description=perfume.description,
        image_url=perfume.image_url,
        rating=perfume.rating,
        source_url=perfume.source_url or "",
        scraped_at=perfume.scraped_at or perfume.created_at,
        created_at=perfume.created_at,
        updated_at=perfume.updated_at,
    )


def _column_value(key: str, value: Any) -> Any:
    if key == "gender" and hasattr(value, "value"):
        return value.value
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if isinstance(value, list):
        return [v.model_dump() if hasattr(v, "model_dump") else v for v in value]
    return value


class PerfumeRepository:
    @staticmethod
    async def get_by_id(session: AsyncSession, perfume_id: UUID) -> Optional[Perfume]:
        result = await session.execute(select(Perfume).where(Perfume.id == perfume_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, record: ScrapedRecord) -> Perfume:
        perfume = Perfume(**record_to_columns(record))
        session.add(perfume)
        await session.flush()
        return perfume

    @staticmethod
    async def update(session: AsyncSession, perfume: Perfume, data: dict[str, Any]) -> Perfume:
        for key, value in data.items():
            # id and created_at are immutable
            if key in ("id", "created_at") or not hasattr(Perfume, key):
                continue
            setattr(perfume, key, _column_value(key, value))
        await session.flush()
        return perfume

    @staticmethod
    async def delete(session: AsyncSession, perfume: Perfume) -> None:
        await session.delete(perfume)
        await session.flush()

    @staticmethod
    async def get_all_source_urls(session: AsyncSession) -> List[str]:
        stmt = select(Perfume.source_url).where(Perfume.source_url.is_not(None))
        result = await session.execute(stmt)
        return [url for url in result.scalars().all() if url]
