import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Float, Text, JSON, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from scentbase.db.base import Base, TimestampMixin
from scentbase.db.types import GUID


class Perfume(TimestampMixin, Base):
    """A catalog entry, usually created from a scraped product page."""
    __tablename__ = "perfumes"
    __repr_attrs__ = ("id", "name", "brand")

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    brand: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    perfumer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    concentration: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=lambda: {"top": [], "heart": [], "base": []}
    )
    accords: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    scraped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
