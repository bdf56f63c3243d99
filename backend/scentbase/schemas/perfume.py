"""Schemas for scraped and stored perfume records."""
import enum
import uuid
from datetime import datetime
from typing import Optional, List

from pydantic import Field

from scentbase.db.base import utc_now
from scentbase.schemas.base import CamelModel


class Gender(str, enum.Enum):
    MASCULINE = "masculine"
    FEMININE = "feminine"
    UNISEX = "unisex"


class Accord(CamelModel):
    """One main-accord bar: a scent family and its relative strength."""
    name: str
    percentage: float = Field(default=0.0, ge=0, le=100)
    color: Optional[str] = None


class Notes(CamelModel):
    """Note pyramid, each level in page order."""
    top: List[str] = Field(default_factory=list)
    heart: List[str] = Field(default_factory=list)
    base: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.top or self.heart or self.base)


class ScrapedRecord(CamelModel):
    """Structured output of one product page scrape.

    ``name`` and ``brand`` may be empty straight out of the extractor; the
    scraper rejects such records before anyone else sees them.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str = ""
    brand: str = ""
    year: Optional[int] = None
    perfumer: Optional[str] = None
    gender: Gender = Gender.UNISEX
    concentration: Optional[str] = None
    notes: Notes = Field(default_factory=Notes)
    accords: List[Accord] = Field(default_factory=list)
    description: Optional[str] = None
    image_url: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    source_url: str = ""
    scraped_at: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# Fields a re-scrape refreshes on an existing record
SCRAPED_FIELDS = (
    "name",
    "brand",
    "year",
    "perfumer",
    "gender",
    "concentration",
    "notes",
    "accords",
    "description",
    "image_url",
    "rating",
    "scraped_at",
)
