"""
Request contracts for the gig routes.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from gigbuddy.validation import PageQuery, RequestModel, UrlStr

GENRES = [
    {"name": "Rock", "slug": "rock"},
    {"name": "Pop", "slug": "pop"},
    {"name": "Jazz", "slug": "jazz"},
    {"name": "Blues", "slug": "blues"},
    {"name": "Folk", "slug": "folk"},
    {"name": "Electronic", "slug": "electronic"},
    {"name": "Hip Hop", "slug": "hip-hop"},
    {"name": "Country", "slug": "country"},
    {"name": "Classical", "slug": "classical"},
    {"name": "Punk", "slug": "punk"},
    {"name": "Metal", "slug": "metal"},
    {"name": "Indie", "slug": "indie"},
    {"name": "Alternative", "slug": "alternative"},
    {"name": "Acoustic", "slug": "acoustic"},
    {"name": "Reggae", "slug": "reggae"},
    {"name": "R&B", "slug": "rb"},
    {"name": "Soul", "slug": "soul"},
    {"name": "Funk", "slug": "funk"},
    {"name": "World Music", "slug": "world-music"},
    {"name": "Experimental", "slug": "experimental"},
]
_GENRE_LOOKUP = {}
for _g in GENRES:
    _GENRE_LOOKUP[_g["name"].lower()] = _g["name"]
    _GENRE_LOOKUP[_g["slug"]] = _g["name"]

VALID_STATUSES = ["active", "cancelled", "sold_out"]
SORT_COLUMNS = {
    "date": "g.event_date",
    "title": "g.title",
    "created_at": "g.created_at",
    "price": "g.price",
}


def canonical_genre(value: str) -> str:
    """Accept a genre by name (any case) or slug; return the canonical name."""
    genre = _GENRE_LOOKUP.get((value or "").strip().lower())
    if genre is None:
        raise ValueError("Please select a valid genre")
    return genre


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_future(value: datetime) -> datetime:
    value = _as_utc(value)
    if value < datetime.now(timezone.utc):
        raise ValueError("Gig date cannot be in the past")
    return value


def check_status(value: str) -> str:
    if value not in VALID_STATUSES:
        raise ValueError(f"status must be one of: {', '.join(VALID_STATUSES)}")
    return value


class GigCreate(RequestModel):
    title: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    venue: str = Field(min_length=2, max_length=100)
    event_date: datetime
    genre: str
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    image_url: UrlStr = None
    ticket_url: UrlStr = None
    status: str = "active"

    @field_validator("genre")
    @classmethod
    def valid_genre(cls, v: str) -> str:
        return canonical_genre(v)

    @field_validator("event_date")
    @classmethod
    def future_date(cls, v: datetime) -> datetime:
        return check_future(v)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        return check_status(v)


class GigUpdate(RequestModel):
    """Partial update: only the fields present in the body change."""

    title: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    venue: Optional[str] = Field(None, min_length=2, max_length=100)
    event_date: Optional[datetime] = None
    genre: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: UrlStr = None
    ticket_url: UrlStr = None
    status: Optional[str] = None

    @field_validator("genre")
    @classmethod
    def valid_genre(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else canonical_genre(v)

    @field_validator("event_date")
    @classmethod
    def future_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else check_future(v)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else check_status(v)

    @model_validator(mode="after")
    def not_empty(self) -> "GigUpdate":
        if not self.model_fields_set:
            raise ValueError("No valid fields provided")
        for name in ("title", "venue", "event_date", "genre", "price", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class GigListQuery(PageQuery):
    genre: Optional[str] = None
    search: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    upcoming: bool = False
    sort: str = "date"
    order: str = "asc"

    @field_validator("genre")
    @classmethod
    def valid_genre(cls, v: Optional[str]) -> Optional[str]:
        return None if not v else canonical_genre(v)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        return None if not v else check_status(v)

    @field_validator("sort")
    @classmethod
    def valid_sort(cls, v: str) -> str:
        if v not in SORT_COLUMNS:
            raise ValueError(f"sort must be one of: {', '.join(SORT_COLUMNS)}")
        return v

    @field_validator("order")
    @classmethod
    def valid_order(cls, v: str) -> str:
        v = v.lower()
        if v not in ("asc", "desc"):
            raise ValueError("order must be asc or desc")
        return v

    @model_validator(mode="after")
    def ranges(self) -> "GigListQuery":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        if self.date_from and self.date_to and _as_utc(self.date_from) > _as_utc(self.date_to):
            raise ValueError("date_from must be before date_to")
        return self


class UserGigsQuery(PageQuery):
    upcoming: bool = False
