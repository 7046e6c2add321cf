"""
Request contracts for the collection routes.
"""

from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from gigbuddy.validation import PageQuery, RequestModel

SORT_COLUMNS = {
    "name": "c.name ASC",
    "created_at": "c.created_at DESC",
    "updated_at": "c.updated_at DESC",
}
BULK_MAX = 50


class CollectionCreate(RequestModel):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_public: bool = False


class CollectionUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_public: Optional[bool] = None

    @model_validator(mode="after")
    def not_empty(self) -> "CollectionUpdate":
        if not self.model_fields_set:
            raise ValueError("No valid fields provided")
        for name in ("name", "is_public"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class BulkGigsIn(RequestModel):
    gig_ids: List[int] = Field(min_length=1, max_length=BULK_MAX)

    @field_validator("gig_ids")
    @classmethod
    def positive_unique(cls, v: List[int]) -> List[int]:
        if any(i < 1 for i in v):
            raise ValueError("gig_ids must be positive integers")
        # Keep first occurrence order
        return list(dict.fromkeys(v))


class CollectionListQuery(PageQuery):
    user_id: Optional[int] = Field(None, ge=1)
    search: Optional[str] = Field(None, max_length=100)
    sort: str = "created_at"

    @field_validator("sort")
    @classmethod
    def valid_sort(cls, v: str) -> str:
        if v not in SORT_COLUMNS:
            raise ValueError(f"sort must be one of: {', '.join(SORT_COLUMNS)}")
        return v


class MyCollectionsQuery(PageQuery):
    include_private: bool = True
    include_public: bool = True
