"""
Request contracts for the user routes.
"""

from typing import Dict, Optional

from pydantic import Field, field_validator, model_validator

from gigbuddy.validation import PageQuery, RequestModel, UrlStr, check_url

SOCIAL_NETWORKS = (
    "instagram", "twitter", "facebook", "youtube",
    "spotify", "soundcloud", "bandcamp", "tiktok",
)
SORT_COLUMNS = {
    "name": "u.name ASC",
    "created_at": "u.created_at DESC",
    "gigs_count": "gigs_count DESC",
}


class ProfileUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=100)
    website_url: UrlStr = None
    avatar_url: UrlStr = None
    social_links: Optional[Dict[str, str]] = None

    @field_validator("social_links")
    @classmethod
    def known_networks(cls, v: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if v is None:
            return None
        cleaned = {}
        for network, url in v.items():
            key = network.strip().lower()
            if key not in SOCIAL_NETWORKS:
                raise ValueError(f"Unsupported social network '{network}'. Use: {', '.join(SOCIAL_NETWORKS)}")
            url = check_url((url or "").strip())
            # Empty value removes the link
            if url:
                cleaned[key] = url
        return cleaned

    @model_validator(mode="after")
    def not_empty(self) -> "ProfileUpdate":
        if not self.model_fields_set:
            raise ValueError("No valid fields provided")
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("name cannot be null")
        return self


class UserListQuery(PageQuery):
    search: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=100)
    sort: str = "created_at"

    @field_validator("sort")
    @classmethod
    def valid_sort(cls, v: str) -> str:
        if v not in SORT_COLUMNS:
            raise ValueError(f"sort must be one of: {', '.join(SORT_COLUMNS)}")
        return v
