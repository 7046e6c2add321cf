from datetime import datetime, timedelta, timezone

import pytest

from gigbuddy.auth_service.schemas import RegisterIn
from gigbuddy.collections_service.schemas import BulkGigsIn
from gigbuddy.errors import ValidationError
from gigbuddy.gigs_service.schemas import GigCreate, GigListQuery, canonical_genre
from gigbuddy.validation import PageQuery, check_url, validate


def test_canonical_genre_accepts_name_or_slug():
    assert canonical_genre("hip-hop") == "Hip Hop"
    assert canonical_genre("  JAZZ ") == "Jazz"
    assert canonical_genre("R&B") == "R&B"
    with pytest.raises(ValueError):
        canonical_genre("Polka")


def test_page_query_defaults_and_offset():
    page = validate(PageQuery, {"page": "3", "limit": "5"})
    assert page.offset == 10
    assert validate(PageQuery, {}).limit == 12


def test_naive_event_date_is_treated_as_utc():
    when = (datetime.now(timezone.utc) + timedelta(days=2)).replace(microsecond=0, tzinfo=None)
    gig = validate(GigCreate, {"title": "Show", "venue": "Hall", "event_date": when.isoformat(), "genre": "Rock"})
    assert gig.event_date.tzinfo is not None
    assert gig.price == 0


def test_price_range_must_be_ordered():
    with pytest.raises(ValidationError) as exc:
        validate(GigListQuery, {"min_price": "20", "max_price": "10"})
    assert exc.value.details[0]["message"] == "min_price must not exceed max_price"


def test_bulk_ids_are_deduplicated_in_order():
    assert validate(BulkGigsIn, {"gig_ids": [3, 1, 3, 2, 1]}).gig_ids == [3, 1, 2]
    with pytest.raises(ValidationError):
        validate(BulkGigsIn, {"gig_ids": list(range(1, 52))})


def test_register_strips_and_lowercases():
    user = validate(RegisterIn, {"name": "  Ann  ", "email": "ANN@GigBuddy.io", "password": "Abcde1"})
    assert user.name == "Ann"
    assert user.email == "ann@gigbuddy.io"


def test_password_over_72_bytes_is_rejected():
    with pytest.raises(ValidationError) as exc:
        validate(RegisterIn, {"name": "Ann", "email": "ann@gigbuddy.io", "password": "Aa1" + "x" * 70})
    assert exc.value.details[0]["field"] == "password"


def test_check_url():
    assert check_url("") is None
    assert check_url("https://example.com/a") == "https://example.com/a"
    with pytest.raises(ValueError):
        check_url("ftp//nope")
