"""
Credential store access.

All reads and writes of the users table that involve credentials go through
here. Functions take an open cursor so they join the caller's transaction.
The password hash only ever leaves this module through `find_user_by_email`,
whose result is used for the login comparison and never returned to a client.
"""

from functools import lru_cache
from typing import Any, Dict, Optional

import bcrypt
from psycopg2.extras import Json

BCRYPT_ROUNDS = 12

PUBLIC_USER_COLUMNS = (
    "id, name, bio, avatar_url, location, website_url, social_links, role, created_at"
)
PRIVATE_USER_COLUMNS = (
    "id, name, email, bio, avatar_url, location, website_url, social_links, "
    "role, created_at, updated_at"
)
PROFILE_FIELDS = ("bio", "avatar_url", "location", "website_url", "social_links")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def hash_password(plaintext: str) -> str:
    """Salted bcrypt hash with a fixed work factor."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")


def verify_password(plaintext: str, password_hash: str) -> bool:
    """
    Compare a candidate password with a stored hash.
    bcrypt.checkpw compares in constant time; a malformed hash is a mismatch.
    """
    if not plaintext or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """
    A hash no password is checked against successfully.
    Login verifies unknown emails against it so both paths pay the bcrypt cost.
    """
    return hash_password("gigbuddy-no-such-user")


def create_user(
    cur,
    email: str,
    password_hash: str,
    name: str,
    profile: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Insert a new member.

    Args:
        cur: Open cursor inside the caller's transaction.
        email (str): Email address; normalized before storing.
        password_hash (str): Output of `hash_password`. Hash before opening the
            transaction so the bcrypt work does not hold a pooled connection.
        name (str): Display name.
        profile (dict, optional): Any of bio, avatar_url, location,
            website_url, social_links.

    Returns:
        dict: The created user without the password hash.

    Raises:
        psycopg2.errors.UniqueViolation: If the email is already registered.
    """
    profile = {k: v for k, v in (profile or {}).items() if k in PROFILE_FIELDS}
    social_links = profile.get("social_links") or {}

    sql = f"""
        INSERT INTO users (name, email, password_hash, bio, avatar_url, location, website_url, social_links)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING {PRIVATE_USER_COLUMNS};
    """
    cur.execute(sql, (
        name,
        normalize_email(email),
        password_hash,
        profile.get("bio"),
        profile.get("avatar_url"),
        profile.get("location"),
        profile.get("website_url"),
        Json(social_links),
    ))
    return dict(cur.fetchone())


def find_user_by_email(cur, email: str) -> Optional[Dict[str, Any]]:
    """Full record including password_hash. For login comparison only."""
    cur.execute(
        f"SELECT {PRIVATE_USER_COLUMNS}, password_hash FROM users WHERE email = %s;",
        (normalize_email(email),),
    )
    row = cur.fetchone()
    return dict(row) if row else None


def find_user_by_id(cur, user_id: int) -> Optional[Dict[str, Any]]:
    """Record without the password hash, for profile responses."""
    cur.execute(f"SELECT {PRIVATE_USER_COLUMNS} FROM users WHERE id = %s;", (user_id,))
    row = cur.fetchone()
    return dict(row) if row else None


def without_secret(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password_hash"}
