"""
Shared authentication helpers.
Provides token creation, verification, route decorators, and the ownership guard.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

import jwt
from flask import current_app, g, request

from gigbuddy.errors import AuthenticationError, AuthorizationError

TOKEN_TTL = timedelta(hours=24)

ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"
VALID_ROLES = (ROLE_MEMBER, ROLE_ADMIN)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as asserted by a verified token."""

    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def _secret() -> str:
    return current_app.config["JWT_SECRET"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


# --- JWT CREATION ---
def create_token(user_id: int, email: str, role: str, now: Optional[datetime] = None) -> str:
    """
    Generates a new JWT for a given user.

    Args:
        user_id (int): The unique ID of the user.
        email (str): The user's (normalized) email.
        role (str): The role of the user (member, admin).
        now (datetime, optional): Issue time; defaults to the current UTC time.

    Returns:
        str: Encoded JWT string, valid for 24 hours.
    """
    issued = now or datetime.now(timezone.utc)

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": issued,
        "exp": issued + TOKEN_TTL,
    }

    return jwt.encode(payload, _secret(), algorithm=_algorithm())


# --- JWT VALIDATION ---
def decode_token(token: str) -> Identity:
    """
    Verify a JWT's signature and expiry and return the identity it carries.

    Raises:
        AuthenticationError: TOKEN_EXPIRED if the token is past its exp,
            TOKEN_INVALID for any other verification failure.
    """
    try:
        payload = jwt.decode(
            token,
            _secret(),
            algorithms=[_algorithm()],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token expired", status_code=403, code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthenticationError("token invalid", status_code=403, code="TOKEN_INVALID")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("token invalid", status_code=403, code="TOKEN_INVALID")

    role = payload.get("role")
    email = payload.get("email")
    if role not in VALID_ROLES or not email:
        raise AuthenticationError("token invalid", status_code=403, code="TOKEN_INVALID")

    return Identity(id=user_id, email=email, role=role)


def bearer_token() -> Optional[str]:
    """Extract the token from `Authorization: Bearer <token>`, if any."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def verify_token_from_request() -> Identity:
    """
    Verify the JWT in the Authorization header.

    Returns:
        Identity: The caller's id, email and role.

    Raises:
        AuthenticationError: TOKEN_REQUIRED (401) if no bearer token is present,
            otherwise whatever `decode_token` raises.
    """
    token = bearer_token()
    if token is None:
        raise AuthenticationError("authentication required", status_code=401, code="TOKEN_REQUIRED")
    return decode_token(token)


def current_identity() -> Optional[Identity]:
    return g.get("identity")


# --- ROUTE DECORATORS ---
def token_required(fn: Callable) -> Callable:
    """Reject the request unless it carries a valid token; sets g.identity."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.identity = verify_token_from_request()
        return fn(*args, **kwargs)

    return wrapper


def token_optional(fn: Callable) -> Callable:
    """
    Personalize the request when a valid token is present.
    A missing or bad token is not an error; g.identity is simply None.
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            g.identity = verify_token_from_request()
        except AuthenticationError:
            g.identity = None
        return fn(*args, **kwargs)

    return wrapper


def admin_required(fn: Callable) -> Callable:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        identity = verify_token_from_request()
        if not identity.is_admin:
            raise AuthorizationError("admin privileges required", code="ADMIN_REQUIRED")
        g.identity = identity
        return fn(*args, **kwargs)

    return wrapper


# --- OWNERSHIP GUARD ---
def require_ownership(identity: Optional[Identity], owner_id: Optional[int]) -> None:
    """
    Allow the caller to act on a resource owned by `owner_id`.

    The caller must look the resource up first (and 404 if it is missing);
    this guard never touches the store.

    Raises:
        AuthenticationError: If there is no identity at all.
        AuthorizationError: OWNERSHIP_REQUIRED unless the caller owns the
            resource or is an admin.
    """
    if identity is None:
        raise AuthenticationError("authentication required", status_code=401, code="TOKEN_REQUIRED")
    if identity.is_admin:
        return
    if owner_id is None or identity.id != owner_id:
        raise AuthorizationError("ownership required", code="OWNERSHIP_REQUIRED")


def can_view_private(identity: Optional[Identity], owner_id: int) -> bool:
    return identity is not None and (identity.is_admin or identity.id == owner_id)
