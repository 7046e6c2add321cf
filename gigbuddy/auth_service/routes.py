"""
Authentication service route handlers.

Provides routes for:
- User registration
- User login
- Logout (client-side; tokens are stateless)
- Profile retrieval (/me)
- Admin role assignment

All JWT logic is delegated to `auth_service.utils`, all credential storage to
`auth_service.store`.
"""

import logging
from typing import Tuple

from flask import Blueprint, current_app, g, jsonify, request, Response

from gigbuddy.api import api_ok, serialize_row
from gigbuddy.auth_service.schemas import LoginIn, RegisterIn, SetRoleIn
from gigbuddy.auth_service.store import (
    PRIVATE_USER_COLUMNS,
    create_user,
    dummy_hash,
    find_user_by_email,
    find_user_by_id,
    hash_password,
    verify_password,
    without_secret,
)
from gigbuddy.auth_service.utils import admin_required, create_token, token_required
from gigbuddy.database.db_connection import get_db
from gigbuddy.errors import AuthenticationError, NotFoundError
from gigbuddy.extensions import limiter
from gigbuddy.validation import parse_body

auth_bp = Blueprint("auth", __name__)


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Auth] Response {response.status}")
    return response


def _register_limit() -> str:
    return current_app.config["REGISTER_RATE_LIMIT"]


def _login_limit() -> str:
    return current_app.config["LOGIN_RATE_LIMIT"]


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
@limiter.limit(_register_limit)
def register() -> Tuple[Response, int]:
    """
    Register a new member.

    Expects a JSON body with:
    - name (str): 2-50 characters.
    - email (str): Unique email address.
    - password (str): At least 6 characters with upper, lower and a digit.
    - bio, location, website_url, avatar_url (optional)

    Returns:
        201: The new user (no password hash) and a JWT for immediate use.
        400: Validation failed.
        409: Email already registered.
        429: Too many registration attempts from this client.
    """
    payload = parse_body(RegisterIn)
    profile = payload.model_dump(include={"bio", "location", "website_url", "avatar_url"})
    # Hash outside the transaction; bcrypt must not hold a pooled connection
    password_hash = hash_password(payload.password)

    with get_db() as conn:
        with conn.cursor() as cur:
            user = create_user(cur, payload.email, password_hash, payload.name, profile)

    token = create_token(user["id"], user["email"], user["role"])
    logging.info(f"[Auth] Registered user {user['id']}")

    return jsonify(api_ok(
        {"user": serialize_row(user), "token": token},
        "User registered successfully",
    )), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
@limiter.limit(_login_limit)
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Returns:
        200: The user and a JWT token.
        400: Missing or malformed credentials.
        401: Invalid credentials (wrong password or unknown email).
        429: Too many login attempts from this client.
    """
    payload = parse_body(LoginIn)

    with get_db() as conn:
        with conn.cursor() as cur:
            user = find_user_by_email(cur, payload.email)

    # Same answer, and the same bcrypt cost, for unknown email and wrong password
    stored_hash = user["password_hash"] if user else dummy_hash()
    if not verify_password(payload.password, stored_hash) or not user:
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    user = without_secret(user)
    token = create_token(user["id"], user["email"], user["role"])

    return jsonify(api_ok({"user": serialize_row(user), "token": token}, "Login successful")), 200


# --- LOGOUT ---
@auth_bp.route("/logout", methods=["POST"])
def logout() -> Tuple[Response, int]:
    """
    Tokens are not stored server-side, so the client simply discards its token.
    """
    return jsonify(api_ok(message="Logged out successfully")), 200


# --- GET CURRENT USER ---
@auth_bp.route("/me", methods=["GET"])
@token_required
def get_current_user() -> Tuple[Response, int]:
    """
    Retrieve the current user's private profile.

    Returns:
        200: User profile object (includes email, never the hash).
        401/403: Authentication failure.
        404: User not found in DB (account removed after the token was issued).
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            user = find_user_by_id(cur, g.identity.id)

    if not user:
        raise NotFoundError("User not found")

    return jsonify(api_ok(serialize_row(user))), 200


# --- SET ROLE (ADMIN ONLY) ---
@auth_bp.route("/set-role", methods=["POST"])
@admin_required
def set_role() -> Tuple[Response, int]:
    """
    Admin-only endpoint to promote or demote a user's role.

    Expects JSON:
        { "user_id": int, "role": "member" | "admin" }

    Returns:
        200: The updated user.
        400: Invalid role or user_id.
        401/403: Unauthorized.
        404: Unknown user.
    """
    payload = parse_body(SetRoleIn)

    sql = f"""
        UPDATE users SET role = %s, updated_at = CURRENT_TIMESTAMP
        WHERE id = %s
        RETURNING {PRIVATE_USER_COLUMNS};
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (payload.role, payload.user_id))
            user = cur.fetchone()

    if not user:
        raise NotFoundError("User not found")

    logging.info(f"[Auth] User {payload.user_id} role set to {payload.role} by {g.identity.id}")
    return jsonify(api_ok(serialize_row(user), "Role updated")), 200
