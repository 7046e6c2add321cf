"""
Users service routes: public profiles, a user's gigs and collections,
profile statistics, and profile updates.

Public responses never include email addresses or password hashes.
"""

import logging
from typing import Any, List, Tuple

from flask import Blueprint, g, jsonify, request, Response
from psycopg2.extras import Json

from gigbuddy.api import api_ok, pagination_meta, serialize_row, serialize_rows
from gigbuddy.auth_service.store import PRIVATE_USER_COLUMNS, PUBLIC_USER_COLUMNS
from gigbuddy.auth_service.utils import (
    can_view_private,
    current_identity,
    require_ownership,
    token_optional,
    token_required,
)
from gigbuddy.collections_service.routes import fetch_collection_page
from gigbuddy.database.db_connection import get_db
from gigbuddy.errors import NotFoundError
from gigbuddy.gigs_service.routes import fetch_gig_page
from gigbuddy.gigs_service.schemas import UserGigsQuery
from gigbuddy.users_service.schemas import SORT_COLUMNS, ProfileUpdate, UserListQuery
from gigbuddy.validation import PageQuery, parse_body, parse_query

users_bp = Blueprint("users", __name__)

PUBLIC_PROFILE_FIELDS = ", ".join(f"u.{col.strip()}" for col in PUBLIC_USER_COLUMNS.split(",")) + """,
    (SELECT COUNT(*) FROM gigs WHERE gigs.user_id = u.id) AS gigs_count,
    (SELECT COUNT(*) FROM collections
      WHERE collections.user_id = u.id AND collections.is_public) AS collections_count
"""


# --- REQUEST LOGGING ---
@users_bp.before_request
def before_request() -> None:
    logging.info(f"[Users] Incoming {request.method} {request.path}")


@users_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Users] Response {response.status}")
    return response


def ensure_user_exists(cur, user_id: int, lock: bool = False) -> None:
    sql = "SELECT id FROM users WHERE id = %s"
    sql += " FOR UPDATE;" if lock else ";"
    cur.execute(sql, (user_id,))
    if not cur.fetchone():
        raise NotFoundError("User not found")


# --- LIST USERS ---
@users_bp.route("", methods=["GET"])
def list_users() -> Tuple[Response, int]:
    """
    Public user directory.

    Query params: page, limit, search (name), location,
    sort (name|created_at|gigs_count).
    """
    query = parse_query(UserListQuery)

    conditions: List[str] = []
    params: List[Any] = []
    if query.search:
        conditions.append("u.name ILIKE %s")
        params.append(f"%{query.search}%")
    if query.location:
        conditions.append("u.location ILIKE %s")
        params.append(f"%{query.location}%")

    where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(f"SELECT COUNT(*) AS total FROM users u{where};", params)
            total = cur.fetchone()["total"]

            cur.execute(
                f"""
                SELECT {PUBLIC_PROFILE_FIELDS}
                FROM users u
                {where}
                ORDER BY {SORT_COLUMNS[query.sort]}, u.id ASC
                LIMIT %s OFFSET %s;
                """,
                [*params, query.limit, query.offset],
            )
            users = serialize_rows(cur.fetchall())

    return jsonify(api_ok({
        "users": users,
        "pagination": pagination_meta(query.page, query.limit, total),
    })), 200


# --- GET USER ---
@users_bp.route("/<int:user_id>", methods=["GET"])
def get_user(user_id: int) -> Tuple[Response, int]:
    """
    Public-facing profile for a user, with gig and collection counts.

    Returns:
        200: Profile object (no email).
        404: User not found.
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(f"SELECT {PUBLIC_PROFILE_FIELDS} FROM users u WHERE u.id = %s;", (user_id,))
            profile = cur.fetchone()

    if not profile:
        raise NotFoundError("User not found")

    return jsonify(api_ok(serialize_row(profile))), 200


# --- USER'S GIGS ---
@users_bp.route("/<int:user_id>/gigs", methods=["GET"])
def get_user_gigs(user_id: int) -> Tuple[Response, int]:
    """
    Gigs published by a user, soonest first. ?upcoming=true hides past gigs.
    """
    query = parse_query(UserGigsQuery)
    conditions = ["g.user_id = %s"]
    if query.upcoming:
        conditions.append("g.event_date >= CURRENT_TIMESTAMP")

    with get_db() as conn:
        with conn.cursor() as cur:
            ensure_user_exists(cur, user_id)
            data = fetch_gig_page(cur, conditions, [user_id], query)

    return jsonify(api_ok(data)), 200


# --- USER'S COLLECTIONS ---
@users_bp.route("/<int:user_id>/collections", methods=["GET"])
@token_optional
def get_user_collections(user_id: int) -> Tuple[Response, int]:
    """
    A user's public collections. The user themself (or an admin) also sees
    the private ones.
    """
    query = parse_query(PageQuery)
    conditions = ["c.user_id = %s"]
    if not can_view_private(current_identity(), user_id):
        conditions.append("c.is_public = TRUE")

    with get_db() as conn:
        with conn.cursor() as cur:
            ensure_user_exists(cur, user_id)
            data = fetch_collection_page(cur, conditions, [user_id], query, "c.updated_at DESC")

    return jsonify(api_ok(data)), 200


# --- USER STATS ---
@users_bp.route("/<int:user_id>/stats", methods=["GET"])
def get_user_stats(user_id: int) -> Tuple[Response, int]:
    """
    Activity statistics for a user.

    Returns:
        200: total_gigs, upcoming_gigs, total_collections, public_collections,
             gigs_in_collections, member_since, last_activity.
        404: User not found.
    """
    sql = """
        SELECT
            u.created_at AS member_since,
            (SELECT COUNT(*) FROM gigs WHERE user_id = u.id) AS total_gigs,
            (SELECT COUNT(*) FROM gigs
              WHERE user_id = u.id AND event_date >= CURRENT_TIMESTAMP) AS upcoming_gigs,
            (SELECT COUNT(*) FROM collections WHERE user_id = u.id) AS total_collections,
            (SELECT COUNT(*) FROM collections
              WHERE user_id = u.id AND is_public) AS public_collections,
            (SELECT COUNT(*) FROM collection_gigs cg
              JOIN collections c ON c.id = cg.collection_id
              WHERE c.user_id = u.id) AS gigs_in_collections,
            GREATEST(
                u.updated_at,
                (SELECT MAX(updated_at) FROM gigs WHERE user_id = u.id),
                (SELECT MAX(updated_at) FROM collections WHERE user_id = u.id)
            ) AS last_activity
        FROM users u
        WHERE u.id = %s;
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (user_id,))
            stats = cur.fetchone()

    if not stats:
        raise NotFoundError("User not found")

    return jsonify(api_ok(serialize_row(stats))), 200


# --- UPDATE PROFILE ---
@users_bp.route("/<int:user_id>", methods=["PUT"])
@token_required
def update_user(user_id: int) -> Tuple[Response, int]:
    """
    Update a profile. Only the user themself or an admin may do this.

    Allowed fields: name, bio, location, website_url, avatar_url, social_links.

    Returns:
        200: Updated private profile (never the password hash).
        400: Validation error.
        403: Not this user's profile.
        404: User not found (checked before ownership).
    """
    payload = parse_body(ProfileUpdate)
    changes = payload.model_dump(exclude_unset=True)
    if "social_links" in changes:
        changes["social_links"] = Json(changes["social_links"] or {})

    set_clause = ", ".join(f"{k} = %s" for k in changes)
    set_clause += ", updated_at = CURRENT_TIMESTAMP"

    sql = f"UPDATE users SET {set_clause} WHERE id = %s RETURNING {PRIVATE_USER_COLUMNS};"

    with get_db() as conn:
        with conn.cursor() as cur:
            ensure_user_exists(cur, user_id, lock=True)
            require_ownership(g.identity, user_id)

            cur.execute(sql, [*changes.values(), user_id])
            user = cur.fetchone()

    logging.info(f"[Users] Profile {user_id} updated by {g.identity.id}")
    return jsonify(api_ok(serialize_row(user), "Profile updated successfully")), 200
