"""
Gigs service routes: browse, create, read, update and delete gigs.

Anyone can browse gigs; only authenticated users can publish them, and only
a gig's owner (or an admin) can change or delete it.
"""

import logging
from typing import Any, Dict, List, Tuple

from flask import Blueprint, g, jsonify, request, Response

from gigbuddy.api import api_ok, pagination_meta, serialize_row, serialize_rows
from gigbuddy.auth_service.utils import require_ownership, token_optional, token_required
from gigbuddy.database.db_connection import get_db
from gigbuddy.errors import NotFoundError
from gigbuddy.gigs_service.schemas import (
    GENRES,
    SORT_COLUMNS,
    GigCreate,
    GigListQuery,
    GigUpdate,
    UserGigsQuery,
)
from gigbuddy.validation import PageQuery, parse_body, parse_query

gigs_bp = Blueprint("gigs", __name__)

GIG_FIELDS = """
    g.id, g.title, g.description, g.venue, g.event_date, g.genre, g.price,
    g.image_url, g.ticket_url, g.user_id, g.status, g.created_at, g.updated_at,
    u.name AS owner_name
"""

UPDATABLE_FIELDS = [
    "title", "description", "venue", "event_date", "genre",
    "price", "image_url", "ticket_url", "status",
]


# --- REQUEST LOGGING ---
@gigs_bp.before_request
def before_request() -> None:
    logging.info(f"[Gigs] Incoming {request.method} {request.path}")


@gigs_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Gigs] Response {response.status}")
    return response


# --- SHARED QUERY HELPERS ---
def gig_filters(query: GigListQuery) -> Tuple[List[str], List[Any]]:
    """
    Build WHERE conditions for the public gig listing.

    Returns:
        tuple: (conditions, params) ready to be joined with AND.
    """
    conditions: List[str] = []
    params: List[Any] = []

    if query.genre:
        conditions.append("g.genre = %s")
        params.append(query.genre)
    if query.search:
        conditions.append("(g.title ILIKE %s OR g.venue ILIKE %s)")
        pattern = f"%{query.search}%"
        params.extend([pattern, pattern])
    if query.status:
        conditions.append("g.status = %s")
        params.append(query.status)
    if query.date_from:
        conditions.append("g.event_date >= %s")
        params.append(query.date_from)
    if query.date_to:
        conditions.append("g.event_date <= %s")
        params.append(query.date_to)
    if query.min_price is not None:
        conditions.append("g.price >= %s")
        params.append(query.min_price)
    if query.max_price is not None:
        conditions.append("g.price <= %s")
        params.append(query.max_price)
    if query.upcoming:
        conditions.append("g.event_date >= CURRENT_TIMESTAMP")

    return conditions, params


def fetch_gig_page(
    cur,
    conditions: List[str],
    params: List[Any],
    page: PageQuery,
    order_by: str = "g.event_date ASC",
) -> Dict[str, Any]:
    """
    Run a paginated gig query (count + page) on an open cursor.

    Returns:
        dict: {"gigs": [...], "pagination": {...}}
    """
    where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

    cur.execute(f"SELECT COUNT(*) AS total FROM gigs g{where};", params)
    total = cur.fetchone()["total"]

    cur.execute(
        f"""
        SELECT {GIG_FIELDS}
        FROM gigs g
        JOIN users u ON u.id = g.user_id
        {where}
        ORDER BY {order_by}, g.id ASC
        LIMIT %s OFFSET %s;
        """,
        [*params, page.limit, page.offset],
    )
    rows = cur.fetchall()

    return {
        "gigs": serialize_rows(rows),
        "pagination": pagination_meta(page.page, page.limit, total),
    }


def lock_gig_owner(cur, gig_id: int) -> int:
    """
    Lock the gig row for the rest of the transaction and return its owner id.

    Raises:
        NotFoundError: If the gig does not exist. Runs before any ownership check.
    """
    cur.execute("SELECT user_id FROM gigs WHERE id = %s FOR UPDATE;", (gig_id,))
    row = cur.fetchone()
    if not row:
        raise NotFoundError("Gig not found")
    return row["user_id"]


# --- LIST GIGS ---
@gigs_bp.route("", methods=["GET"])
@token_optional
def list_gigs() -> Tuple[Response, int]:
    """
    Return all gigs with pagination and filtering. Public.

    Query params: page, limit, genre, search, status, date_from, date_to,
    min_price, max_price, upcoming, sort (date|title|created_at|price),
    order (asc|desc).

    Returns:
        200: { gigs: [...], pagination: {...} }
        400: Invalid query parameters.
    """
    query = parse_query(GigListQuery)
    conditions, params = gig_filters(query)
    order_by = f"{SORT_COLUMNS[query.sort]} {query.order.upper()}"

    with get_db() as conn:
        with conn.cursor() as cur:
            data = fetch_gig_page(cur, conditions, params, query, order_by)

    return jsonify(api_ok(data)), 200


@gigs_bp.route("/genres", methods=["GET"])
def list_genres() -> Tuple[Response, int]:
    """The fixed set of genres a gig can be filed under."""
    return jsonify(api_ok(GENRES)), 200


# --- MY GIGS ---
@gigs_bp.route("/my", methods=["GET"])
@token_required
def my_gigs() -> Tuple[Response, int]:
    """
    The authenticated user's own gigs, paginated, soonest first.
    """
    query = parse_query(UserGigsQuery)
    conditions = ["g.user_id = %s"]
    params: List[Any] = [g.identity.id]
    if query.upcoming:
        conditions.append("g.event_date >= CURRENT_TIMESTAMP")

    with get_db() as conn:
        with conn.cursor() as cur:
            data = fetch_gig_page(cur, conditions, params, query)

    return jsonify(api_ok(data)), 200


# --- GET GIG ---
@gigs_bp.route("/<int:gig_id>", methods=["GET"])
def get_gig(gig_id: int) -> Tuple[Response, int]:
    """
    Get a single gig by ID, with the owner's name.

    Returns:
        200: Gig object.
        404: Gig not found.
    """
    sql = f"""
        SELECT {GIG_FIELDS}
        FROM gigs g
        JOIN users u ON u.id = g.user_id
        WHERE g.id = %s;
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (gig_id,))
            gig = cur.fetchone()

    if not gig:
        raise NotFoundError("Gig not found")

    return jsonify(api_ok(serialize_row(gig))), 200


# --- CREATE GIG ---
@gigs_bp.route("", methods=["POST"])
@token_required
def create_gig() -> Tuple[Response, int]:
    """
    Publish a gig owned by the caller.

    Returns:
        201: The created gig.
        400: Validation error (including a date in the past or unknown genre).
        401/403: Authentication failure.
    """
    payload = parse_body(GigCreate)

    sql = f"""
        WITH g AS (
            INSERT INTO gigs (
                title, description, venue, event_date, genre,
                price, image_url, ticket_url, user_id, status
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        )
        SELECT {GIG_FIELDS}
        FROM g
        JOIN users u ON u.id = g.user_id;
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (
                payload.title, payload.description, payload.venue, payload.event_date,
                payload.genre, payload.price, payload.image_url, payload.ticket_url,
                g.identity.id, payload.status,
            ))
            gig = cur.fetchone()

    logging.info(f"[Gigs] User {g.identity.id} created gig {gig['id']}")
    return jsonify(api_ok(serialize_row(gig), "Gig created successfully")), 201


# --- UPDATE GIG ---
@gigs_bp.route("/<int:gig_id>", methods=["PUT"])
@token_required
def update_gig(gig_id: int) -> Tuple[Response, int]:
    """
    Update the given fields of a gig.

    Permission:
    - The gig's owner
    - OR an admin

    Returns:
        200: The updated gig.
        400: Validation error.
        403: Not the owner.
        404: Gig not found (checked before ownership).
    """
    payload = parse_body(GigUpdate)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if k in UPDATABLE_FIELDS}

    set_clause = ", ".join(f"{k} = %s" for k in changes)
    set_clause += ", updated_at = CURRENT_TIMESTAMP"

    sql = f"""
        WITH g AS (
            UPDATE gigs SET {set_clause}
            WHERE id = %s
            RETURNING *
        )
        SELECT {GIG_FIELDS}
        FROM g
        JOIN users u ON u.id = g.user_id;
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_gig_owner(cur, gig_id)
            require_ownership(g.identity, owner_id)

            cur.execute(sql, [*changes.values(), gig_id])
            gig = cur.fetchone()

    return jsonify(api_ok(serialize_row(gig), "Gig updated successfully")), 200


# --- DELETE GIG ---
@gigs_bp.route("/<int:gig_id>", methods=["DELETE"])
@token_required
def delete_gig(gig_id: int) -> Tuple[Response, int]:
    """
    Delete a gig if the caller owns it or is an admin.
    Its membership rows in every collection are removed with it.
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_gig_owner(cur, gig_id)
            require_ownership(g.identity, owner_id)

            cur.execute("SELECT COUNT(*) AS total FROM collection_gigs WHERE gig_id = %s;", (gig_id,))
            memberships = cur.fetchone()["total"]

            # collection_gigs rows go through ON DELETE CASCADE
            cur.execute("DELETE FROM gigs WHERE id = %s;", (gig_id,))

    logging.info(f"[Gigs] User {g.identity.id} deleted gig {gig_id} ({memberships} collection links)")
    return jsonify(api_ok(
        {"id": gig_id, "removed_from_collections": memberships},
        "Gig deleted successfully",
    )), 200
