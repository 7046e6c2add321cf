"""
Collections service routes: group gigs into public or private collections.

Public collections are visible to everyone; private ones only to their owner
(and admins). Only the owner (or an admin) can change a collection or its
membership.
"""

import logging
from typing import Any, Dict, List, Tuple

from flask import Blueprint, g, jsonify, request, Response

from gigbuddy.api import api_ok, pagination_meta, serialize_row, serialize_rows
from gigbuddy.auth_service.utils import (
    can_view_private,
    current_identity,
    require_ownership,
    token_optional,
    token_required,
)
from gigbuddy.collections_service.schemas import (
    SORT_COLUMNS,
    BulkGigsIn,
    CollectionCreate,
    CollectionListQuery,
    CollectionUpdate,
    MyCollectionsQuery,
)
from gigbuddy.database.db_connection import get_db
from gigbuddy.errors import AuthorizationError, ConflictError, NotFoundError
from gigbuddy.validation import PageQuery, parse_body, parse_query

collections_bp = Blueprint("collections", __name__)

COLLECTION_FIELDS = """
    c.id, c.name, c.description, c.user_id, c.is_public, c.created_at, c.updated_at,
    u.name AS owner_name,
    (SELECT COUNT(*) FROM collection_gigs cg WHERE cg.collection_id = c.id) AS gig_count
"""


# --- REQUEST LOGGING ---
@collections_bp.before_request
def before_request() -> None:
    logging.info(f"[Collections] Incoming {request.method} {request.path}")


@collections_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Collections] Response {response.status}")
    return response


# --- SHARED QUERY HELPERS ---
def fetch_collection_page(
    cur,
    conditions: List[str],
    params: List[Any],
    page: PageQuery,
    order_by: str = "c.created_at DESC",
) -> Dict[str, Any]:
    """
    Run a paginated collection query (count + page) on an open cursor.

    Returns:
        dict: {"collections": [...], "pagination": {...}}
    """
    where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

    cur.execute(f"SELECT COUNT(*) AS total FROM collections c{where};", params)
    total = cur.fetchone()["total"]

    cur.execute(
        f"""
        SELECT {COLLECTION_FIELDS}
        FROM collections c
        JOIN users u ON u.id = c.user_id
        {where}
        ORDER BY {order_by}, c.id ASC
        LIMIT %s OFFSET %s;
        """,
        [*params, page.limit, page.offset],
    )
    rows = cur.fetchall()

    return {
        "collections": serialize_rows(rows),
        "pagination": pagination_meta(page.page, page.limit, total),
    }


def lock_collection_owner(cur, collection_id: int) -> int:
    """
    Lock the collection row for the rest of the transaction and return its owner id.

    Raises:
        NotFoundError: If the collection does not exist. Runs before any ownership check.
    """
    cur.execute("SELECT user_id FROM collections WHERE id = %s FOR UPDATE;", (collection_id,))
    row = cur.fetchone()
    if not row:
        raise NotFoundError("Collection not found")
    return row["user_id"]


def collection_stats(cur, collection_id: int) -> Dict[str, Any]:
    cur.execute(
        """
        SELECT COUNT(*) AS gig_count, MAX(added_at) AS last_added_at
        FROM collection_gigs
        WHERE collection_id = %s;
        """,
        (collection_id,),
    )
    return serialize_row(cur.fetchone())


def touch_collection(cur, collection_id: int) -> None:
    cur.execute("UPDATE collections SET updated_at = CURRENT_TIMESTAMP WHERE id = %s;", (collection_id,))


# --- LIST PUBLIC COLLECTIONS ---
@collections_bp.route("", methods=["GET"])
def list_collections() -> Tuple[Response, int]:
    """
    Return public collections with owner name and gig count.

    Query params: page, limit, user_id, search, sort (name|created_at|updated_at).
    """
    query = parse_query(CollectionListQuery)

    conditions = ["c.is_public = TRUE"]
    params: List[Any] = []
    if query.user_id:
        conditions.append("c.user_id = %s")
        params.append(query.user_id)
    if query.search:
        conditions.append("c.name ILIKE %s")
        params.append(f"%{query.search}%")

    with get_db() as conn:
        with conn.cursor() as cur:
            data = fetch_collection_page(cur, conditions, params, query, SORT_COLUMNS[query.sort])

    return jsonify(api_ok(data)), 200


# --- MY COLLECTIONS ---
@collections_bp.route("/my", methods=["GET"])
@token_required
def my_collections() -> Tuple[Response, int]:
    """
    The caller's collections, public and private.
    Use include_private / include_public to narrow the list.
    """
    query = parse_query(MyCollectionsQuery)

    conditions = ["c.user_id = %s"]
    params: List[Any] = [g.identity.id]
    if not query.include_private and not query.include_public:
        conditions.append("FALSE")
    elif not query.include_private:
        conditions.append("c.is_public = TRUE")
    elif not query.include_public:
        conditions.append("c.is_public = FALSE")

    with get_db() as conn:
        with conn.cursor() as cur:
            data = fetch_collection_page(cur, conditions, params, query, "c.updated_at DESC")

    return jsonify(api_ok(data)), 200


# --- GET COLLECTION ---
@collections_bp.route("/<int:collection_id>", methods=["GET"])
@token_optional
def get_collection(collection_id: int) -> Tuple[Response, int]:
    """
    Get a collection with its gigs and stats.

    Returns:
        200: Collection object with "gigs" and "stats".
        403: Private collection, caller is not the owner.
        404: Collection not found.
    """
    gigs_sql = """
        SELECT g.id, g.title, g.venue, g.event_date, g.genre, g.price,
               g.image_url, g.status, g.user_id, cg.added_at
        FROM collection_gigs cg
        JOIN gigs g ON g.id = cg.gig_id
        WHERE cg.collection_id = %s
        ORDER BY cg.added_at DESC, g.id ASC;
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {COLLECTION_FIELDS}
                FROM collections c
                JOIN users u ON u.id = c.user_id
                WHERE c.id = %s;
                """,
                (collection_id,),
            )
            collection = cur.fetchone()
            if not collection:
                raise NotFoundError("Collection not found")

            # Privacy Check
            if not collection["is_public"] and not can_view_private(current_identity(), collection["user_id"]):
                raise AuthorizationError("collection is private", code="COLLECTION_PRIVATE")

            cur.execute(gigs_sql, (collection_id,))
            gigs = serialize_rows(cur.fetchall())

    result = serialize_row(collection)
    result["gigs"] = gigs
    result["stats"] = {
        "gig_count": len(gigs),
        "last_added_at": max((gig["added_at"] for gig in gigs), default=None),
    }
    return jsonify(api_ok(result)), 200


# --- CREATE COLLECTION ---
@collections_bp.route("", methods=["POST"])
@token_required
def create_collection() -> Tuple[Response, int]:
    """
    Create a collection owned by the caller.

    Returns:
        201: The created collection.
        400: Validation error.
        409: The caller already has a collection with this name.
    """
    payload = parse_body(CollectionCreate)

    sql = f"""
        WITH c AS (
            INSERT INTO collections (name, description, is_public, user_id)
            VALUES (%s, %s, %s, %s)
            RETURNING *
        )
        SELECT {COLLECTION_FIELDS}
        FROM c
        JOIN users u ON u.id = c.user_id;
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (payload.name, payload.description, payload.is_public, g.identity.id))
            collection = cur.fetchone()

    logging.info(f"[Collections] User {g.identity.id} created collection {collection['id']}")
    return jsonify(api_ok(serialize_row(collection), "Collection created successfully")), 201


# --- UPDATE COLLECTION ---
@collections_bp.route("/<int:collection_id>", methods=["PUT"])
@token_required
def update_collection(collection_id: int) -> Tuple[Response, int]:
    """
    Rename, re-describe, or change the visibility of a collection.

    Returns:
        200: The updated collection.
        403: Not the owner.
        404: Collection not found (checked before ownership).
        409: Name already used by another of the owner's collections.
    """
    payload = parse_body(CollectionUpdate)
    changes = payload.model_dump(exclude_unset=True)

    set_clause = ", ".join(f"{k} = %s" for k in changes)
    set_clause += ", updated_at = CURRENT_TIMESTAMP"

    sql = f"""
        WITH c AS (
            UPDATE collections SET {set_clause}
            WHERE id = %s
            RETURNING *
        )
        SELECT {COLLECTION_FIELDS}
        FROM c
        JOIN users u ON u.id = c.user_id;
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_collection_owner(cur, collection_id)
            require_ownership(g.identity, owner_id)

            cur.execute(sql, [*changes.values(), collection_id])
            collection = cur.fetchone()

    return jsonify(api_ok(serialize_row(collection), "Collection updated successfully")), 200


# --- DELETE COLLECTION ---
@collections_bp.route("/<int:collection_id>", methods=["DELETE"])
@token_required
def delete_collection(collection_id: int) -> Tuple[Response, int]:
    """
    Delete a collection and all of its membership rows in one transaction.
    The gigs themselves are untouched.
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_collection_owner(cur, collection_id)
            require_ownership(g.identity, owner_id)

            cur.execute("DELETE FROM collection_gigs WHERE collection_id = %s;", (collection_id,))
            removed = cur.rowcount
            cur.execute("DELETE FROM collections WHERE id = %s;", (collection_id,))

    logging.info(f"[Collections] User {g.identity.id} deleted collection {collection_id}")
    return jsonify(api_ok(
        {"id": collection_id, "removed_gigs": removed},
        "Collection deleted successfully",
    )), 200


# --- COLLECTION MEMBERSHIP ---
@collections_bp.route("/<int:collection_id>/gigs/<int:gig_id>", methods=["POST"])
@token_required
def add_gig(collection_id: int, gig_id: int) -> Tuple[Response, int]:
    """
    Add a gig to a collection.

    Returns:
        201: Membership created, with updated collection stats.
        403: Not the collection owner.
        404: Collection or gig not found.
        409: Gig already in collection (no duplicate row is created).
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_collection_owner(cur, collection_id)
            require_ownership(g.identity, owner_id)

            cur.execute("SELECT id FROM gigs WHERE id = %s;", (gig_id,))
            if not cur.fetchone():
                raise NotFoundError("Gig not found")

            cur.execute(
                """
                INSERT INTO collection_gigs (collection_id, gig_id)
                VALUES (%s, %s)
                ON CONFLICT (collection_id, gig_id) DO NOTHING
                RETURNING added_at;
                """,
                (collection_id, gig_id),
            )
            if not cur.fetchone():
                raise ConflictError("Gig already in collection", code="DUPLICATE")

            touch_collection(cur, collection_id)
            stats = collection_stats(cur, collection_id)

    return jsonify(api_ok(
        {"collection_id": collection_id, "gig_id": gig_id, "stats": stats},
        "Gig added to collection",
    )), 201


@collections_bp.route("/<int:collection_id>/gigs/<int:gig_id>", methods=["DELETE"])
@token_required
def remove_gig(collection_id: int, gig_id: int) -> Tuple[Response, int]:
    """
    Remove a gig from a collection.

    Returns:
        200: Membership removed, with updated collection stats.
        403: Not the collection owner.
        404: Collection not found, or the gig is not in it.
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_collection_owner(cur, collection_id)
            require_ownership(g.identity, owner_id)

            cur.execute(
                "DELETE FROM collection_gigs WHERE collection_id = %s AND gig_id = %s RETURNING gig_id;",
                (collection_id, gig_id),
            )
            if not cur.fetchone():
                raise NotFoundError("Gig is not in this collection")

            touch_collection(cur, collection_id)
            stats = collection_stats(cur, collection_id)

    return jsonify(api_ok(
        {"collection_id": collection_id, "gig_id": gig_id, "stats": stats},
        "Gig removed from collection",
    )), 200


@collections_bp.route("/<int:collection_id>/gigs/bulk", methods=["POST"])
@token_required
def add_gigs_bulk(collection_id: int) -> Tuple[Response, int]:
    """
    Add several gigs at once. Gigs already in the collection are skipped.
    Either every listed gig exists and the batch is applied, or nothing is.
    """
    payload = parse_body(BulkGigsIn)

    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_collection_owner(cur, collection_id)
            require_ownership(g.identity, owner_id)

            cur.execute("SELECT id FROM gigs WHERE id = ANY(%s);", (payload.gig_ids,))
            found = {row["id"] for row in cur.fetchall()}
            missing = [i for i in payload.gig_ids if i not in found]
            if missing:
                raise NotFoundError(
                    "Gig not found",
                    details=[{"field": "gig_ids", "message": f"Unknown gig ids: {missing}"}],
                )

            cur.execute(
                """
                INSERT INTO collection_gigs (collection_id, gig_id)
                SELECT %s, gig_id FROM unnest(%s::int[]) AS gig_id
                ON CONFLICT (collection_id, gig_id) DO NOTHING
                RETURNING gig_id;
                """,
                (collection_id, payload.gig_ids),
            )
            added = [row["gig_id"] for row in cur.fetchall()]
            added_set = set(added)
            skipped = [i for i in payload.gig_ids if i not in added_set]

            if added:
                touch_collection(cur, collection_id)
            stats = collection_stats(cur, collection_id)

    return jsonify(api_ok({"added": added, "skipped": skipped, "stats": stats})), 200


@collections_bp.route("/<int:collection_id>/gigs/bulk", methods=["DELETE"])
@token_required
def remove_gigs_bulk(collection_id: int) -> Tuple[Response, int]:
    """
    Remove several gigs at once. Ids that are not in the collection are ignored.
    """
    payload = parse_body(BulkGigsIn)

    with get_db() as conn:
        with conn.cursor() as cur:
            owner_id = lock_collection_owner(cur, collection_id)
            require_ownership(g.identity, owner_id)

            cur.execute(
                "DELETE FROM collection_gigs WHERE collection_id = %s AND gig_id = ANY(%s) RETURNING gig_id;",
                (collection_id, payload.gig_ids),
            )
            removed = [row["gig_id"] for row in cur.fetchall()]

            if removed:
                touch_collection(cur, collection_id)
            stats = collection_stats(cur, collection_id)

    return jsonify(api_ok({"removed": removed, "stats": stats})), 200
