"""
Response envelope helpers shared by every blueprint.

Success: { "success": true, "data": ..., "message": ... }
Error:   { "success": false, "error": ..., "code": ..., "details": [...] }
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional


def api_ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def api_error(
    error: str,
    code: Optional[str] = None,
    details: Optional[List[Dict[str, Any]]] = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": error}
    if code:
        body["code"] = code
    if message:
        body["message"] = message
    if details:
        body["details"] = details
    return body


def serialize_row(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Convert a database row into JSON-safe values.

    Datetimes become ISO-8601 strings and NUMERIC columns become floats.
    """
    if row is None:
        return None
    out = {}
    for key, value in dict(row).items():
        if isinstance(value, (datetime, date)):
            out[key] = value.isoformat()
        elif isinstance(value, Decimal):
            out[key] = float(value)
        else:
            out[key] = value
    return out


def serialize_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [serialize_row(r) for r in rows]


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = (total + limit - 1) // limit if total else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
