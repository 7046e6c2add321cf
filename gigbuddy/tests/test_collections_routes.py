from datetime import datetime, timezone

import psycopg2.errors

from conftest import executed_sql

ADDED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def collection_row(**overrides):
    row = {
        "id": 5,
        "name": "Summer Shows",
        "description": None,
        "user_id": 5,
        "is_public": True,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "owner_name": "Owner",
        "gig_count": 0,
    }
    row.update(overrides)
    return row


def stats_row(count=1):
    return {"gig_count": count, "last_added_at": ADDED_AT if count else None}


# --- LISTING ---
def test_list_collections_only_public(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"total": 1}
    mock_cursor.fetchall.return_value = [collection_row()]

    response = client.get("/api/collections?search=summer&sort=name")

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["collections"][0]["name"] == "Summer Shows"
    count_sql, params = mock_cursor.execute.call_args_list[0].args
    assert "c.is_public = TRUE" in count_sql
    assert params == ["%summer%"]
    assert "ORDER BY c.name ASC" in executed_sql(mock_cursor)[1]


def test_my_collections_public_only(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"total": 0}
    mock_cursor.fetchall.return_value = []

    response = client.get("/api/collections/my?include_private=false", headers=auth_header(user_id=5))

    assert response.status_code == 200
    count_sql, params = mock_cursor.execute.call_args_list[0].args
    assert "c.is_public = TRUE" in count_sql
    assert params == [5]


# --- READ ---
def test_get_public_collection_anonymously(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = collection_row()
    mock_cursor.fetchall.return_value = [
        {"id": 10, "title": "Late Show", "venue": "The Cellar", "event_date": ADDED_AT, "genre": "Jazz",
         "price": 0, "image_url": None, "status": "active", "user_id": 5, "added_at": ADDED_AT},
    ]

    response = client.get("/api/collections/5")

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert len(data["gigs"]) == 1
    assert data["stats"] == {"gig_count": 1, "last_added_at": ADDED_AT.isoformat()}


def test_get_private_collection_by_stranger(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = collection_row(is_public=False)

    response = client.get("/api/collections/5", headers=auth_header(user_id=6))

    assert response.status_code == 403
    assert response.get_json()["code"] == "COLLECTION_PRIVATE"
    # Gig list is never queried
    assert mock_cursor.execute.call_count == 1


def test_get_private_collection_by_owner(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = collection_row(is_public=False)
    mock_cursor.fetchall.return_value = []

    response = client.get("/api/collections/5", headers=auth_header(user_id=5))

    assert response.status_code == 200
    assert response.get_json()["data"]["stats"] == {"gig_count": 0, "last_added_at": None}


def test_get_missing_collection(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.get("/api/collections/999")

    assert response.status_code == 404
    assert response.get_json()["error"] == "Collection not found"


# --- CREATE / UPDATE / DELETE ---
def test_create_collection(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = collection_row(user_id=7, is_public=False)

    response = client.post("/api/collections", json={"name": "Summer Shows"}, headers=auth_header(user_id=7))

    assert response.status_code == 201
    assert mock_cursor.execute.call_args.args[1] == ("Summer Shows", None, False, 7)


def test_create_collection_duplicate_name(client, mock_db, auth_header, mocker):
    _, mock_cursor = mock_db
    mocker.patch("gigbuddy.errors.constraint_name", return_value="collections_user_id_name_key")
    mock_cursor.execute.side_effect = psycopg2.errors.UniqueViolation("duplicate key")

    response = client.post("/api/collections", json={"name": "Summer Shows"}, headers=auth_header(user_id=7))

    assert response.status_code == 409
    assert response.get_json()["error"] == "You already have a collection with this name"


def test_update_collection_by_non_owner(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}]

    response = client.put("/api/collections/5", json={"name": "Mine Now"}, headers=auth_header(user_id=6))

    assert response.status_code == 403
    assert response.get_json()["error"] == "ownership required"
    assert mock_cursor.execute.call_count == 1
    assert not any("UPDATE collections" in sql for sql in executed_sql(mock_cursor))


def test_update_collection_by_owner(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, collection_row(is_public=False)]

    response = client.put("/api/collections/5", json={"is_public": False}, headers=auth_header(user_id=5))

    assert response.status_code == 200
    assert response.get_json()["data"]["is_public"] is False
    assert "UPDATE collections SET is_public = %s" in executed_sql(mock_cursor)[1]


def test_update_missing_collection(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [None]

    response = client.put("/api/collections/999", json={"name": "Anything"}, headers=auth_header(user_id=6))

    assert response.status_code == 404


def test_delete_collection_removes_its_memberships(client, mock_db, auth_header):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}]
    mock_cursor.rowcount = 2

    response = client.delete("/api/collections/5", headers=auth_header(user_id=5))

    assert response.status_code == 200
    assert response.get_json()["data"] == {"id": 5, "removed_gigs": 2}

    calls = mock_cursor.execute.call_args_list
    assert calls[1].args == ("DELETE FROM collection_gigs WHERE collection_id = %s;", (5,))
    assert calls[2].args == ("DELETE FROM collections WHERE id = %s;", (5,))
    # Both deletes share one connection, hence one transaction
    mock_conn.__enter__.assert_called_once()


def test_delete_collection_by_non_owner(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}]

    response = client.delete("/api/collections/5", headers=auth_header(user_id=6))

    assert response.status_code == 403
    assert mock_cursor.execute.call_count == 1


# --- MEMBERSHIP ---
def test_add_gig(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, {"id": 10}, {"added_at": ADDED_AT}, stats_row(1)]

    response = client.post("/api/collections/5/gigs/10", headers=auth_header(user_id=5))

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["gig_id"] == 10
    assert data["stats"]["gig_count"] == 1


def test_add_gig_twice_conflicts(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, {"id": 10}, None]

    response = client.post("/api/collections/5/gigs/10", headers=auth_header(user_id=5))

    assert response.status_code == 409
    body = response.get_json()
    assert body["error"] == "Gig already in collection"
    assert body["code"] == "DUPLICATE"


def test_add_missing_gig(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, None]

    response = client.post("/api/collections/5/gigs/999", headers=auth_header(user_id=5))

    assert response.status_code == 404
    assert response.get_json()["error"] == "Gig not found"


def test_add_gig_to_missing_collection_is_not_found_before_forbidden(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [None]

    response = client.post("/api/collections/999/gigs/10", headers=auth_header(user_id=6))

    assert response.status_code == 404
    assert response.get_json()["error"] == "Collection not found"


def test_add_gig_to_someone_elses_collection(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}]

    response = client.post("/api/collections/5/gigs/10", headers=auth_header(user_id=6))

    assert response.status_code == 403
    assert not any("INSERT" in sql for sql in executed_sql(mock_cursor))


def test_remove_gig(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, {"gig_id": 10}, stats_row(0)]

    response = client.delete("/api/collections/5/gigs/10", headers=auth_header(user_id=5))

    assert response.status_code == 200
    assert response.get_json()["data"]["stats"] == {"gig_count": 0, "last_added_at": None}


def test_remove_gig_not_in_collection(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, None]

    response = client.delete("/api/collections/5/gigs/10", headers=auth_header(user_id=5))

    assert response.status_code == 404
    assert response.get_json()["error"] == "Gig is not in this collection"


# --- BULK ---
def test_bulk_add_reports_added_and_skipped(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, stats_row(3)]
    mock_cursor.fetchall.side_effect = [
        [{"id": 10}, {"id": 11}, {"id": 12}],
        [{"gig_id": 10}, {"gig_id": 12}],
    ]

    response = client.post(
        "/api/collections/5/gigs/bulk",
        json={"gig_ids": [10, 11, 12, 10]},
        headers=auth_header(user_id=5),
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["added"] == [10, 12]
    assert data["skipped"] == [11]
    assert data["stats"]["gig_count"] == 3


def test_bulk_add_with_unknown_gig_changes_nothing(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}]
    mock_cursor.fetchall.side_effect = [[{"id": 10}]]

    response = client.post(
        "/api/collections/5/gigs/bulk",
        json={"gig_ids": [10, 99]},
        headers=auth_header(user_id=5),
    )

    assert response.status_code == 404
    assert "99" in response.get_json()["details"][0]["message"]
    assert not any("INSERT" in sql for sql in executed_sql(mock_cursor))


def test_bulk_add_rejects_empty_list(client, mock_db, auth_header):
    response = client.post("/api/collections/5/gigs/bulk", json={"gig_ids": []}, headers=auth_header(user_id=5))
    assert response.status_code == 400


def test_bulk_remove(client, mock_db, auth_header):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"user_id": 5}, stats_row(0)]
    mock_cursor.fetchall.return_value = [{"gig_id": 10}]

    response = client.delete(
        "/api/collections/5/gigs/bulk",
        json={"gig_ids": [10, 11]},
        headers=auth_header(user_id=5),
    )

    assert response.status_code == 200
    assert response.get_json()["data"]["removed"] == [10]
