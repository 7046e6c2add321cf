from unittest.mock import MagicMock

import psycopg2.errors
import pytest
from conftest import TEST_CONFIG

from gigbuddy.errors import (
    ApiError,
    ConflictError,
    InvalidReferenceError,
    ServiceUnavailableError,
    ValidationError,
    translate_db_error,
)
from gigbuddy.gateway.server import create_app


@pytest.mark.parametrize("constraint, message", [
    ("users_email_key", "Email already registered"),
    ("collections_user_id_name_key", "You already have a collection with this name"),
    ("collection_gigs_pkey", "Gig already in collection"),
    (None, "Duplicate entry"),
])
def test_unique_violation_maps_to_conflict(mocker, constraint, message):
    mocker.patch("gigbuddy.errors.constraint_name", return_value=constraint)

    err = translate_db_error(psycopg2.errors.UniqueViolation("duplicate key"))

    assert isinstance(err, ConflictError)
    assert err.status_code == 409
    assert err.message == message


def test_foreign_key_violation_maps_to_invalid_reference(mocker):
    mocker.patch("gigbuddy.errors.constraint_name", return_value="gigs_user_id_fkey")

    err = translate_db_error(psycopg2.errors.ForeignKeyViolation("fk"))

    assert isinstance(err, InvalidReferenceError)
    assert err.status_code == 400


def test_check_violation_maps_to_validation(mocker):
    mocker.patch("gigbuddy.errors.constraint_name", return_value="gigs_price_check")

    err = translate_db_error(psycopg2.errors.CheckViolation("check"))

    assert isinstance(err, ValidationError)
    assert err.details[0]["field"] == "gigs_price_check"


def test_unknown_route_returns_envelope(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "API endpoint not found"}


def test_unexpected_exception_is_hidden(app, client):
    @app.route("/boom")
    def boom():
        raise RuntimeError("secret internals")

    response = client.get("/boom")

    assert response.status_code == 500
    body = response.get_json()
    assert body["success"] is False
    assert "secret internals" not in response.get_data(as_text=True)


def test_api_error_carries_code_and_details(app, client):
    @app.route("/teapot")
    def teapot():
        raise ApiError("short and stout", status_code=418, code="TEAPOT", details=[{"field": "x", "message": "y"}])

    response = client.get("/teapot")

    assert response.status_code == 418
    assert response.get_json() == {
        "success": False,
        "error": "short and stout",
        "code": "TEAPOT",
        "details": [{"field": "x", "message": "y"}],
    }


def test_non_object_body_is_rejected(client, mock_db, auth_header):
    response = client.post("/api/collections", json=["not", "an", "object"], headers=auth_header())

    assert response.status_code == 400
    assert response.get_json()["details"][0]["field"] == "body"


def test_health_reports_degraded_without_database(client):
    response = client.get("/health")

    assert response.status_code == 503
    data = response.get_json()["data"]
    assert data["status"] == "degraded"
    assert data["database"] == "unavailable"


def test_health_pings_database():
    database = MagicMock(is_open=True)
    database.ping.return_value = True
    client = create_app(dict(TEST_CONFIG), database=database).test_client()

    response = client.get("/health")

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["status"] == "ok"
    assert data["database"] == "ok"
    database.ping.assert_called_once()


@pytest.mark.parametrize("failure", [
    psycopg2.OperationalError("server closed the connection"),
    ServiceUnavailableError("Service is busy, please try again shortly"),
])
def test_health_when_ping_fails(failure):
    database = MagicMock(is_open=True)
    database.ping.side_effect = failure
    client = create_app(dict(TEST_CONFIG), database=database).test_client()

    response = client.get("/health")

    assert response.status_code == 503
    assert response.get_json()["data"]["database"] == "unavailable"


def test_busy_pool_answers_503(client, mocker):
    mocker.patch(
        "gigbuddy.gigs_service.routes.get_db",
        side_effect=ServiceUnavailableError("Service is busy, please try again shortly", code="DATABASE_BUSY"),
    )

    response = client.get("/api/gigs")

    assert response.status_code == 503
    assert response.get_json() == {
        "success": False,
        "error": "Service is busy, please try again shortly",
        "code": "DATABASE_BUSY",
    }
