import os
from unittest.mock import MagicMock

import pytest

# Ensure JWT_SECRET is set for tests
os.environ["JWT_SECRET"] = "test_secret"

from gigbuddy.auth_service.utils import create_token  # noqa: E402
from gigbuddy.gateway.server import create_app  # noqa: E402

ROUTE_MODULES = [
    "gigbuddy.auth_service.routes",
    "gigbuddy.gigs_service.routes",
    "gigbuddy.collections_service.routes",
    "gigbuddy.users_service.routes",
]

TEST_CONFIG = {
    "JWT_SECRET": "test_secret",
    "TESTING": True,
    "RATELIMIT_ENABLED": False,
}


@pytest.fixture
def app():
    return create_app(dict(TEST_CONFIG))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mock_db(mocker):
    """
    Mocks the database connection and cursor for every route module.
    """
    mock_conn = MagicMock()
    mock_cursor = MagicMock()

    # Setup the context manager for connection
    mock_conn.__enter__.return_value = mock_conn
    mock_conn.__exit__.return_value = None

    # Setup the context manager for cursor
    mock_cursor.__enter__.return_value = mock_cursor
    mock_cursor.__exit__.return_value = None

    # Connect cursor to connection
    mock_conn.cursor.return_value = mock_cursor

    for module in ROUTE_MODULES:
        mocker.patch(f"{module}.get_db", return_value=mock_conn)

    return mock_conn, mock_cursor


@pytest.fixture
def make_token(app):
    def _make(user_id=1, email="user@example.com", role="member", now=None):
        with app.app_context():
            return create_token(user_id, email, role, now=now)
    return _make


@pytest.fixture
def auth_header(make_token):
    def _header(**kwargs):
        return {"Authorization": f"Bearer {make_token(**kwargs)}"}
    return _header


def executed_sql(mock_cursor):
    """All SQL strings passed to cursor.execute, in order."""
    return [c.args[0] for c in mock_cursor.execute.call_args_list]
