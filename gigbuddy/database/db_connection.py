"""
PostgreSQL connection pool.
Provides the Database lifecycle object and get_db() for use by services.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from flask import current_app
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from gigbuddy.errors import ServiceUnavailableError

EXTENSION_KEY = "database"


class Database:
    """
    Owns the connection pool for one application instance.

    The app factory constructs it, `open()` is called at process start and
    `close()` on shutdown. Route handlers borrow connections through
    `get_db()`.

    ThreadedConnectionPool raises PoolError instead of waiting when every
    connection is out, so borrowers first take a slot from a semaphore sized
    to the pool and wait up to `acquire_timeout` seconds for one.
    """

    def __init__(
        self,
        dsn: str,
        min_connections: int = 1,
        max_connections: int = 20,
        acquire_timeout: float = 30.0,
    ) -> None:
        self.dsn = dsn
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.acquire_timeout = acquire_timeout
        self._pool: Optional[ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(max_connections)

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._pool.closed

    def open(self) -> None:
        """
        Create the pool. Connects `min_connections` sockets immediately.

        Raises:
            psycopg2.Error: If the database cannot be reached.
        """
        with self._lock:
            if self.is_open:
                return
            # Rows come back as dictionaries (e.g., {"id": 1, "email": "..."})
            self._pool = ThreadedConnectionPool(
                self.min_connections,
                self.max_connections,
                self.dsn,
                cursor_factory=RealDictCursor,
            )
        logging.info(f"[Database] Pool opened ({self.min_connections}-{self.max_connections} connections)")

    def close(self) -> None:
        with self._lock:
            if not self.is_open:
                return
            self._pool.closeall()
            self._pool = None
        logging.info("[Database] Pool closed")

    @contextmanager
    def connection(self) -> Iterator[psycopg2.extensions.connection]:
        """
        Borrow a connection for the duration of one transaction.

        Usage:
            with database.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(...)

        Commits when the block exits normally, rolls back if it raises, and
        always returns the connection to the pool.

        Raises:
            RuntimeError: If the pool is not open.
            ServiceUnavailableError: If no connection came free in time.
        """
        if not self.is_open:
            raise RuntimeError("Database pool is not open")

        if not self._slots.acquire(timeout=self.acquire_timeout):
            logging.warning(f"[Database] No connection free after {self.acquire_timeout}s")
            raise ServiceUnavailableError(
                "Service is busy, please try again shortly",
                code="DATABASE_BUSY",
            )
        try:
            conn = self._pool.getconn()
            try:
                yield conn
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
            finally:
                self._pool.putconn(conn)
        finally:
            self._slots.release()

    def ping(self) -> bool:
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 AS ok;")
                return cur.fetchone()["ok"] == 1


def get_db():
    """
    Returns a transactional connection context from the current app's pool.

    Usage:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)
    """
    return current_app.extensions[EXTENSION_KEY].connection()
