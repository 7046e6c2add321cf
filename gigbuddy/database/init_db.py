"""
Database bootstrap.

Applies schema.sql, checks that every table exists, and can optionally create
an admin account (there is no other way to get the first admin).

Usage:
    python -m gigbuddy.database.init_db
    python -m gigbuddy.database.init_db --admin-email me@example.com \
        --admin-password 'Secret1' --admin-name 'Site Admin'
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

from gigbuddy.auth_service.store import create_user, find_user_by_email, hash_password
from gigbuddy.auth_service.utils import ROLE_ADMIN
from gigbuddy.config import load_config
from gigbuddy.database.db_connection import Database

SCHEMA_PATH = Path(__file__).with_name("schema.sql")
TABLES = ["users", "gigs", "collections", "collection_gigs"]


def apply_schema(database: Database) -> None:
    sql = SCHEMA_PATH.read_text(encoding="utf-8")
    with database.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(sql)
    logging.info("[Database] Schema applied")


def check_tables(database: Database) -> Dict[str, bool]:
    """
    Report which of the expected tables exist.

    Returns:
        dict: table name -> found
    """
    found = {}
    with database.connection() as conn:
        with conn.cursor() as cur:
            for table in TABLES:
                cur.execute("SELECT to_regclass(%s) AS oid;", (table,))
                found[table] = cur.fetchone()["oid"] is not None
    return found


def ensure_admin(database: Database, email: str, password: str, name: str) -> dict:
    """
    Create the admin account, or promote the existing account with that email.
    """
    password_hash = hash_password(password)
    with database.connection() as conn:
        with conn.cursor() as cur:
            user = find_user_by_email(cur, email)
            if user is None:
                user = create_user(cur, email, password_hash, name)
            cur.execute(
                "UPDATE users SET role = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s RETURNING id, email, role;",
                (ROLE_ADMIN, user["id"]),
            )
            return dict(cur.fetchone())


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")

    ap = argparse.ArgumentParser(description="Create the Gig Buddy schema.")
    ap.add_argument("--admin-email")
    ap.add_argument("--admin-password")
    ap.add_argument("--admin-name", default="Admin")
    args = ap.parse_args(argv)

    if args.admin_email and not args.admin_password:
        ap.error("--admin-password is required with --admin-email")

    cfg = load_config()
    database = Database(cfg.DATABASE_URL, cfg.DB_MIN_CONNECTIONS, cfg.DB_MAX_CONNECTIONS)
    database.open()
    try:
        apply_schema(database)

        missing = [t for t, ok in check_tables(database).items() if not ok]
        if missing:
            raise SystemExit(f"Schema check failed; missing tables: {', '.join(missing)}")

        if args.admin_email:
            admin = ensure_admin(database, args.admin_email, args.admin_password, args.admin_name)
            logging.info(f"[Database] Admin ready: {admin['email']} (id={admin['id']})")
    finally:
        database.close()

    print(f"DB initialized: {', '.join(TABLES)}")


if __name__ == "__main__":
    main()
