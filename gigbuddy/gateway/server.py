"""
API gateway: combines the auth, gigs, collections and users blueprints.
This is the entrypoint for development and for WSGI servers
(`gunicorn "gigbuddy.gateway.server:create_app()"`).
"""

import atexit
import logging
import os
import signal
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import psycopg2
from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from gigbuddy.api import api_ok
from gigbuddy.config import load_config
from gigbuddy.database.db_connection import EXTENSION_KEY, Database
from gigbuddy.errors import ServiceUnavailableError, register_error_handlers
from gigbuddy.extensions import cors, limiter

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")


def create_app(overrides: Optional[Dict[str, Any]] = None, database: Optional[Database] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        overrides (dict, optional): Config values that replace environment settings.
        database (Database, optional): Pre-built pool; one is built from config otherwise.

    Returns:
        Flask: The configured Flask application.

    Raises:
        RuntimeError: If required configuration (JWT_SECRET) is missing.
    """
    config = load_config(overrides)

    app = Flask(__name__)
    app.config.from_object(config)

    # remote_addr (and so the rate-limit key) only follows X-Forwarded-For
    # through the configured number of trusted proxy hops
    if config.TRUSTED_PROXIES:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=config.TRUSTED_PROXIES)

    cors.init_app(app, resources={
        r"/api/*": {
            "origins": [config.FRONTEND_URL],
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True,
        }
    })
    limiter.init_app(app)

    # --- DATABASE POOL ---
    if database is None:
        database = Database(
            config.DATABASE_URL,
            config.DB_MIN_CONNECTIONS,
            config.DB_MAX_CONNECTIONS,
            config.DB_POOL_TIMEOUT,
        )
    app.extensions[EXTENSION_KEY] = database
    if not app.testing:
        database.open()
        atexit.register(database.close)

    # --- REGISTER BLUEPRINTS ---
    from gigbuddy.auth_service.routes import auth_bp
    from gigbuddy.collections_service.routes import collections_bp
    from gigbuddy.gigs_service.routes import gigs_bp
    from gigbuddy.users_service.routes import users_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(gigs_bp, url_prefix="/api/gigs")
    app.register_blueprint(collections_bp, url_prefix="/api/collections")
    app.register_blueprint(users_bp, url_prefix="/api/users")

    register_error_handlers(app)
    logging.info("All blueprints registered successfully.")

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/health")
    @limiter.exempt
    def health():
        """
        Health check endpoint.

        Returns:
            200: Server up and the database answers.
            503: Server up but the database pool is closed or unreachable.
        """
        database = app.extensions[EXTENSION_KEY]
        try:
            database_ok = database.is_open and database.ping()
        except (psycopg2.Error, ServiceUnavailableError) as exc:
            logging.warning(f"[Gateway] Database ping failed: {exc}")
            database_ok = False

        return jsonify(api_ok(
            {
                "status": "ok" if database_ok else "degraded",
                "database": "ok" if database_ok else "unavailable",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "environment": app.config["APP_ENV"],
            },
            "Server is running",
        )), 200 if database_ok else 503

    return app


def install_shutdown_handlers(database: Database) -> None:
    """Close the pool and exit cleanly on SIGTERM/SIGINT."""

    def shutdown(signum, _frame):
        logging.info(f"Signal {signal.Signals(signum).name} received. Shutting down gracefully")
        database.close()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)


if __name__ == "__main__":
    app = create_app()
    install_shutdown_handlers(app.extensions[EXTENSION_KEY])
    port = int(os.getenv("PORT", app.config["PORT"]))
    app.run(host="0.0.0.0", port=port, debug=app.config["APP_ENV"] == "development")
