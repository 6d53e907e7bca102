# Future annotations for forward reference typing compatibility
from __future__ import annotations

import logging
import os
from typing import Optional

# Flask primitives for creating the app
from flask import Flask, jsonify

# Enable Cross-Origin Resource Sharing for API and Socket.IO
from flask_cors import CORS

# Import configuration object
from .config import Config

# Import shared Flask extensions (SQLAlchemy and SocketIO)
from .extensions import db, socketio

# Configure a standard log format for console handlers
log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that drown out our own INFO logs
_NOISY_LOGGERS = (
    "engineio",
    "engineio.server",
    "socketio",
    "socketio.server",
    "socketio.client",
)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=log_format)
    logging.getLogger().setLevel(getattr(logging, level, logging.INFO))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# SQLite pragmas
# - Only applied for SQLite; other databases ignore this
# - WAL plus a long busy timeout keeps the reconcile loop and request handlers from
#   tripping over each other's write locks
def configure_sqlite_pragmas() -> None:
    eng = db.engine
    if eng.dialect.name != "sqlite" or eng.url.database in (None, "", ":memory:"):
        return
    with eng.begin() as conn:
        # Enable WAL to improve concurrency
        conn.execute(db.text("PRAGMA journal_mode=WAL"))
        # Reduce sync level to NORMAL to balance durability and speed
        conn.execute(db.text("PRAGMA synchronous=NORMAL"))
        # Increase busy timeout to mitigate lock errors
        conn.execute(db.text("PRAGMA busy_timeout=15000"))


def _allowed_origins(origins_cfg: str):
    # A single '*' means allow all origins
    if (origins_cfg or "*").strip() == "*":
        return "*"
    return [o.strip() for o in origins_cfg.split(",") if o.strip()]


# Application factory returning a configured Flask app
def create_app(overrides: Optional[dict] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
        # Make sure the instance/<VERSION>/ directory for the SQLite file exists
        db_path = app.config["SQLALCHEMY_DATABASE_URI"][len("sqlite:///"):]
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)

    db.init_app(app)
    allowed_origins = _allowed_origins(app.config["CORS_ORIGINS"])
    # Enable CORS for all routes using the allowed origins
    CORS(app, resources={r"/*": {"origins": allowed_origins}})

    # Handlers must be bound before init_app so every app instance picks them up
    from .views import register_socket_handlers

    register_socket_handlers()

    # Initialize Socket.IO with the same CORS policy and optional message queue
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        message_queue=app.config.get("SOCKETIO_MESSAGE_QUEUE") or None,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE") or "gevent",
        ping_timeout=30,
        ping_interval=10,
    )
    app.logger.info(
        "SocketIO configured: async_mode=%s, message_queue=%s",
        socketio.async_mode,
        app.config.get("SOCKETIO_MESSAGE_QUEUE") or "(none)",
    )

    # Create schema if not present
    with app.app_context():
        # Import models to register metadata with SQLAlchemy
        from . import models  # noqa: F401

        db.create_all()
        try:
            configure_sqlite_pragmas()
        except Exception:
            # Never prevent app from starting due to tuning failures
            logging.exception("sqlite pragma setup failed")

    register_routes(app)

    if not app.config.get("TESTING"):
        from .views import start_background_tasks_if_needed

        start_background_tasks_if_needed(app)

    return app


# Helper to bind routes and blueprints
def register_routes(app: Flask) -> None:
    from .views import rooms_bp

    @app.route("/api/health")
    def health():
        return jsonify({"ok": True, "version": app.config.get("VERSION")})

    app.register_blueprint(rooms_bp)
