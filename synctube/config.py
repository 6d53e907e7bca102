# Import the standard library module used for environment variables and filesystem paths
import os

# Import timedelta to compute durations in seconds for token expiry
from datetime import timedelta

# Import helper to load environment variables from a .env file
from dotenv import load_dotenv


# Load variables from a .env file into process environment if present
load_dotenv()


def _csv(value: str) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


# Define a configuration holder class for the Flask application
class Config:
    # Secret key used by Flask and extensions (sessions, CSRF, etc.); falls back to a dev value
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")

    VERSION = os.getenv("VERSION", "v1-00")
    APP_NAME = os.getenv("APP_NAME", "SyncTube")

    # JWT signing secret for participant session tokens; defaults to SECRET_KEY
    JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
    # Prefer absolute DB path under instance/ directory at repo root for SQLite
    _ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
    # Default SQLAlchemy URI pointing to a sqlite database stored in instance/VERSION/APP_NAME.db
    _DB_DEFAULT = (
        f"sqlite:///{os.path.join(_ROOT, 'instance', VERSION, f'{APP_NAME}.db')}"
    )

    # Database URL taken from env when present, otherwise fallback to default
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", _DB_DEFAULT)
    # When true, echo SQL statements to logs for debugging
    SQLALCHEMY_ECHO = os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true"

    # Session token expiry in seconds; a listening session rarely outlives a day
    ACCESS_TOKEN_EXPIRES = int(
        os.getenv(
            "ACCESS_TOKEN_EXPIRES_SECONDS", str(int(timedelta(days=1).total_seconds()))
        )
    )

    # Comma-separated list of CORS origins; '*' means allow all
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # YouTube Data API keys, tried in order; the second list is a fallback pool
    YOUTUBE_API_KEYS = _csv(os.getenv("YOUTUBE_API_KEYS", ""))
    YOUTUBE_API_KEYS2 = _csv(os.getenv("YOUTUBE_API_KEYS2", ""))
    # Search keywords the auto-filler picks from at random
    AUTOFILL_KEYWORDS = _csv(os.getenv("AUTOFILL_KEYWORDS", "music,lofi,pop hits,acoustic,indie"))

    # Socket.IO message queue DSN (e.g., Redis) for multi-process broadcast support (optional)
    SOCKETIO_MESSAGE_QUEUE = os.getenv("SOCKETIO_MESSAGE_QUEUE", "")
    # Socket.IO async mode override (e.g., 'gevent', 'threading'); empty means gevent
    SOCKETIO_ASYNC_MODE = os.getenv("SOCKETIO_ASYNC_MODE", "")
    # Redis DSN for room locks and background slot leases; falls back to the message queue
    REDIS_URL = os.getenv("REDIS_URL", "")

    # Development toggles
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"

    # Global logging level
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # A participant counts as active while their last heartbeat is younger than this
    PRESENCE_WINDOW_SECONDS = int(os.getenv("PRESENCE_WINDOW_SECONDS", "30"))
    # Interval clients are told to heartbeat at (sent back on join)
    HEARTBEAT_INTERVAL_SECONDS = int(os.getenv("HEARTBEAT_INTERVAL_SECONDS", "15"))
    # Tick of the reconcile loop that re-evaluates vote thresholds and idle rooms
    RECONCILE_INTERVAL_SECONDS = float(os.getenv("RECONCILE_INTERVAL_SECONDS", "5"))

    # Auto-fill policy
    AUTOFILL_INTERVAL_SECONDS = float(os.getenv("AUTOFILL_INTERVAL_SECONDS", "30"))
    AUTOFILL_QUEUE_CAP = int(os.getenv("AUTOFILL_QUEUE_CAP", "5"))
    AUTOFILL_STALE_SECONDS = int(os.getenv("AUTOFILL_STALE_SECONDS", "180"))
    AUTOFILL_MAX_TRIES = int(os.getenv("AUTOFILL_MAX_TRIES", "10"))
    AUTOFILL_MAX_DURATION_SECONDS = int(os.getenv("AUTOFILL_MAX_DURATION_SECONDS", "600"))

    # Room lifetime and extension grant (seconds)
    ROOM_TTL_SECONDS = int(os.getenv("ROOM_TTL_SECONDS", "7200"))
    EXTEND_GRANT_SECONDS = int(os.getenv("EXTEND_GRANT_SECONDS", "7200"))
    # Allow-list of extension codes; a supplied code must be one of these
    EXTEND_CODES = _csv(os.getenv("EXTEND_CODES", ""))
    # How many fresh room codes to try before giving up on creation
    ROOM_ID_MAX_ATTEMPTS = int(os.getenv("ROOM_ID_MAX_ATTEMPTS", "10"))

    # Per-room lock: how long to wait for it, and the Redis lease on it
    ROOM_LOCK_TIMEOUT_SECONDS = float(os.getenv("ROOM_LOCK_TIMEOUT_SECONDS", "5"))
    ROOM_LOCK_LEASE_SECONDS = int(os.getenv("ROOM_LOCK_LEASE_SECONDS", "15"))

    # Background worker slotting:
    # In a multi-worker Gunicorn deployment, every worker will import the app and run init code.
    # The reconcile and auto-fill loops must only run in one worker, otherwise rooms would be
    # auto-filled and vote-skipped once per worker. Workers "claim" one of N background slots
    # at startup and only the claimants start the loops.
    BACKGROUND_TASK_SLOTS = int(os.getenv("BACKGROUND_TASK_SLOTS", "1"))
    # Optional directory for local file-lock based slot claiming. When empty, defaults to
    # "<project_root>/instance/<VERSION>/".
    BACKGROUND_TASK_LOCK_DIR = os.getenv("BACKGROUND_TASK_LOCK_DIR", "")
    # Redis lease seconds for slot claiming when Redis is used as the coordination backend.
    BACKGROUND_TASK_LEASE_SECONDS = int(os.getenv("BACKGROUND_TASK_LEASE_SECONDS", "60"))
