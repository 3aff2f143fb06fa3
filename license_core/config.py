# config.py
import json
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_database_url() -> str:
    """
    DATABASE_URL from the environment, local sqlite file otherwise.
    Also fixes 'postgres://' -> 'postgresql://' for SQLAlchemy.
    """
    url = os.getenv("DATABASE_URL", "").strip()
    if not url:
        return "sqlite:///./license_core.db"
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    # in-memory database: every session must share the one connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


SQLALCHEMY_DATABASE_URL = get_database_url()

engine = create_engine(SQLALCHEMY_DATABASE_URL, echo=False, **_engine_options(SQLALCHEMY_DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# --------------------------------------------------------
# ENVATO MARKETPLACE
# --------------------------------------------------------
# Personal token for verifying purchase codes (seller side).
# Required permission: "View your items' sales history" (scope: sale:history)
ENVATO_PERSONAL_TOKEN = os.getenv("ENVATO_PERSONAL_TOKEN", "")

ENVATO_OAUTH_CLIENT_ID = os.getenv("ENVATO_OAUTH_CLIENT_ID", "")
ENVATO_OAUTH_CLIENT_SECRET = os.getenv("ENVATO_OAUTH_CLIENT_SECRET", "")
ENVATO_OAUTH_REDIRECT_URI = os.getenv("ENVATO_OAUTH_REDIRECT_URI", "http://127.0.0.1:8000/oauth/callback")

ENVATO_HTTP_TIMEOUT = float(os.getenv("ENVATO_HTTP_TIMEOUT", "10"))

# Item id -> binding mode
#   "device"  = bound to a device/machine id (apps, desktop tools)
#   "network" = bound to the caller's IP address (server-side scripts)
# e.g. ENVATO_ITEMS='{"12345678": "device", "87654321": "network"}'
ENVATO_ITEMS = {str(k): v for k, v in json.loads(os.getenv("ENVATO_ITEMS", "{}") or "{}").items()}


# --------------------------------------------------------
# SESSIONS / ADMIN
# --------------------------------------------------------
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = "HS256"
SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", "240"))
COOKIE_SECURE = _env_bool("COOKIE_SECURE", False)

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH", "")  # bcrypt hash, empty disables admin login


# --------------------------------------------------------
# TRANSPORT
# --------------------------------------------------------
# Proxies whose X-Forwarded-For header is trusted for the client address
TRUSTED_PROXIES = [p.strip() for p in os.getenv("TRUSTED_PROXIES", "").split(",") if p.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
