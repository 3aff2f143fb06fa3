# app/api/deps.py
"""Shared FastAPI dependencies (overridable in tests)."""

from fastapi import Request

import config
from config import SessionLocal
from app.services.envato_client import EnvatoClient
from app.services.item_policy import ItemPolicyResolver
from app.utils.clock import utcnow


# -------------------------
# DB dependency
# -------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_envato_client() -> EnvatoClient:
    return EnvatoClient.from_config()


def get_item_policy() -> ItemPolicyResolver:
    return ItemPolicyResolver(config.ENVATO_ITEMS)


def get_clock():
    return utcnow


def client_ip(request: Request):
    """
    Caller's network address. X-Forwarded-For is honoured only when the
    direct peer is a configured trusted proxy.
    """
    peer = request.client.host if request.client else None
    if peer and peer in config.TRUSTED_PROXIES:
        forwarded = request.headers.get("x-forwarded-for", "")
        # right-most address not added by one of our own proxies
        for hop in reversed([h.strip() for h in forwarded.split(",") if h.strip()]):
            if hop not in config.TRUSTED_PROXIES:
                return hop
    return peer
