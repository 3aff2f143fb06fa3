# -*- coding: utf-8 -*-
"""
APILog Model
-------------
Audit trail of caller-facing license events: verifications, resets,
OAuth logins and administrative actions.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from config import Base
from app.utils.clock import utcnow
import json
import logging

logger = logging.getLogger(__name__)


class APILog(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)

    # Masked purchase code, OAuth username or admin name
    user = Column(String(100), nullable=True)

    # e.g. "verify_ok", "verify_already_activated_elsewhere", "reset_ok"
    action = Column(String(255), nullable=False)

    details = Column(Text, nullable=True)
    ip_address = Column(String(50), nullable=True)
    endpoint = Column(String(255), nullable=True)

    timestamp = Column(DateTime, default=utcnow)


def mask_code(purchase_code) -> str:
    """Keep only the last four characters of a purchase code."""
    code = (purchase_code or "").strip()
    if len(code) <= 4:
        return "*" * len(code)
    return "*" * (len(code) - 4) + code[-4:]


def log_event(db_session, user=None, action="", details=None, ip_address=None, endpoint=None):
    """
    Store an audit record. Dict/list details are serialized to JSON.
    A failed write is rolled back and reported, never raised.
    """
    if isinstance(details, (dict, list)):
        details = json.dumps(details, default=str)
    elif details is not None:
        details = str(details)

    try:
        entry = APILog(
            user=user,
            action=action,
            details=details,
            ip_address=ip_address,
            endpoint=endpoint,
        )
        db_session.add(entry)
        db_session.commit()
        return entry
    except Exception:
        db_session.rollback()
        logger.exception("Failed to store audit event %s", action)
        return None
