# -*- coding: utf-8 -*-
"""
Cookie sessions (JWT) for OAuth users and the administrator
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from passlib.context import CryptContext
from fastapi import HTTPException, Request, Response

from config import JWT_SECRET, JWT_ALGORITHM, SESSION_TTL_MINUTES, COOKIE_SECURE

ADMIN_COOKIE = "lic_admin"
OAUTH_COOKIE = "lic_oauth"
OAUTH_STATE_COOKIE = "lic_oauth_state"
OAUTH_RETURN_COOKIE = "lic_oauth_return"

# -------------------------------------------------------------
# Password Hashing (bcrypt)
# -------------------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password[:72])

def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password[:72], hashed_password)
    except ValueError:
        return False


# -------------------------------------------------------------
# JWT Token Management
# -------------------------------------------------------------
def create_session_token(subject, scope: str, expires_in_minutes: int = SESSION_TTL_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject),
        "scope": scope,
        "exp": now + timedelta(minutes=expires_in_minutes),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def read_session_token(token: Optional[str], scope: str) -> Optional[str]:
    """Subject of a valid token for `scope`, None otherwise."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    if payload.get("scope") != scope:
        return None
    return payload.get("sub") or None


def set_cookie(response: Response, key: str, value: str, max_age: int = SESSION_TTL_MINUTES * 60):
    response.set_cookie(
        key=key,
        value=value,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=max_age,
        path="/",
    )


# -------------------------------------------------------------
# OAuth user session
# -------------------------------------------------------------
def get_session_user_id(request: Request) -> Optional[int]:
    subject = read_session_token(request.cookies.get(OAUTH_COOKIE), "oauth")
    if subject is None or not subject.isdigit():
        return None
    return int(subject)


# -------------------------------------------------------------
# Admin session
# -------------------------------------------------------------
def get_current_admin(request: Request) -> str:
    username = read_session_token(request.cookies.get(ADMIN_COOKIE), "admin")
    if not username:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return username
