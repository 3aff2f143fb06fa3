# app/api/oauth.py
# -*- coding: utf-8 -*-
"""
Marketplace OAuth login
- GET /oauth/login    : start login, redirect to the marketplace
- GET /oauth/callback : finish login, store the session cookie
- GET /oauth/logout   : clear the session cookie
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_envato_client, get_clock, client_ip
from app.models.logs_model import log_event
from app.services.oauth_service import OAuthService
from app.utils.auth import (
    OAUTH_COOKIE, OAUTH_STATE_COOKIE, OAUTH_RETURN_COOKIE,
    create_session_token, set_cookie,
)
from app.utils.errors import OAuthError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])

DEFAULT_RETURN_URL = "/license/reset"
STATE_TTL_SECONDS = 600


def safe_return_url(url: Optional[str]) -> str:
    """Only same-site relative paths are accepted as redirect targets."""
    if not url or not url.startswith("/") or url.startswith("//") or "\\" in url:
        return DEFAULT_RETURN_URL
    return url


@router.get("/login")
def login(return_url: Optional[str] = None, envato=Depends(get_envato_client)):
    # state token for CSRF protection
    state = secrets.token_hex(32)

    response = RedirectResponse(envato.authorization_url(state), status_code=302)
    set_cookie(response, OAUTH_STATE_COOKIE, state, max_age=STATE_TTL_SECONDS)
    set_cookie(response, OAUTH_RETURN_COOKIE, safe_return_url(return_url), max_age=STATE_TTL_SECONDS)
    return response


@router.get("/callback")
def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    envato=Depends(get_envato_client),
    clock=Depends(get_clock),
):
    stored_state = request.cookies.get(OAUTH_STATE_COOKIE)
    return_url = safe_return_url(request.cookies.get(OAUTH_RETURN_COOKIE))

    if error:
        logger.error("OAuth error in callback: %s", error)
        raise HTTPException(status_code=400, detail=f"OAuth error: {error}")

    if not state:
        raise HTTPException(status_code=400, detail="State parameter is missing from OAuth callback.")

    if not stored_state:
        raise HTTPException(status_code=400, detail="OAuth state not found in session. Please try logging in again.")

    if not secrets.compare_digest(state, stored_state):
        logger.error("OAuth state mismatch")
        raise HTTPException(status_code=400, detail="Invalid state parameter. Possible CSRF attack.")

    if not code:
        raise HTTPException(status_code=400, detail="Authorization code is missing")

    try:
        user = OAuthService(db, envato, clock=clock).complete_login(code)
    except OAuthError as e:
        logger.error("OAuth login failed: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    log_event(db, user=user.username, action="oauth_login", ip_address=client_ip(request), endpoint="/oauth/callback")

    response = RedirectResponse(return_url, status_code=302)
    set_cookie(response, OAUTH_COOKIE, create_session_token(user.id, "oauth"))
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    response.delete_cookie(OAUTH_RETURN_COOKIE, path="/")
    return response


@router.get("/logout")
def logout():
    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie(OAUTH_COOKIE, path="/")
    return response
