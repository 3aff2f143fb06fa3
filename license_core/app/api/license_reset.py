# app/api/license_reset.py
# -*- coding: utf-8 -*-
"""
Self-service license reset (requires marketplace OAuth login)
- GET  /license/reset : who is logged in, or redirect to login
- POST /license/reset : unbind a purchase code owned by the logged-in user
"""

from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Optional

from app.api.deps import get_db, get_envato_client, get_clock, client_ip
from app.models.logs_model import log_event, mask_code
from app.models.oauth_user_model import OAuthUser
from app.services.oauth_service import OAuthService
from app.services.reset_service import LicenseResetService
from app.utils.auth import get_session_user_id
from app.utils.errors import LicenseError

router = APIRouter(prefix="/license", tags=["license-reset"])

LOGIN_URL = "/oauth/login?return_url=" + quote("/license/reset", safe="")


class ResetRequest(BaseModel):
    purchase_code: Optional[str] = None
    reason: Optional[str] = None


def optional_oauth_user(
    request: Request,
    db: Session = Depends(get_db),
    envato=Depends(get_envato_client),
    clock=Depends(get_clock),
) -> Optional[OAuthUser]:
    """Logged-in OAuth user holding a non-expired delegated token, if any."""
    return OAuthService(db, envato, clock=clock).current_user(get_session_user_id(request))


def require_oauth_user(user: Optional[OAuthUser] = Depends(optional_oauth_user)) -> OAuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Login required", headers={"Location": LOGIN_URL})
    return user


@router.get("/reset")
def reset_page(user: Optional[OAuthUser] = Depends(optional_oauth_user)):
    if user is None:
        return RedirectResponse(LOGIN_URL, status_code=303)
    return {"user": {"username": user.username}, "show_form": True}


@router.post("/reset")
def reset_license(
    payload: ResetRequest,
    request: Request,
    user: OAuthUser = Depends(require_oauth_user),
    db: Session = Depends(get_db),
    envato=Depends(get_envato_client),
    clock=Depends(get_clock),
):
    purchase_code = (payload.purchase_code or "").strip()
    if not purchase_code:
        return JSONResponse(status_code=400, content={"success": False, "message": "purchase_code is required"})

    reason = (payload.reason or "").strip() or None

    def _log(action, details=None):
        log_event(db, user=user.username, action=action,
                  details={"purchase_code": mask_code(purchase_code), **(details or {})},
                  ip_address=client_ip(request), endpoint="/license/reset")

    try:
        LicenseResetService(db, envato, clock=clock).reset(purchase_code, user, reason)
    except LicenseError as e:
        _log(f"reset_{e.kind}", {"message": e.message})
        raise

    _log("reset_ok", {"reason": reason})
    return {
        "success": True,
        "message": "License reset successfully. You can now activate it on a new machine/IP address.",
    }
