# app/api/license_admin.py
# -*- coding: utf-8 -*-
"""
License Admin API
-----------------
Administrator login plus view / deactivate / reactivate of licenses by
purchase code. Deactivation blocks further verification of the code; the
existing binding is left untouched.
"""

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Optional

from config import ADMIN_USERNAME, ADMIN_PASSWORD_HASH
from app.api.deps import get_db, get_clock, client_ip
from app.models.license_model import License
from app.models.logs_model import log_event, mask_code
from app.services.repositories import ActivationRepository, LicenseRepository, LicenseResetRepository
from app.utils.auth import (
    ADMIN_COOKIE, create_session_token, get_current_admin, set_cookie, verify_password,
)

router = APIRouter(prefix="/admin", tags=["admin"])


class DeactivateIn(BaseModel):
    reason: Optional[str] = None


# ---- Utilities -----------------------------------------------------------
def _iso(value):
    return value.isoformat() if value else None


def license_to_dict(lic: License, activations, resets) -> dict:
    return {
        "id": lic.id,
        "purchase_code": lic.purchase_code,
        "item_id": lic.item_id,
        "binding_mode": lic.binding_mode.value,
        "is_active": bool(lic.is_active),
        "created_at": _iso(lic.created_at),
        "updated_at": _iso(lic.updated_at),
        "activations": [
            {
                "id": a.id,
                "device_id": a.device_id,
                "network_address": a.network_address,
                "is_active": bool(a.is_active),
                "activated_at": _iso(a.activated_at),
                "updated_at": _iso(a.updated_at),
            }
            for a in activations
        ],
        "resets": [
            {
                "id": r.id,
                "oauth_user_id": r.oauth_user_id,
                "reason": r.reason,
                "created_at": _iso(r.created_at),
            }
            for r in resets
        ],
    }


def _get_license_or_404(db: Session, purchase_code: str) -> License:
    lic = LicenseRepository(db).find_by_purchase_code(purchase_code)
    if not lic:
        raise HTTPException(status_code=404, detail="License not found")
    return lic


# ---- Auth ----------------------------------------------------------------
@router.post("/login")
def login_submit(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    if username != ADMIN_USERNAME or not verify_password(password, ADMIN_PASSWORD_HASH):
        log_event(db, user=username, action="admin_login_failed", ip_address=client_ip(request), endpoint="/admin/login")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    response = JSONResponse({"status": "ok", "username": username})
    set_cookie(response, ADMIN_COOKIE, create_session_token(username, "admin"))
    return response


@router.get("/logout")
def logout():
    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie(ADMIN_COOKIE, path="/")
    return response


# ---- Licenses ------------------------------------------------------------
@router.get("/licenses/{purchase_code}")
def get_license(
    purchase_code: str,
    db: Session = Depends(get_db),
    _admin: str = Depends(get_current_admin),
):
    lic = _get_license_or_404(db, purchase_code)
    return license_to_dict(
        lic,
        ActivationRepository(db).list_by_license(lic.id),
        LicenseResetRepository(db).list_by_license(lic.id),
    )


def _set_active(db: Session, purchase_code: str, active: bool, clock, admin: str, reason: Optional[str] = None):
    lic = _get_license_or_404(db, purchase_code)
    lic.is_active = active
    lic.updated_at = clock()
    try:
        LicenseRepository(db).save(lic)
        db.commit()
    except Exception:
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to update license")

    log_event(
        db, user=admin, action="license_activate" if active else "license_deactivate",
        details={"purchase_code": mask_code(purchase_code), "reason": reason},
        endpoint=f"/admin/licenses/{{purchase_code}}/{'activate' if active else 'deactivate'}",
    )
    return {"purchase_code": purchase_code, "is_active": active}


@router.post("/licenses/{purchase_code}/deactivate")
def deactivate_license(
    purchase_code: str,
    payload: Optional[DeactivateIn] = None,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    _admin: str = Depends(get_current_admin),
):
    return _set_active(db, purchase_code, False, clock, _admin, reason=payload.reason if payload else None)


@router.post("/licenses/{purchase_code}/activate")
def activate_license(
    purchase_code: str,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    _admin: str = Depends(get_current_admin),
):
    return _set_active(db, purchase_code, True, clock, _admin)
