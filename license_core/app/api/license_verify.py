# app/api/license_verify.py
# -*- coding: utf-8 -*-
"""
License Verification API
- POST /api/license/verify : verify a purchase code and bind it to this
  machine id (device items) or the caller's IP address (network items)
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Optional, Union

from app.api.deps import get_db, get_envato_client, get_item_policy, get_clock, client_ip
from app.models.logs_model import log_event, mask_code
from app.services.verification_service import LicenseVerificationService
from app.utils.errors import LicenseError

router = APIRouter(prefix="/api/license", tags=["license"])


# -------------------------
# Request model
# -------------------------
class VerifyRequest(BaseModel):
    purchase_code: Optional[str] = None
    item_id: Optional[Union[int, str]] = None
    machine_id: Optional[str] = None


def _bad_request(message: str):
    return JSONResponse(status_code=400, content={"success": False, "message": message})


# -------------------------
# Endpoint: Verify license
# -------------------------
@router.post("/verify")
def verify_license(
    payload: VerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
    envato=Depends(get_envato_client),
    item_policy=Depends(get_item_policy),
    clock=Depends(get_clock),
):
    purchase_code = (payload.purchase_code or "").strip()
    item_id = str(payload.item_id if payload.item_id is not None else "").strip()

    if not purchase_code:
        return _bad_request("purchase_code is required")
    if not item_id:
        return _bad_request("item_id is required")

    ip = client_ip(request)

    def _log(action, details=None):
        log_event(db, user=mask_code(purchase_code), action=action, details=details,
                  ip_address=ip, endpoint="/api/license/verify")

    service = LicenseVerificationService(db, envato, item_policy=item_policy, clock=clock)
    try:
        service.verify(purchase_code, item_id, device_id=payload.machine_id, network_address=ip)
    except LicenseError as e:
        _log(f"verify_{e.kind}", {"item_id": item_id, "message": e.message, **e.context})
        raise

    _log("verify_ok", {"item_id": item_id})
    return {"success": True, "message": "License verified and activated successfully"}
