# -*- coding: utf-8 -*-
"""
Marketplace License Server
--------------------------
- Purchase-code verification and exclusive device / IP binding
- Self-service reset through marketplace OAuth
- Administrative deactivation
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import Base, engine, LOG_LEVEL

# -----------------------------
# Import Models (registers tables on Base.metadata)
# -----------------------------
from app.models.license_model import License
from app.models.activation_model import Activation
from app.models.oauth_user_model import OAuthUser
from app.models.license_reset_model import LicenseReset
from app.models.logs_model import APILog

# -----------------------------
# Import Routers
# -----------------------------
from app.api.license_verify import router as license_verify_router
from app.api.license_reset import router as license_reset_router
from app.api.oauth import router as oauth_router
from app.api.license_admin import router as license_admin_router

from app.utils.errors import LicenseError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("license_core")

# -----------------------------
# Create DB tables
# -----------------------------
Base.metadata.create_all(bind=engine)


# -----------------------------
# FastAPI Init
# -----------------------------
app = FastAPI(title="Marketplace License Server")

# 1. Public license API
app.include_router(license_verify_router)

# 2. Self-service reset + OAuth login
app.include_router(oauth_router)
app.include_router(license_reset_router)

# 3. Admin
app.include_router(license_admin_router)


# ----------------------------------------------------------
# License errors -> JSON with their status code
# ----------------------------------------------------------
@app.exception_handler(LicenseError)
def license_error_handler(request: Request, exc: LicenseError):
    if exc.context:
        logger.info("%s %s -> %s %s", request.method, request.url.path, exc.kind, exc.context)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/", include_in_schema=False)
@app.get("/health", tags=["system"])
def health():
    return {"status": "ok", "message": "License server running"}
