# app/utils/errors.py
# -*- coding: utf-8 -*-
"""
License error taxonomy
----------------------
Every caller-facing outcome of verification and reset is one of the
LicenseError subclasses below. Each carries a stable `kind`, a message that
is safe to show the caller, the HTTP status the routers answer with, and an
optional `context` dict with diagnostic detail that is logged but not returned.
"""

from typing import Any, Dict, Optional


class LicenseError(Exception):
    kind = "license_error"
    status_code = 400
    default_message = "License error"

    def __init__(self, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "kind": self.kind, "message": self.message}


class InvalidItemId(LicenseError):
    kind = "invalid_item_id"
    default_message = "Item ID is not allowed"


class PurchaseVerificationFailed(LicenseError):
    kind = "purchase_verification_failed"
    default_message = "Purchase code verification failed"


class LicenseInactive(LicenseError):
    kind = "license_inactive"
    status_code = 403
    default_message = "License is inactive"


class MissingDeviceId(LicenseError):
    kind = "missing_device_id"
    status_code = 403
    default_message = "Machine ID is required for this license type"


class MissingNetworkAddress(LicenseError):
    kind = "missing_network_address"
    status_code = 403
    default_message = "IP address is required for this license type"


class AlreadyActivatedElsewhere(LicenseError):
    kind = "already_activated_elsewhere"
    status_code = 403
    default_message = "License is already activated elsewhere"


class LicenseNotFound(LicenseError):
    kind = "license_not_found"
    status_code = 404
    default_message = "License not found"


# -------------------------------------------------------------
# Outside the caller-facing taxonomy
# -------------------------------------------------------------
class UnknownItem(LookupError):
    """Item id missing from the item policy mapping, or mapped to an unknown mode."""


class OAuthError(Exception):
    """Identity provider exchange or lookup failed."""
