# app/services/reset_service.py
# -*- coding: utf-8 -*-
"""
Reset Engine
------------
reset(purchase_code, acting_user, reason?)

Revokes every binding of a license once the acting OAuth user has proven,
through the marketplace buyer API, that they own the purchase for the
license's item. Deactivations are flushed before the audit row is written;
both are committed together.
"""

from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from app.models.logs_model import mask_code
from app.models.oauth_user_model import OAuthUser
from app.services.repositories import ActivationRepository, LicenseRepository, LicenseResetRepository
from app.utils.clock import utcnow
from app.utils.errors import LicenseNotFound, PurchaseVerificationFailed

logger = logging.getLogger(__name__)


class LicenseResetService:
    def __init__(self, db: Session, ownership_verifier, clock: Callable = utcnow):
        self.db = db
        self.ownership_verifier = ownership_verifier
        self.clock = clock
        self.licenses = LicenseRepository(db)
        self.activations = ActivationRepository(db)
        self.resets = LicenseResetRepository(db)

    def reset(self, purchase_code: str, acting_user: OAuthUser, reason: Optional[str] = None) -> bool:
        masked = mask_code(purchase_code)

        lic = self.licenses.find_by_purchase_code(purchase_code)
        if lic is None:
            raise LicenseNotFound()

        if not acting_user.access_token:
            # callers must complete the OAuth login before resetting
            raise RuntimeError("OAuth access token not available")

        purchase = self.ownership_verifier.verify_purchase_ownership(acting_user.access_token, purchase_code)

        if purchase.item_id != str(lic.item_id):
            logger.warning(
                "Reset refused for %s: purchase item %s does not match license item %s",
                masked, purchase.item_id, lic.item_id,
            )
            raise PurchaseVerificationFailed("Purchase code does not belong to this item")

        try:
            now = self.clock()
            active = self.activations.list_active_by_license(lic.id)
            if len(active) > 1:
                logger.warning("License %s had %d active activations; deactivating all", lic.id, len(active))

            for activation in active:
                activation.is_active = False
                activation.updated_at = now
                self.activations.save(activation)

            self.resets.append(lic.id, acting_user.id, reason, now)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "License %s reset by oauth user %s (%d activation(s) cleared)",
            lic.id, acting_user.id, len(active),
        )
        return True
