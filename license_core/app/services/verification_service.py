# app/services/verification_service.py
# -*- coding: utf-8 -*-
"""
License Verification Engine
---------------------------
verify(purchase_code, item_id, device_id?, network_address?)

Gates, first failure wins:
1. item id -> binding mode (item policy)
2. purchase authenticity (marketplace, seller token)
3. verified item id == requested item id
4. license upsert with drift reconciliation; inactive licenses stop here
5. binding engine on the license's activation state

License and activation writes share one transaction, committed only after
every gate has passed.
"""

from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from app.models.license_model import BindingMode
from app.models.logs_model import mask_code
from app.services.binding_engine import BindingEngine, BindingOutcome
from app.services.item_policy import ItemPolicyResolver
from app.services.repositories import ActivationRepository, LicenseRepository
from app.utils.clock import utcnow
from app.utils.errors import InvalidItemId, LicenseInactive, PurchaseVerificationFailed, UnknownItem

logger = logging.getLogger(__name__)


class LicenseVerificationService:
    def __init__(
        self,
        db: Session,
        purchase_verifier,
        item_policy: Optional[ItemPolicyResolver] = None,
        clock: Callable = utcnow,
    ):
        self.db = db
        self.purchase_verifier = purchase_verifier
        self.item_policy = item_policy or ItemPolicyResolver()
        self.clock = clock
        self.licenses = LicenseRepository(db)
        self.binding = BindingEngine(ActivationRepository(db), clock=clock)

    def verify(
        self,
        purchase_code: str,
        item_id,
        device_id: Optional[str] = None,
        network_address: Optional[str] = None,
    ) -> bool:
        item = str(item_id).strip()
        masked = mask_code(purchase_code)

        try:
            mode = self.item_policy.resolve(item)
        except UnknownItem as e:
            logger.warning("License verification failed for %s: %s", masked, e)
            raise InvalidItemId()

        purchase = self.purchase_verifier.verify_purchase_authenticity(purchase_code)

        if purchase.item_id != item:
            logger.warning(
                "License verification failed for %s: item mismatch (expected %s, purchase %s)",
                masked, item, purchase.item_id,
            )
            raise PurchaseVerificationFailed(
                "Purchase code does not match the provided item ID",
                context={"expected_item_id": item, "purchase_item_id": purchase.item_id},
            )

        candidate = device_id if mode == BindingMode.device else network_address

        try:
            outcome = self._activate(purchase_code, item, mode, candidate)
        except Exception:
            self.db.rollback()
            raise

        self.db.commit()
        logger.debug("License %s verified (%s)", masked, outcome.value)
        return True

    def _activate(self, purchase_code: str, item: str, mode: BindingMode, candidate) -> BindingOutcome:
        now = self.clock()
        lic, created = self.licenses.upsert(purchase_code, item, mode, now)

        if created:
            logger.info("License %s created from purchase code %s (item %s)", lic.id, mask_code(purchase_code), item)
        elif not lic.is_active:
            raise LicenseInactive()

        outcome = self.binding.bind(lic, candidate)

        # a lost activation race rolls back the drift update flushed above
        if lic.item_id != item or lic.binding_mode != mode:
            self.licenses.upsert(purchase_code, item, mode, now)

        return outcome
