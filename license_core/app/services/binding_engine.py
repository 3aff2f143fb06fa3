# app/services/binding_engine.py
# -*- coding: utf-8 -*-
"""
Binding Engine
--------------
Decides, for one license and one candidate identifier, whether to create,
accept or reject an activation.

    no active activation           -> create one bound to the candidate (CREATED)
    active, same identifier        -> no-op (ALREADY_BOUND)
    active, different identifier   -> AlreadyActivatedElsewhere

A binding is never overwritten here; the holder relinquishes it through
the reset flow.
"""

from typing import Callable, Optional
import enum
import logging

from sqlalchemy.exc import IntegrityError

from app.models.activation_model import Activation
from app.models.license_model import BindingMode, License
from app.services.repositories import ActivationRepository
from app.utils.clock import utcnow
from app.utils.errors import AlreadyActivatedElsewhere, MissingDeviceId, MissingNetworkAddress

logger = logging.getLogger(__name__)


class BindingOutcome(enum.Enum):
    CREATED = "created"
    ALREADY_BOUND = "already_bound"


def _bound_value(activation: Activation, mode: BindingMode) -> Optional[str]:
    return activation.device_id if mode == BindingMode.device else activation.network_address


class BindingEngine:
    def __init__(self, activations: ActivationRepository, clock: Callable = utcnow):
        self.activations = activations
        self.clock = clock

    @staticmethod
    def check_candidate(mode: BindingMode, candidate: Optional[str]) -> str:
        """Required-field check, independent of any stored state."""
        value = (candidate or "").strip()
        if not value:
            if mode == BindingMode.device:
                raise MissingDeviceId()
            raise MissingNetworkAddress()
        return value

    def bind(self, lic: License, candidate: Optional[str]) -> BindingOutcome:
        mode = lic.binding_mode
        license_id = lic.id
        value = self.check_candidate(mode, candidate)

        active = self.activations.find_active_by_license(license_id)
        if active is not None:
            return self._compare(license_id, mode, active, value)

        now = self.clock()
        activation = Activation(
            license_id=license_id,
            device_id=value if mode == BindingMode.device else None,
            network_address=value if mode == BindingMode.network else None,
            is_active=True,
            activated_at=now,
            created_at=now,
            updated_at=now,
        )
        try:
            self.activations.save(activation)
        except IntegrityError:
            # another request activated this license first; its row decides
            self.activations.db.rollback()
            winner = self.activations.find_active_by_license(license_id)
            if winner is None:
                raise
            return self._compare(license_id, mode, winner, value)

        logger.info("License %s activated: first activation (%s=%s)", license_id, mode.value, value)
        return BindingOutcome.CREATED

    def _compare(self, license_id: int, mode: BindingMode, active: Activation, value: str) -> BindingOutcome:
        if _bound_value(active, mode) == value:
            return BindingOutcome.ALREADY_BOUND

        logger.warning(
            "License %s binding conflict: bound %s=%s, offered %s",
            license_id, mode.value, _bound_value(active, mode), value,
        )
        if mode == BindingMode.device:
            raise AlreadyActivatedElsewhere("License is already activated on a different machine")
        raise AlreadyActivatedElsewhere("License is already activated on a different IP address")
