# app/services/repositories.py
# -*- coding: utf-8 -*-
"""
SQLAlchemy-backed stores used by the engines. Writes are flushed, never
committed: the calling service owns the transaction.
"""

from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.activation_model import Activation
from app.models.license_model import BindingMode, License
from app.models.license_reset_model import LicenseReset
from app.models.oauth_user_model import OAuthUser


class LicenseRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_purchase_code(self, purchase_code: str, for_update: bool = False) -> Optional[License]:
        query = self.db.query(License).filter(License.purchase_code == purchase_code)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_by_id(self, license_id: int) -> Optional[License]:
        return self.db.query(License).filter(License.id == license_id).first()

    def save(self, lic: License) -> License:
        self.db.add(lic)
        self.db.flush()
        return lic

    def upsert(self, purchase_code: str, item_id: str, mode: BindingMode, now) -> Tuple[License, bool]:
        """
        Find-or-create by purchase code, reconciling item id / binding mode
        drift on an existing row. The row is locked for the rest of the
        transaction where the database supports it.

        Returns (license, created).
        """
        lic = self.find_by_purchase_code(purchase_code, for_update=True)

        if lic is None:
            lic = License(
                purchase_code=purchase_code,
                item_id=item_id,
                binding_mode=mode,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            try:
                return self.save(lic), True
            except IntegrityError:
                # lost a concurrent first-verification race; use the winner's row
                self.db.rollback()
                lic = self.find_by_purchase_code(purchase_code, for_update=True)
                if lic is None:
                    raise

        if lic.item_id != item_id or lic.binding_mode != mode:
            lic.item_id = item_id
            lic.binding_mode = mode
            lic.updated_at = now
            self.save(lic)

        return lic, False


class ActivationRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_active_by_license(self, license_id: int) -> Optional[Activation]:
        return (
            self.db.query(Activation)
            .filter(Activation.license_id == license_id)
            .filter(Activation.is_active.is_(True))
            .order_by(Activation.id)
            .first()
        )

    def list_active_by_license(self, license_id: int) -> List[Activation]:
        return (
            self.db.query(Activation)
            .filter(Activation.license_id == license_id)
            .filter(Activation.is_active.is_(True))
            .order_by(Activation.id)
            .all()
        )

    def list_by_license(self, license_id: int) -> List[Activation]:
        return (
            self.db.query(Activation)
            .filter(Activation.license_id == license_id)
            .order_by(Activation.id)
            .all()
        )

    def save(self, activation: Activation) -> Activation:
        self.db.add(activation)
        self.db.flush()
        return activation


class LicenseResetRepository:
    def __init__(self, db: Session):
        self.db = db

    def append(self, license_id: int, oauth_user_id: int, reason: Optional[str], now) -> LicenseReset:
        entry = LicenseReset(
            license_id=license_id,
            oauth_user_id=oauth_user_id,
            reason=reason,
            created_at=now,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_by_license(self, license_id: int) -> List[LicenseReset]:
        return (
            self.db.query(LicenseReset)
            .filter(LicenseReset.license_id == license_id)
            .order_by(LicenseReset.id)
            .all()
        )


class OAuthUserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_external_id(self, external_user_id: str) -> Optional[OAuthUser]:
        return self.db.query(OAuthUser).filter(OAuthUser.external_user_id == external_user_id).first()

    def find_by_id(self, user_id: int) -> Optional[OAuthUser]:
        return self.db.query(OAuthUser).filter(OAuthUser.id == user_id).first()

    def save(self, user: OAuthUser) -> OAuthUser:
        self.db.add(user)
        self.db.flush()
        return user
