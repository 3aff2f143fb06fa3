# app/models/license_model.py
# -*- coding: utf-8 -*-
from sqlalchemy import Column, Integer, String, DateTime, Enum, Boolean
from config import Base
from app.utils.clock import utcnow
import enum


class BindingMode(enum.Enum):
    device = "device"      # bound to a device / machine id
    network = "network"    # bound to the caller's IP address


class License(Base):
    __tablename__ = "licenses"

    id = Column(Integer, primary_key=True, index=True)

    # Marketplace identity (immutable once set)
    purchase_code = Column(String(255), unique=True, nullable=False, index=True)
    item_id = Column(String(32), nullable=False, index=True)

    # Derived from the item policy mapping, never chosen by the caller
    binding_mode = Column(Enum(BindingMode, name="binding_mode"), nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<License {self.id} item={self.item_id} ({self.binding_mode.value})>"
