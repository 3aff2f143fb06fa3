from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Index, text
from config import Base
from app.utils.clock import utcnow

PARTIAL_INDEX_DIALECTS = ("sqlite", "postgresql")


class Activation(Base):
    __tablename__ = "activations"

    id = Column(Integer, primary_key=True, index=True)

    license_id = Column(Integer, ForeignKey("licenses.id"), nullable=False, index=True)

    # Exactly one of these is set, chosen by the license binding mode
    device_id = Column(String(255), nullable=True, index=True)
    network_address = Column(String(45), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    activated_at = Column(DateTime, default=utcnow, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # at most one active activation per license; only where partial
        # indexes exist, MySQL would turn this into UNIQUE (license_id)
        Index(
            "uq_activations_one_active",
            "license_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ).ddl_if(dialect=PARTIAL_INDEX_DIALECTS),
    )

    @property
    def bound_identifier(self):
        return self.device_id if self.device_id is not None else self.network_address

    def __repr__(self):
        state = "active" if self.is_active else "inactive"
        return f"<Activation {self.id} license={self.license_id} {self.bound_identifier} ({state})>"
