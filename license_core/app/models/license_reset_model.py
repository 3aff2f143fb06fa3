from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text
from config import Base
from app.utils.clock import utcnow


class LicenseReset(Base):
    """Append-only audit row, one per successful reset."""

    __tablename__ = "license_resets"

    id = Column(Integer, primary_key=True, index=True)

    license_id = Column(Integer, ForeignKey("licenses.id"), nullable=False, index=True)
    oauth_user_id = Column(Integer, ForeignKey("oauth_users.id"), nullable=False, index=True)

    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
