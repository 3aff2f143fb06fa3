from sqlalchemy import Column, Integer, String, DateTime, Text
from config import Base
from app.utils.clock import utcnow


class OAuthUser(Base):
    __tablename__ = "oauth_users"

    id = Column(Integer, primary_key=True, index=True)

    external_user_id = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)

    # Delegated marketplace tokens
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def is_token_expired(self, now=None) -> bool:
        """A token without a known expiry is treated as expired."""
        if not self.token_expires_at:
            return True
        return self.token_expires_at < (now or utcnow())
