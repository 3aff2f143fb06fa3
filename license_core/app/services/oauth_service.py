# app/services/oauth_service.py
from datetime import timedelta
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from app.models.oauth_user_model import OAuthUser
from app.services.envato_client import Identity, TokenGrant
from app.services.repositories import OAuthUserRepository
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class OAuthService:
    """Marketplace login: code exchange, identity lookup, OAuthUser upsert."""

    def __init__(self, db: Session, identity_provider, clock: Callable = utcnow):
        self.db = db
        self.identity_provider = identity_provider
        self.clock = clock
        self.users = OAuthUserRepository(db)

    def complete_login(self, code: str) -> OAuthUser:
        grant = self.identity_provider.exchange_authorization_code(code)
        identity = self.identity_provider.fetch_identity(grant.access_token)
        user = self.save_oauth_user(identity, grant)
        logger.info("OAuth login for user %s (%s)", user.id, user.username)
        return user

    def save_oauth_user(self, identity: Identity, grant: TokenGrant) -> OAuthUser:
        now = self.clock()
        user = self.users.find_by_external_id(identity.external_user_id)

        if user is None:
            user = OAuthUser(
                external_user_id=identity.external_user_id,
                username=identity.username,
                email=identity.email,
                created_at=now,
            )

        user.access_token = grant.access_token
        user.refresh_token = grant.refresh_token
        if grant.expires_in:
            user.token_expires_at = now + timedelta(seconds=grant.expires_in)
        user.updated_at = now

        try:
            self.users.save(user)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return user

    def current_user(self, user_id) -> Optional[OAuthUser]:
        """The logged-in user, or None when unknown or the delegated token has expired."""
        if not user_id:
            return None
        user = self.users.find_by_id(int(user_id))
        if user is None or user.is_token_expired(self.clock()):
            return None
        return user
