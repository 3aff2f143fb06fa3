# app/services/envato_client.py
# -*- coding: utf-8 -*-
"""
Envato marketplace adapter
  - verify_purchase_authenticity(): seller-side sale lookup (personal token)
  - verify_purchase_ownership():   buyer-side purchase lookup (OAuth token)
  - authorization_url() / exchange_authorization_code() / fetch_identity(): OAuth

Every call is a single attempt with a timeout. Purchase failures surface as
PurchaseVerificationFailed, OAuth failures as OAuthError; callers never see
raw transport errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlencode
import logging

import requests

from app.models.logs_model import mask_code
from app.utils.errors import OAuthError, PurchaseVerificationFailed

logger = logging.getLogger(__name__)

ENVATO_API_BASE = "https://api.envato.com"
AUTHORIZATION_URL = ENVATO_API_BASE + "/authorization"
TOKEN_URL = ENVATO_API_BASE + "/token"
WHOAMI_URL = ENVATO_API_BASE + "/whoami"
ACCOUNT_URL = ENVATO_API_BASE + "/v1/market/private/user/account.json"
USERNAME_URL = ENVATO_API_BASE + "/v1/market/private/user/username.json"
EMAIL_URL = ENVATO_API_BASE + "/v1/market/private/user/email.json"
AUTHOR_SALE_URL = ENVATO_API_BASE + "/v3/market/author/sale"
BUYER_PURCHASE_URL = ENVATO_API_BASE + "/v3/market/buyer/purchase"


@dataclass
class PurchaseVerification:
    item_id: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenGrant:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


@dataclass
class Identity:
    external_user_id: str
    username: str
    email: Optional[str] = None


def _json_or_none(resp: requests.Response) -> Optional[dict]:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _seconds_or_none(value) -> Optional[int]:
    try:
        return int(value) if value else None
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric expires_in %r", value)
        return None


def _item_id_of(data: Optional[dict]) -> Optional[str]:
    item = (data or {}).get("item")
    if isinstance(item, dict) and item.get("id") not in (None, ""):
        return str(item["id"])
    return None


class EnvatoClient:
    def __init__(
        self,
        personal_token: str = "",
        client_id: str = "",
        client_secret: str = "",
        redirect_uri: str = "",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.personal_token = personal_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls) -> "EnvatoClient":
        import config

        return cls(
            personal_token=config.ENVATO_PERSONAL_TOKEN,
            client_id=config.ENVATO_OAUTH_CLIENT_ID,
            client_secret=config.ENVATO_OAUTH_CLIENT_SECRET,
            redirect_uri=config.ENVATO_OAUTH_REDIRECT_URI,
            timeout=config.ENVATO_HTTP_TIMEOUT,
        )

    # ----------------------------
    # Low-level HTTP helper
    # ----------------------------
    def _get(self, url: str, token: str, params: Optional[dict] = None) -> requests.Response:
        return self.session.get(
            url,
            params=params,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            timeout=self.timeout,
        )

    # ----------------------------
    # Purchase verification
    # ----------------------------
    def verify_purchase_authenticity(self, purchase_code: str) -> PurchaseVerification:
        if not self.personal_token:
            logger.error("Cannot verify purchase: personal token not configured")
            raise PurchaseVerificationFailed("Purchase verification not configured")

        try:
            resp = self._get(AUTHOR_SALE_URL, self.personal_token, params={"code": purchase_code})
        except requests.RequestException as e:
            # the exception text carries the request url, purchase code included
            logger.error("Purchase verification request failed for %s: %s", mask_code(purchase_code), type(e).__name__)
            raise PurchaseVerificationFailed(
                "Failed to verify purchase code",
                context={"exception": type(e).__name__},
            )

        data = _json_or_none(resp)

        if resp.status_code != 200:
            logger.error(
                "Purchase verification failed for %s: HTTP %s %s",
                mask_code(purchase_code), resp.status_code, (resp.text or "")[:500],
            )
            raise PurchaseVerificationFailed(
                self._sale_error_message(resp.status_code, data or {}),
                context={"status": resp.status_code, "response": data},
            )

        item_id = _item_id_of(data)
        if item_id is None:
            logger.error("Purchase verification response missing item data for %s", mask_code(purchase_code))
            raise PurchaseVerificationFailed(
                "Invalid purchase code or response format",
                context={"status": resp.status_code, "response": data},
            )

        return PurchaseVerification(item_id=item_id, raw=data)

    @staticmethod
    def _sale_error_message(status: int, data: dict) -> str:
        if status == 401:
            return "Invalid or expired personal token. Please check your ENVATO_PERSONAL_TOKEN."
        if status == 403:
            return (
                "Personal token does not have required permissions. Ensure it has the "
                "\"View your items' sales history\" permission (scope: sale:history)."
            )
        if status == 404:
            return "Purchase code not found or invalid."
        description = data.get("error_description") or data.get("description")
        if description:
            return str(description)
        error = data.get("error") or data.get("message")
        if error:
            return str(error)
        return "Failed to verify purchase code with Envato"

    def verify_purchase_ownership(self, access_token: str, purchase_code: str) -> PurchaseVerification:
        try:
            resp = self._get(BUYER_PURCHASE_URL, access_token, params={"code": purchase_code})
        except requests.RequestException as e:
            logger.error("Ownership verification request failed for %s: %s", mask_code(purchase_code), type(e).__name__)
            raise PurchaseVerificationFailed(
                "Failed to verify purchase ownership",
                context={"exception": type(e).__name__},
            )

        if resp.status_code != 200:
            logger.warning(
                "Purchase ownership verification failed for %s: HTTP %s",
                mask_code(purchase_code), resp.status_code,
            )
            raise PurchaseVerificationFailed(context={"status": resp.status_code})

        data = _json_or_none(resp)
        item_id = _item_id_of(data)
        if item_id is None:
            logger.warning("Ownership response missing item data for %s", mask_code(purchase_code))
            raise PurchaseVerificationFailed(
                "Invalid purchase code or response format",
                context={"response": data},
            )

        return PurchaseVerification(item_id=item_id, raw=data)

    # ----------------------------
    # OAuth
    # ----------------------------
    def authorization_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": state,
            "scope": "default",
        }
        return AUTHORIZATION_URL + "?" + urlencode(params)

    def exchange_authorization_code(self, code: str) -> TokenGrant:
        try:
            resp = self.session.post(
                TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("OAuth token exchange request failed: %s", type(e).__name__)
            raise OAuthError("Failed to exchange code for token")

        data = _json_or_none(resp) or {}

        if resp.status_code != 200:
            logger.error("OAuth token exchange failed: HTTP %s %s", resp.status_code, (resp.text or "")[:500])
            raise OAuthError(
                data.get("error_description") or data.get("error") or "Failed to exchange code for token"
            )

        if not data.get("access_token"):
            logger.error("OAuth token exchange response missing access_token, keys=%s", sorted(data))
            raise OAuthError("Access token not found in response")

        expires_in = _seconds_or_none(data.get("expires_in"))
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=expires_in,
        )

    def _optional_lookup(self, url: str, access_token: str) -> Optional[dict]:
        """Best-effort profile lookup; failures are logged and yield None."""
        try:
            resp = self._get(url, access_token)
        except requests.RequestException as e:
            logger.warning("Profile lookup %s failed: %s", url, e)
            return None
        if resp.status_code != 200:
            logger.warning("Profile lookup %s failed: HTTP %s", url, resp.status_code)
            return None
        return _json_or_none(resp)

    def fetch_identity(self, access_token: str) -> Identity:
        try:
            resp = self._get(WHOAMI_URL, access_token)
        except requests.RequestException as e:
            logger.error("OAuth whoami request failed: %s", e)
            raise OAuthError(f"Failed to get user information: {e}")

        data = _json_or_none(resp) or {}
        if resp.status_code != 200:
            logger.error("Failed to get user id from /whoami: HTTP %s", resp.status_code)
            raise OAuthError(data.get("error") or data.get("message") or "Failed to get user information")

        user_id = data.get("userId")
        if not user_id:
            raise OAuthError("User ID not found in response")

        username = (self._optional_lookup(USERNAME_URL, access_token) or {}).get("username")
        email = (self._optional_lookup(EMAIL_URL, access_token) or {}).get("email")

        if not username or not email:
            account = (self._optional_lookup(ACCOUNT_URL, access_token) or {}).get("account") or {}
            username = username or account.get("username") or account.get("firstname")
            email = email or account.get("email")

        return Identity(
            external_user_id=str(user_id),
            username=username or f"user_{user_id}",
            email=email,
        )
