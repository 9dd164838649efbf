"""Google OAuth2 authorization-code client."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from promptlog.core.config import Settings
from promptlog.core.exceptions import AuthenticationError, OAuthConfigurationError

logger = logging.getLogger("promptlog")

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ("openid", "profile", "email")


class GoogleOAuthClient:
    """Runs the provider side of sign-in: redirect URL, code exchange, profile."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["GoogleOAuthClient"]:
        """Client for the configured credentials, or None in no-identity mode."""
        if not settings.identity_configured:
            return None
        return cls(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.OAUTH_CALLBACK_URL,
        )

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def authenticate(self, code: str) -> Dict[str, Any]:
        """Exchange ``code`` and return the user fields to upsert.

        Raises:
            AuthenticationError: If the provider rejects the code or the
                profile lacks a subject id.
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            access_token = await self._exchange_code(client, code)
            profile = await self._fetch_profile(client, access_token)

        subject = profile.get("sub")
        if not subject:
            raise AuthenticationError("Identity provider returned no subject id")
        return {
            "id": str(subject),
            "email": profile.get("email"),
            "first_name": profile.get("given_name"),
            "last_name": profile.get("family_name"),
            "profile_image_url": profile.get("picture"),
        }

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        try:
            resp = await client.post(
                TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Token exchange failed: {e}") from e
        if resp.status_code != 200:
            logger.warning("Token exchange rejected: %s %s", resp.status_code, resp.text[:200])
            raise AuthenticationError("Token exchange rejected by identity provider")
        token = resp.json().get("access_token")
        if not token:
            raise AuthenticationError("Identity provider returned no access token")
        return token

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> Dict[str, Any]:
        try:
            resp = await client.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Profile request failed: {e}") from e
        if resp.status_code != 200:
            raise AuthenticationError("Identity provider refused the profile request")
        return resp.json()


def require_client(client: Optional[GoogleOAuthClient]) -> GoogleOAuthClient:
    if client is None:
        raise OAuthConfigurationError("OAuth provider is not configured")
    return client
