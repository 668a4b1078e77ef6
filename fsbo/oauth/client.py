"""OAuth 2.0 client for the GHL Marketplace app.

Handles the Authorization Code flow used to connect a location:
1. Generate authorization URL (state bound to the expected location)
2. Exchange the callback code for access + refresh tokens
3. Refresh tokens before or after they expire
"""

from __future__ import annotations

import base64
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from ..config import settings
from ..errors import MissingLocationIdError


@dataclass
class OAuthTokens:
    """OAuth tokens returned from GHL."""

    access_token: str
    refresh_token: str
    expires_in: int  # seconds
    token_type: str = "Bearer"
    scope: str = ""
    user_type: str | None = None  # "Company" or "Location"
    company_id: str | None = None
    location_id: str | None = None
    _issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        """Absolute expiry (based on when the response was received)."""
        return self._issued_at + timedelta(seconds=self.expires_in)


class OAuthError(Exception):
    """OAuth-related error."""

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class OAuthClient:
    """OAuth 2.0 client for GHL Marketplace Apps.

    Usage:
        client = OAuthClient.from_settings()

        url = client.get_authorization_url(state)
        # GHL redirects to redirect_uri with ?code=xxx&state=xxx

        tokens = await client.exchange_code(code)
        new_tokens = await client.refresh_tokens(tokens.refresh_token)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        token_url: str | None = None,
        auth_url: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or []
        self.token_url = token_url or settings.ghl_token_url
        self.auth_url = auth_url or settings.ghl_auth_url
        self.api_version = api_version or settings.ghl_api_version
        self.timeout = timeout or settings.ghl_timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> "OAuthClient":
        """Create client from application settings.

        Raises:
            OAuthError: If client credentials are not configured
        """
        if not settings.oauth_configured:
            raise OAuthError(
                "OAuth not configured. Set FSBO_GHL_CLIENT_ID and FSBO_GHL_CLIENT_SECRET.",
                error_code="not_configured",
            )
        return cls(
            client_id=settings.ghl_client_id,
            client_secret=settings.ghl_client_secret,
            redirect_uri=settings.ghl_redirect_uri,
            scopes=settings.scope_list,
            transport=transport,
        )

    def get_authorization_url(self, state: str, scopes: list[str] | None = None) -> str:
        """Generate the authorization URL for user consent."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": state,
        }

        scope_list = scopes or self.scopes
        if scope_list:
            params["scope"] = " ".join(scope_list)

        return f"{self.auth_url}?{urlencode(params)}"

    def _headers(self) -> dict[str, str]:
        basic = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            "Authorization": f"Basic {basic}",
            "Version": self.api_version,
        }

    async def _post_token(self, form: dict[str, str], failure_code: str) -> dict[str, Any]:
        body = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **form,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.token_url, data=body, headers=self._headers())
            except httpx.HTTPError as e:
                raise OAuthError(
                    f"Token endpoint unreachable: {e}",
                    error_code=failure_code,
                ) from e

        if response.status_code != 200:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {"raw_response": response.text[:500]}
            raise OAuthError(
                f"Token request failed: {response.status_code}",
                error_code=error_data.get("error", failure_code),
                details=error_data,
            )

        try:
            return response.json()
        except ValueError as e:
            raise OAuthError(
                "Token endpoint returned invalid JSON",
                error_code="invalid_response",
                details={"raw_response": response.text[:500]},
            ) from e

    async def exchange_code(self, code: str, user_type: str = "Location") -> OAuthTokens:
        """Exchange authorization code for access tokens.

        Raises:
            OAuthError: If the exchange fails
            MissingLocationIdError: If the response is not scoped to a location
        """
        data = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "user_type": user_type,
                "redirect_uri": self.redirect_uri,
            },
            failure_code="exchange_failed",
        )
        tokens = self._parse_token_response(data)
        if not tokens.location_id:
            raise MissingLocationIdError()
        return tokens

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokens:
        """Refresh access token using refresh token.

        Raises:
            OAuthError: If refresh fails
        """
        data = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            failure_code="refresh_failed",
        )
        return self._parse_token_response(data)

    def _parse_token_response(self, data: dict[str, Any]) -> OAuthTokens:
        """Parse token response from GHL.

        Raises:
            OAuthError: If required fields are missing
        """
        try:
            return OAuthTokens(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_in=int(data.get("expires_in", 86400)),  # Default 24 hours
                token_type=data.get("token_type", "Bearer"),
                scope=data.get("scope", ""),
                user_type=data.get("userType"),
                company_id=data.get("companyId"),
                location_id=data.get("locationId"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise OAuthError(
                f"Invalid token response: missing {e}",
                error_code="invalid_response",
                details={"missing_field": str(e), "response_keys": list(data.keys())},
            )


class PendingAuthorizations:
    """In-process map of OAuth state -> location the session expects.

    The expected location may be None when the user connects from scratch,
    in which case the location returned by GHL becomes the session's tenant.
    """

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self.ttl_seconds = ttl_seconds or settings.oauth_state_ttl_seconds
        self._pending: dict[str, tuple[str | None, float]] = {}

    def issue(self, location_id: str | None = None) -> str:
        self._purge()
        state = secrets.token_urlsafe(32)
        self._pending[state] = (location_id, time.monotonic() + self.ttl_seconds)
        return state

    def consume(self, state: str) -> tuple[bool, str | None]:
        """Return (known, expected_location_id) and forget the state."""
        self._purge()
        entry = self._pending.pop(state, None)
        if entry is None:
            return False, None
        return True, entry[0]

    def _purge(self) -> None:
        now = time.monotonic()
        for key in [k for k, (_, exp) in self._pending.items() if exp <= now]:
            del self._pending[key]


pending_authorizations = PendingAuthorizations()
