"""OAuth module for connecting GHL locations.

Usage:
    from fsbo.oauth import OAuthClient, pending_authorizations

    client = OAuthClient.from_settings()
    state = pending_authorizations.issue(location_id)
    auth_url = client.get_authorization_url(state)

    tokens = await client.exchange_code(code)
    tokens = await client.refresh_tokens(tokens.refresh_token)
"""

from .client import (
    OAuthClient,
    OAuthError,
    OAuthTokens,
    PendingAuthorizations,
    pending_authorizations,
)

__all__ = [
    "OAuthClient",
    "OAuthError",
    "OAuthTokens",
    "PendingAuthorizations",
    "pending_authorizations",
]
