"""Domain errors for the token lifecycle and lead export pipeline."""

from __future__ import annotations


class FSBOError(Exception):
    """Base class for domain errors."""

    def __init__(self, message: str, location_id: str | None = None):
        self.message = message
        self.location_id = location_id
        super().__init__(message)


class AuthRequiredError(FSBOError):
    """Raised when a tenant has no usable access token."""

    def __init__(self, location_id: str | None = None, message: str | None = None):
        super().__init__(
            message or "GHL authentication required. Connect the location via OAuth first.",
            location_id,
        )


class TokenExpiredError(AuthRequiredError):
    """Raised when the stored access token has expired and was not refreshed."""

    def __init__(self, location_id: str | None = None, message: str | None = None):
        super().__init__(location_id, message or "Stored GHL access token is expired")


class TokenRefreshError(FSBOError):
    """Raised when the OAuth provider rejects a refresh for one tenant."""


class QuotaExceededError(FSBOError):
    """Raised when a tenant already has its maximum of active scheduled searches."""

    def __init__(self, limit: int, location_id: str | None = None):
        self.limit = limit
        super().__init__(
            f"Maximum limit of {limit} automated searches reached. "
            "Please delete some existing searches before creating new ones.",
            location_id,
        )


class TenantMismatchError(FSBOError):
    """Raised when an OAuth response belongs to a different tenant than the session."""

    def __init__(self, expected: str | None, actual: str | None):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Location IDs do not match: expected {expected!r}, got {actual!r}", actual)


class MissingLocationIdError(FSBOError):
    """Raised when a token response carries no locationId."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "Token response did not include a locationId")


class ExportItemError(FSBOError):
    """Raised when a single property could not be exported to GHL."""

    def __init__(self, property_id: str | None, message: str, location_id: str | None = None):
        self.property_id = property_id
        super().__init__(message, location_id)


class StorageWriteError(FSBOError):
    """Raised when the export audit row could not be written."""
