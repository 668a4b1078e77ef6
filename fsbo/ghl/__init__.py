"""GHL API client with per-location request budgeting."""

from .client import (
    ContactsClient,
    GHLAuthError,
    GHLClient,
    GHLError,
    GHLRateLimitError,
    extract_contact_id,
)
from .rate_limit import DailyLimitExceeded, RequestBudget, ghl_request_budget

__all__ = [
    "ContactsClient",
    "DailyLimitExceeded",
    "GHLAuthError",
    "GHLClient",
    "GHLError",
    "GHLRateLimitError",
    "RequestBudget",
    "extract_contact_id",
    "ghl_request_budget",
]
