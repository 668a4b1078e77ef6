"""Externally triggered jobs: scheduled search runner and token refresher."""

from .report import JobReport
from .scheduled_searches import run_scheduled_searches, run_search
from .token_refresh import refresh_expiring_tokens

__all__ = ["JobReport", "refresh_expiring_tokens", "run_scheduled_searches", "run_search"]
