"""FSBO lead sync configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class FSBOSettings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///fsbo.db"
    echo_sql: bool = False
    app_title: str = "FSBO Lead Sync"
    log_level: str = "INFO"

    # GHL Marketplace app (OAuth)
    ghl_client_id: str = ""
    ghl_client_secret: str = ""
    ghl_redirect_uri: str = "http://localhost:8030/oauth/callback"
    ghl_scopes: str = "contacts.write contacts.readonly locations.readonly"
    ghl_api_version: str = "2021-07-28"
    ghl_api_base: str = "https://services.leadconnectorhq.com"
    ghl_auth_url: str = "https://marketplace.leadconnectorhq.com/oauth/chooselocation"
    ghl_token_url: str = "https://services.leadconnectorhq.com/oauth/token"
    ghl_timeout_seconds: float = 30.0
    oauth_state_ttl_seconds: int = 600

    # GHL published ceilings: 100 requests / 10s burst, 200k / day per location
    ghl_burst_limit: int = 100
    ghl_burst_window_seconds: float = 10.0
    ghl_daily_limit: int = 200_000

    # Listing search collaborator (RapidAPI-hosted Zillow clone)
    listing_api_host: str = ""
    listing_api_key: str = ""
    listing_page_delay_seconds: float = 0.5
    listing_detail_delay_seconds: float = 0.5
    listing_max_pages: int = 20

    # Per-tenant scheduled search quota
    default_max_searches_limit: int = 100
    # Comma-separated location_id:limit pairs
    elevated_quota_locations: str = "5YrB6A0F3YI4XSvjfD25:700"

    # Export pipeline
    contact_source: str = "AIRES FSBO Finder"
    export_delay_seconds: float = 0.2
    export_item_timeout_seconds: float = 60.0
    dedup_fail_closed: bool = False

    # Jobs
    token_refresh_horizon_seconds: int = 3600
    token_refresh_delay_seconds: float = 0.1
    job_deadline_seconds: float | None = None
    scheduled_search_batch_size: int = 1
    jobs_api_key: str = ""
    worker_enabled: bool = False
    worker_search_interval_seconds: float = 60.0
    worker_refresh_interval_seconds: float = 900.0

    model_config = {"env_prefix": "FSBO_", "env_file": ".env", "extra": "ignore"}

    @property
    def scope_list(self) -> list[str]:
        return [s for s in self.ghl_scopes.split() if s]

    @property
    def elevated_quota_map(self) -> dict[str, int]:
        """Parse comma-separated location_id:limit pairs."""
        mapping: dict[str, int] = {}
        if not self.elevated_quota_locations.strip():
            return mapping

        for item in self.elevated_quota_locations.split(","):
            pair = item.strip()
            if not pair or ":" not in pair:
                continue
            location_id, limit = pair.split(":", 1)
            location_id = location_id.strip()
            try:
                value = int(limit.strip())
            except ValueError:
                continue
            if location_id:
                mapping[location_id] = value
        return mapping

    @property
    def oauth_configured(self) -> bool:
        return bool(self.ghl_client_id and self.ghl_client_secret)

    @property
    def listing_api_configured(self) -> bool:
        return bool(self.listing_api_host and self.listing_api_key)


settings = FSBOSettings()
