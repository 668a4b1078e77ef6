"""Service layer for tokens, deduplication, export and scheduled searches."""
