"""Listing search collaborator."""

from .client import ListingSearchClient, ListingSearchError, PropertySource

__all__ = ["ListingSearchClient", "ListingSearchError", "PropertySource"]
