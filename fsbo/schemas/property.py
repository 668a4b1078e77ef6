"""Listing search parameters and property records (camelCase on the wire)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

NOT_AVAILABLE = "N/A"


class ListingAgent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    name: str = NOT_AVAILABLE
    broker_name: str | None = Field(default=NOT_AVAILABLE, alias="brokerName")
    phone: str = NOT_AVAILABLE
    email: str = NOT_AVAILABLE


class PropertyRecord(BaseModel):
    """A single listing as returned by the search collaborator."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    id: str
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = Field(default="", alias="zipCode")
    county: str | None = None
    price: float = 0
    beds: float = 0
    baths: float = 0
    sqft: float = 0
    property_type: str | None = Field(default=None, alias="propertyType")
    year_built: int | None = Field(default=None, alias="yearBuilt")
    zillow_link: str | None = Field(default=None, alias="zillowLink")
    image_url: str | None = Field(default=None, alias="imageUrl")
    listing_agent: ListingAgent = Field(default_factory=ListingAgent, alias="listingAgent")

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe snapshot stored in search_results.property_data."""
        return self.model_dump(mode="json", by_alias=True)


class SearchParams(BaseModel):
    """Filter set stored on a scheduled search."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    location: str
    state: str
    home_type: list[str] = Field(default_factory=list, alias="homeType")
    property_type: str | None = Field(default=None, alias="propertyType")
    min_price: str | None = Field(default=None, alias="minPrice")
    max_price: str | None = Field(default=None, alias="maxPrice")
    beds: str | None = None
    baths: str | None = None
    min_sqft: str | None = Field(default=None, alias="minSqft")
    max_sqft: str | None = Field(default=None, alias="maxSqft")
    min_year: str | None = Field(default=None, alias="minYear")
    max_year: str | None = Field(default=None, alias="maxYear")
    sort: str | None = None
    listing_type: str = Field(default="by_owner", alias="listingType")

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
