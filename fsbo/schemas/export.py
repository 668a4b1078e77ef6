"""Export batch outcome models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .property import PropertyRecord


class ExportErrorDetail(BaseModel):
    property_id: str | None = None
    error: str


class BatchResult(BaseModel):
    exported: int = 0
    total: int = 0
    timed_out: int = 0
    contact_ids: list[str] = Field(default_factory=list)
    errors: list[ExportErrorDetail] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total - self.exported

    @property
    def status(self) -> str:
        """One of success / partial / failed."""
        if self.exported == self.total:
            return "success"
        if self.exported == 0:
            return "failed"
        return "partial"

    @property
    def message(self) -> str:
        if self.status == "success":
            if self.total == 1:
                return "Property exported to GHL successfully"
            return f"All {self.total} properties exported to GHL successfully"
        if self.status == "partial":
            return f"Exported {self.exported} of {self.total} properties to GHL"
        return "Failed to export properties to GHL"

    def summary(self) -> dict:
        data = self.model_dump()
        data["status"] = self.status
        data["message"] = self.message
        return data


class ExportRequest(BaseModel):
    properties: list[PropertyRecord]
    search_id: str | None = None
