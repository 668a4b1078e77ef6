"""Job invocation result: JSON summary plus an HTTP-style status code."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class JobReport:
    body: dict[str, Any] = field(default_factory=dict)
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @classmethod
    def failure(cls, error: Exception | str, **counters: int) -> "JobReport":
        return cls(body={"error": str(error), **counters}, status_code=500)
