"""
Price Verify — API Models

Request bodies for the API server. No FastAPI dependency: used by the
server, the CLI and tests.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any

from workflow.orchestrator import PriceSubmission


@dataclass
class PriceForm:
    """POST /check-price and POST /v1/price-submissions request body."""
    commodity: str = ""
    state: str = ""
    district: str = ""
    market: str = ""
    vendor_price: Any = None

    @classmethod
    def from_body(cls, body: Any) -> PriceForm:
        if not isinstance(body, dict):
            return cls()
        return cls(
            commodity=body.get("commodity") or "",
            state=body.get("state") or "",
            district=body.get("district") or "",
            market=body.get("market") or "",
            vendor_price=body.get("vendor_price"),
        )

    def validate(self) -> list[str]:
        """Return list of validation errors (empty = valid)."""
        errors = []
        for name in ("commodity", "state", "district", "market"):
            value = getattr(self, name)
            if not value or not isinstance(value, str) or not value.strip():
                errors.append(f"{name} is required and must be a string")
        if self.vendor_price is None or isinstance(self.vendor_price, bool):
            errors.append("vendor_price is required and must be a number")
        else:
            try:
                self.to_submission().parse_price()
            except ValueError as e:
                errors.append(str(e))
        return errors

    def to_submission(self) -> PriceSubmission:
        return PriceSubmission(**asdict(self))
