"""
Price Verify — Type Definitions

Records exchanged between the executor resolver, the verification
invoker and the workflow. Requests, verdicts and commit requests are
immutable; an ExecutorAttempt only lives for one resolution pass.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Mapping

from verifier.errors import ProtocolError


# ─── Validation Request ─────────────────────────────────────────────

def _json_number(value: Decimal) -> int | float:
    """Render a Decimal as a JSON number (int when integral)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _plain(value: Any) -> Any:
    """Replace Decimals (at any depth) with JSON numbers."""
    if isinstance(value, Decimal):
        return _json_number(value) if value.is_finite() else str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class ValidationRequest:
    """One vendor price proposal for a commodity at a market."""
    commodity: str
    state: str
    district: str
    market: str
    vendor_price: Decimal

    def to_payload(self) -> dict[str, Any]:
        """Wire document handed to the validation engine."""
        return {
            "commodity": self.commodity,
            "state": self.state,
            "district": self.district,
            "market": self.market,
            "vendor_price": _json_number(self.vendor_price),
        }


# ─── Verdict ────────────────────────────────────────────────────────

class VerdictStatus(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"


_REFERENCE_PRICE_KEYS = ("market_modal_price", "marketModalPrice")


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            d = Decimal(str(value))
        except InvalidOperation:
            return None
        return d if d.is_finite() else None
    return None


@dataclass(frozen=True)
class ValidationVerdict:
    """
    Decoded engine verdict.

    status is ACCEPT only when the engine said exactly "accept"; any other
    value, or no status at all, is a REJECT. Keys other than status, reason
    and the reference price are kept in raw_fields.
    """
    status: VerdictStatus
    reason: str | None = None
    reference_price: Decimal | None = None
    raw_fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "raw_fields", MappingProxyType(dict(self.raw_fields)))

    @property
    def accepted(self) -> bool:
        return self.status == VerdictStatus.ACCEPT

    @classmethod
    def from_document(cls, doc: Any) -> ValidationVerdict:
        if not isinstance(doc, dict):
            raise ProtocolError(
                "invalid verdict encoding",
                raw_output=repr(doc)[:500],
            )

        raw_status = doc.get("status")
        status = VerdictStatus.ACCEPT if raw_status == "accept" else VerdictStatus.REJECT

        reason = doc.get("reason")
        if reason is not None and not isinstance(reason, str):
            reason = str(reason)

        reference_price = None
        for key in _REFERENCE_PRICE_KEYS:
            if key in doc:
                reference_price = _to_decimal(doc[key])
                break

        extra = {
            k: v for k, v in doc.items()
            if k not in ("status", "reason") and k not in _REFERENCE_PRICE_KEYS
        }
        # Keep the engine's own status word when it was not a plain accept/reject
        if raw_status not in ("accept", "reject"):
            extra["engine_status"] = raw_status

        return cls(status=status, reason=reason,
                   reference_price=reference_price, raw_fields=extra)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"status": self.status.value}
        if self.reason is not None:
            d["reason"] = self.reason
        if self.reference_price is not None:
            d["market_modal_price"] = _json_number(self.reference_price)
        for k, v in self.raw_fields.items():
            d[k] = _plain(v)
        return d


# ─── Executor Attempt ───────────────────────────────────────────────

class AttemptOutcome(str, enum.Enum):
    """How one executor launch ended."""
    LAUNCH_FAILED = "launch_failed"
    EXITED_NONZERO_NO_OUTPUT = "exited_nonzero_no_output"
    EXITED_NONZERO_WITH_OUTPUT = "exited_nonzero_with_output"
    EXITED_ZERO = "exited_zero"
    TIMED_OUT = "timed_out"


@dataclass
class ExecutorAttempt:
    """One launch of one executor during a resolution pass."""
    executor: str
    outcome: AttemptOutcome
    stdout: bytes = b""
    stderr: bytes = b""
    returncode: int | None = None
    error: str = ""

    @property
    def usable(self) -> bool:
        """True when this attempt ends the search for an executor."""
        return self.outcome in (
            AttemptOutcome.EXITED_ZERO,
            AttemptOutcome.EXITED_NONZERO_WITH_OUTPUT,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "executor": self.executor,
            "outcome": self.outcome.value,
            "returncode": self.returncode,
            "stdout_bytes": len(self.stdout),
            "stderr_bytes": len(self.stderr),
            "error": self.error[:500],
        }


# ─── Commit Request ─────────────────────────────────────────────────

@dataclass(frozen=True)
class CommitRequest:
    """Ledger price update for a canonical product."""
    product_id: Any
    new_price: Decimal

    def to_payload(self) -> dict[str, Any]:
        return {"productId": self.product_id, "newPrice": _json_number(self.new_price)}
