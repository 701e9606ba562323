"""
Price Verify — Verify-then-Commit Workflow

Drives one vendor price submission through the state machine in
workflow.states:

  1. Reject incomplete input without touching any external system
  2. Resolve the selection to a canonical product (catalog)
  3. Validate the price with the pricing engine (invoker)
  4. Commit the price to the ledger, only after an ACCEPT verdict

Every submission gets a fresh SubmissionRun and its own trace; nothing
is cached between submissions. Failures become a FAILED outcome with a
single human-readable message; they never escape submit().

Usage:
    workflow = PriceUpdateWorkflow(catalog, ledger, invoker)
    outcome = workflow.submit(PriceSubmission(
        commodity="Wheat", state="Bihar", district="Patna",
        market="Patna Market", vendor_price="2100",
    ))
    outcome.state, outcome.message
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from verifier.config import get_config_value
from verifier.errors import CollaboratorError, ExecutionError, ProtocolError
from verifier.invoker import VerificationInvoker
from verifier.logging import StructuredLogger
from verifier.types import ValidationRequest, ValidationVerdict
from workflow.collaborators import (
    CatalogService, HTTPCatalogClient, HTTPLedgerClient, LedgerService,
)
from workflow.states import (
    AcceptedPrice, SubmissionRun, SubmissionState, WorkflowOutcome,
)

logger = logging.getLogger("price_verify.workflow")

MSG_NO_PRODUCT = "no matching product"
MSG_ENGINE_UNAVAILABLE = "validation engine unavailable"
MSG_ENGINE_UNREADABLE = "validation engine returned unreadable result"
MSG_REJECTED = "Price rejected by validation rules"
MSG_COMMIT_FAILED = "Failed to update price"
MSG_COMMITTED = "Price updated"

DEFAULT_BASE_URL = "http://localhost:5000/api"

SELECTION_FIELDS = ("commodity", "state", "district", "market")

MAX_PRICE = Decimal("1e12")
MAX_PRICE_DECIMALS = 4


# ═══════════════════════════════════════════════════════════════════
# Submission Input
# ═══════════════════════════════════════════════════════════════════

@dataclass
class PriceSubmission:
    """Raw vendor input, as typed into the form."""
    commodity: str = ""
    state: str = ""
    district: str = ""
    market: str = ""
    vendor_price: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PriceSubmission:
        return cls(
            commodity=data.get("commodity") or "",
            state=data.get("state") or "",
            district=data.get("district") or "",
            market=data.get("market") or "",
            vendor_price=data.get("vendor_price"),
        )

    def selection(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in SELECTION_FIELDS}

    def missing_fields(self) -> list[str]:
        missing = [
            name for name in SELECTION_FIELDS
            if not isinstance(getattr(self, name), str) or not getattr(self, name).strip()
        ]
        if self.vendor_price is None or str(self.vendor_price).strip() == "":
            missing.append("vendor_price")
        return missing

    def parse_price(self) -> Decimal:
        """Parse vendor_price; raises ValueError unless positive, bounded, at most 4 decimals."""
        if isinstance(self.vendor_price, bool):
            raise ValueError("vendor_price must be a number")
        try:
            price = Decimal(str(self.vendor_price).strip())
        except InvalidOperation:
            raise ValueError(f"vendor_price is not a number: {self.vendor_price!r}")
        if not price.is_finite() or price <= 0:
            raise ValueError("vendor_price must be a positive amount")
        if price >= MAX_PRICE:
            raise ValueError(f"vendor_price must be below {MAX_PRICE:,.0f}")
        if -price.normalize().as_tuple().exponent > MAX_PRICE_DECIMALS:
            raise ValueError(f"vendor_price allows at most {MAX_PRICE_DECIMALS} decimal places")
        return price

    def to_request(self) -> ValidationRequest:
        return ValidationRequest(
            commodity=self.commodity.strip(),
            state=self.state.strip(),
            district=self.district.strip(),
            market=self.market.strip(),
            vendor_price=self.parse_price(),
        )


# ═══════════════════════════════════════════════════════════════════
# Workflow
# ═══════════════════════════════════════════════════════════════════

class PriceUpdateWorkflow:
    """Verify-then-commit orchestration over catalog, engine and ledger."""

    def __init__(
        self,
        catalog: CatalogService,
        ledger: LedgerService,
        invoker: VerificationInvoker,
        trace_factory: Callable[[], StructuredLogger] | None = None,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.invoker = invoker
        self.trace_factory = trace_factory or (lambda: StructuredLogger(workflow="price_update"))

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> PriceUpdateWorkflow:
        """Wire HTTP collaborators and the engine invoker from config."""
        base_url = get_config_value("collaborators.base_url", config, DEFAULT_BASE_URL)
        timeout = float(get_config_value("collaborators.timeout_seconds", config, 10.0))
        token = get_config_value("collaborators.auth_token", config, None)
        return cls(
            catalog=HTTPCatalogClient(base_url, timeout, token),
            ledger=HTTPLedgerClient(base_url, timeout, token),
            invoker=VerificationInvoker.from_config(config),
        )

    def submit(self, submission: PriceSubmission) -> WorkflowOutcome:
        """Run one submission from IDLE to a terminal state."""
        run = SubmissionRun()
        trace = self.trace_factory()
        start = time.monotonic()
        trace.on_submission_start(submission_id=run.submission_id, **submission.selection())

        outcome = self._drive(run, submission, trace)

        trace.on_submission_end(outcome.state.value, outcome.message,
                                time.monotonic() - start)
        return outcome

    # ── State Helpers ──────────────────────────────────────────

    def _move(self, run: SubmissionRun, to: SubmissionState,
              trace: StructuredLogger, reason: str = "") -> None:
        previous = run.transition(to)
        trace.on_state_transition(previous.value, to.value, reason)

    def _finish(
        self,
        run: SubmissionRun,
        to: SubmissionState,
        message: str,
        trace: StructuredLogger,
        verdict: ValidationVerdict | None = None,
        product_id: Any = None,
    ) -> WorkflowOutcome:
        self._move(run, to, trace, message)
        return WorkflowOutcome(
            submission_id=run.submission_id,
            state=run.state,
            message=message,
            verdict=verdict,
            product_id=product_id,
            history=run.path(),
        )

    # ── Transitions ────────────────────────────────────────────

    def _drive(self, run: SubmissionRun, submission: PriceSubmission,
               trace: StructuredLogger) -> WorkflowOutcome:
        missing = submission.missing_fields()
        if missing:
            return self._finish(run, SubmissionState.FAILED,
                                f"incomplete submission: missing {', '.join(missing)}", trace)
        try:
            request = submission.to_request()
        except ValueError as e:
            return self._finish(run, SubmissionState.FAILED, str(e), trace)

        # IDLE → RESOLVING_PRODUCT
        self._move(run, SubmissionState.RESOLVING_PRODUCT, trace)
        try:
            match = self.catalog.match_product(
                request.commodity, request.state, request.district, request.market,
            )
        except CollaboratorError as e:
            return self._finish(run, SubmissionState.FAILED, e.message or MSG_NO_PRODUCT, trace)

        product_id = match.get("blockchainProductId") if isinstance(match, dict) else None
        if product_id is None or product_id == "":
            return self._finish(run, SubmissionState.FAILED, MSG_NO_PRODUCT, trace)

        # RESOLVING_PRODUCT → VERIFYING
        self._move(run, SubmissionState.VERIFYING, trace)
        try:
            verdict = self.invoker.invoke(request, trace=trace)
        except ExecutionError as e:
            logger.warning("Validation engine unavailable: %s", e.message)
            return self._finish(run, SubmissionState.FAILED, MSG_ENGINE_UNAVAILABLE, trace,
                                product_id=product_id)
        except ProtocolError as e:
            logger.warning("Unreadable verdict: %s", e.raw_output[:200])
            return self._finish(run, SubmissionState.FAILED, MSG_ENGINE_UNREADABLE, trace,
                                product_id=product_id)

        if not verdict.accepted:
            return self._finish(run, SubmissionState.REJECTED, verdict.reason or MSG_REJECTED,
                                trace, verdict=verdict, product_id=product_id)

        # VERIFYING → ACCEPTED
        accepted = AcceptedPrice.from_verdict(product_id, request, verdict)
        self._move(run, SubmissionState.ACCEPTED, trace)
        return self._commit(run, accepted, trace)

    def _commit(self, run: SubmissionRun, accepted: AcceptedPrice,
                trace: StructuredLogger) -> WorkflowOutcome:
        # ACCEPTED → COMMITTING → {DONE | FAILED}
        self._move(run, SubmissionState.COMMITTING, trace)
        commit = accepted.commit_request()
        try:
            response = self.ledger.update_price(commit)
        except CollaboratorError as e:
            message = e.message or MSG_COMMIT_FAILED
            trace.on_commit(str(commit.product_id), str(commit.new_price), "failed", message)
            return self._finish(run, SubmissionState.FAILED, message, trace,
                                verdict=accepted.verdict, product_id=commit.product_id)

        if not isinstance(response, dict):
            response = {}
        message = str(response.get("message") or MSG_COMMITTED)
        trace.on_commit(str(commit.product_id), str(commit.new_price), "ok", message)
        verdict = _embedded_verdict(response) or accepted.verdict
        return self._finish(run, SubmissionState.DONE, message, trace,
                            verdict=verdict, product_id=commit.product_id)


def _embedded_verdict(response: dict[str, Any]) -> ValidationVerdict | None:
    """The ledger may echo its own copy of the verdict as mlResult."""
    embedded = response.get("mlResult")
    if not isinstance(embedded, dict):
        return None
    return ValidationVerdict.from_document(embedded)
