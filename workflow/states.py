"""
Price Verify — Submission State Machine

    IDLE → RESOLVING_PRODUCT → VERIFYING → ACCEPTED → COMMITTING → DONE
                                         ↘ REJECTED
    (any non-terminal state) → FAILED

Pure logic, no I/O. The orchestrator drives a SubmissionRun through
these states; a terminal state accepts no further transition, so each
run reaches DONE, REJECTED or FAILED at most once.

A commit is only reachable through an AcceptedPrice, and an
AcceptedPrice can only be built from an ACCEPT verdict.
"""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from verifier.errors import InvalidTransition
from verifier.types import CommitRequest, ValidationRequest, ValidationVerdict


class SubmissionState(str, enum.Enum):
    IDLE              = "idle"
    RESOLVING_PRODUCT = "resolving_product"
    VERIFYING         = "verifying"
    ACCEPTED          = "accepted"
    COMMITTING        = "committing"
    DONE              = "done"
    REJECTED          = "rejected"
    FAILED            = "failed"


# Allowed transitions: from_state → set of valid to_states
_TRANSITIONS: dict[SubmissionState, set[SubmissionState]] = {
    SubmissionState.IDLE:              {SubmissionState.RESOLVING_PRODUCT, SubmissionState.FAILED},
    SubmissionState.RESOLVING_PRODUCT: {SubmissionState.VERIFYING, SubmissionState.FAILED},
    SubmissionState.VERIFYING:         {SubmissionState.ACCEPTED, SubmissionState.REJECTED,
                                        SubmissionState.FAILED},
    SubmissionState.ACCEPTED:          {SubmissionState.COMMITTING},
    SubmissionState.COMMITTING:        {SubmissionState.DONE, SubmissionState.FAILED},
}

TERMINAL_STATES = frozenset({SubmissionState.DONE, SubmissionState.REJECTED, SubmissionState.FAILED})


@dataclass(frozen=True)
class AcceptedPrice:
    """Proof that a request was accepted; the only input a commit takes."""
    product_id: Any
    request: ValidationRequest
    verdict: ValidationVerdict

    @classmethod
    def from_verdict(
        cls,
        product_id: Any,
        request: ValidationRequest,
        verdict: ValidationVerdict,
    ) -> AcceptedPrice:
        if not verdict.accepted:
            raise InvalidTransition(
                f"cannot accept price for {product_id}: verdict is {verdict.status.value}"
            )
        return cls(product_id=product_id, request=request, verdict=verdict)

    def commit_request(self) -> CommitRequest:
        return CommitRequest(product_id=self.product_id, new_price=self.request.vendor_price)


@dataclass
class SubmissionRun:
    """One submission's walk through the state machine."""
    submission_id: str = field(default_factory=lambda: f"sub_{uuid.uuid4().hex[:12]}")
    state: SubmissionState = SubmissionState.IDLE
    created_at: float = field(default_factory=time.time)
    history: list[tuple[str, str, float]] = field(default_factory=list)

    def transition(self, to: SubmissionState, now: float | None = None) -> SubmissionState:
        """
        Enforce the submission state machine.
        Raises InvalidTransition if the transition is not allowed.
        """
        allowed = _TRANSITIONS.get(self.state, set())
        if to not in allowed:
            raise InvalidTransition(
                f"Submission {self.submission_id}: "
                f"{self.state.value} → {to.value} is not allowed. "
                f"Valid transitions: {sorted(s.value for s in allowed)}"
            )
        previous = self.state
        self.state = to
        self.history.append((previous.value, to.value, now or time.time()))
        return previous

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def path(self) -> list[str]:
        """States visited, starting from IDLE."""
        return [SubmissionState.IDLE.value] + [to for _, to, _ in self.history]


@dataclass
class WorkflowOutcome:
    """Terminal result of a submission, shown to the vendor."""
    submission_id: str
    state: SubmissionState
    message: str
    verdict: ValidationVerdict | None = None
    product_id: Any = None
    history: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == SubmissionState.DONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "state": self.state.value,
            "message": self.message,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "product_id": self.product_id,
            "history": list(self.history),
        }
