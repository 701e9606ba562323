"""
Price Verify — Exception Hierarchy

Typed errors so the workflow can tell apart:
- The validation engine never ran (ExecutionError)
- The engine ran but its output broke the verdict contract (ProtocolError)
- A catalog or ledger call failed (CollaboratorError)

A well-formed REJECT verdict is not an error and has no exception type.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ═══════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════

class VerificationError(Exception):
    """Base exception for all price verification errors."""
    severity: Severity = Severity.MEDIUM
    retryable: bool = False

    def __init__(self, message: str = "", **kwargs):
        self.message = message
        self.detail = kwargs
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# Validation Engine Errors
# ═══════════════════════════════════════════════════════════════

class ExecutionError(VerificationError):
    """No executor launched, or every launched executor failed silently."""
    severity = Severity.HIGH

    def __init__(self, message: str = "no executor available",
                 attempts: list[Any] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = list(attempts or [])


class ProtocolError(VerificationError):
    """The engine produced output that is not a verdict document."""
    severity = Severity.HIGH

    def __init__(self, message: str = "invalid verdict encoding",
                 raw_output: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.raw_output = raw_output


# ═══════════════════════════════════════════════════════════════
# Collaborator Errors
# ═══════════════════════════════════════════════════════════════

class CollaboratorError(VerificationError):
    """Catalog lookup or ledger commit failure."""

    def __init__(self, message: str = "", status_code: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class InvalidTransition(VerificationError):
    """Raised when a workflow state machine transition is not allowed."""
    severity = Severity.LOW
