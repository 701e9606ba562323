"""
Price Verify — Structured Logging with Trace IDs

Emits one JSON line per workflow event so a submission can be followed
from product resolution through executor attempts to the ledger commit.

Design decisions:
  - Transport: Python logging with a JSON formatter
  - Schema: OTel-compatible (trace_id, span_id, service.name)
  - Configurable log level: DEBUG (full payloads), INFO (transitions), WARNING (failures)

Usage:
    from verifier.logging import StructuredLogger, configure_logging

    configure_logging(level="INFO")
    trace = StructuredLogger(workflow="price_update")
    trace.on_submission_start(commodity="Wheat", market="Patna Market")
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "price_verify"


# ═══════════════════════════════════════════════════════════════════
# JSON Formatter (OTel-compatible)
# ═══════════════════════════════════════════════════════════════════

class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON lines.

    Structured fields attached by StructuredLogger are merged into the
    top level of the entry.
    """

    def __init__(self, service_name: str = ROOT_LOGGER):
        super().__init__()
        self.service_name = service_name
        self.service_version = os.environ.get("PV_VERSION", "0.1.0")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service.name": self.service_name,
            "service.version": self.service_version,
        }

        if hasattr(record, "structured"):
            entry.update(record.structured)

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception.type"] = record.exc_info[0].__name__
            entry["exception.message"] = str(record.exc_info[1])

        return json.dumps(entry, default=str)


# ═══════════════════════════════════════════════════════════════════
# Log Configuration
# ═══════════════════════════════════════════════════════════════════

def configure_logging(
    level: str = "INFO",
    stream: Any = None,
    service_name: str = ROOT_LOGGER,
) -> logging.Logger:
    """
    Configure the price_verify logger with JSON output.

    Args:
        level: DEBUG, INFO, WARNING, ERROR
        stream: Output stream (default: sys.stderr)
        service_name: Service name in log entries

    Returns:
        The configured root logger for price_verify
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers on reconfigure
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = "") -> logging.Logger:
    """Get a child logger under the price_verify namespace."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)


# ═══════════════════════════════════════════════════════════════════
# Trace ID Generation
# ═══════════════════════════════════════════════════════════════════

def generate_trace_id() -> str:
    """Generate an OTel-compatible trace ID (32 hex chars)."""
    return uuid.uuid4().hex


def generate_span_id() -> str:
    """Generate an OTel-compatible span ID (16 hex chars)."""
    return uuid.uuid4().hex[:16]


# ═══════════════════════════════════════════════════════════════════
# Structured Logger
# ═══════════════════════════════════════════════════════════════════

class StructuredLogger:
    """
    Per-submission structured logger.

    Every entry carries the submission's trace_id. One instance belongs to
    exactly one submission and is never shared.
    """

    def __init__(self, workflow: str = "price_update", trace_id: str | None = None):
        self.workflow = workflow
        self.trace_id = trace_id or generate_trace_id()
        self._logger = get_logger("trace")

    def _emit(self, level: int, action: str, **fields):
        if not self._logger.isEnabledFor(level):
            return
        structured = {
            "trace_id": self.trace_id,
            "workflow": self.workflow,
            "action": action,
            **fields,
        }
        record = self._logger.makeRecord(
            name=self._logger.name,
            level=level,
            fn="", lno=0, msg=action,
            args=(), exc_info=None,
        )
        record.structured = structured
        self._logger.handle(record)

    # ── Workflow Events ────────────────────────────────────────

    def on_submission_start(self, **selection: Any) -> None:
        self._emit(logging.INFO, "submission_start", **selection)

    def on_state_transition(self, from_state: str, to_state: str, reason: str = "") -> None:
        self._emit(
            logging.INFO, "state_transition",
            from_state=from_state,
            to_state=to_state,
            reason=reason[:500],
        )

    def on_submission_end(self, state: str, message: str, elapsed_s: float) -> None:
        level = logging.INFO if state == "done" else logging.WARNING
        self._emit(
            level, "submission_end",
            state=state,
            message=message[:500],
            elapsed_s=round(elapsed_s, 3),
        )

    # ── Verification Events ────────────────────────────────────

    def on_executor_attempt(self, attempt: dict[str, Any], latency_ms: float) -> None:
        level = logging.INFO if attempt.get("outcome", "").startswith("exited") else logging.WARNING
        self._emit(
            level, "executor_attempt",
            span_id=generate_span_id(),
            latency_ms=round(latency_ms, 1),
            **attempt,
        )

    def on_verdict(self, status: str, reason: str | None, returncode: int | None) -> None:
        self._emit(
            logging.INFO, "verdict",
            status=status,
            reason=(reason or "")[:500],
            returncode=returncode,
        )
        # Non-zero exit with a readable verdict is tolerated but worth flagging
        if returncode not in (0, None):
            self._emit(logging.WARNING, "verdict_nonzero_exit", returncode=returncode)

    def on_payload(self, payload: dict[str, Any]) -> None:
        self._emit(logging.DEBUG, "engine_payload", payload=payload)

    # ── Commit Events ──────────────────────────────────────────

    def on_commit(self, product_id: str, new_price: str, status: str, message: str = "") -> None:
        self._emit(
            logging.INFO if status == "ok" else logging.WARNING, "commit",
            product_id=product_id,
            new_price=new_price,
            status=status,
            message=message[:500],
        )
