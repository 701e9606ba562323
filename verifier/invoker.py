"""
Price Verify — Verification Invoker

Turns a ValidationRequest into a ValidationVerdict:

    <executor> <script_path> check '<json payload>'

The payload is a single argv element. Stdout must be exactly one JSON
object. A non-zero exit with a readable verdict is returned as-is; the
caller interprets the status. One invocation is one resolver pass.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any

from verifier.config import VerifierSettings
from verifier.errors import ProtocolError
from verifier.executor import ExecutorResolver
from verifier.logging import StructuredLogger
from verifier.types import ValidationRequest, ValidationVerdict

logger = logging.getLogger("price_verify.invoker")


def encode_request(request: ValidationRequest) -> str:
    """Compact JSON encoding of the request payload."""
    return json.dumps(request.to_payload(), separators=(",", ":"))


def decode_verdict(stdout: bytes) -> ValidationVerdict:
    """
    Decode engine stdout into a verdict.

    Raises ProtocolError for anything that is not a single JSON object.
    """
    try:
        text = stdout.decode("utf-8").strip()
    except UnicodeDecodeError:
        raise ProtocolError("invalid verdict encoding", raw_output=repr(stdout[:200]))

    try:
        doc = json.loads(text, parse_float=Decimal)
    except json.JSONDecodeError:
        raise ProtocolError("invalid verdict encoding", raw_output=text[:500])

    return ValidationVerdict.from_document(doc)


class VerificationInvoker:
    """Launches the validation engine and enforces its output contract."""

    def __init__(
        self,
        resolver: ExecutorResolver,
        script_path: str,
        operation: str = "check",
    ):
        self.resolver = resolver
        self.script_path = script_path
        self.operation = operation

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> VerificationInvoker:
        settings = VerifierSettings.from_config(config)
        return cls(
            resolver=ExecutorResolver(settings.candidates, settings.timeout_seconds),
            script_path=settings.script_path,
            operation=settings.operation,
        )

    def invoke(
        self,
        request: ValidationRequest,
        trace: StructuredLogger | None = None,
    ) -> ValidationVerdict:
        """
        Validate one request.

        Raises ExecutionError if no executor produced usable output,
        ProtocolError if the output is not a verdict document.
        """
        payload = encode_request(request)
        if trace:
            trace.on_payload(request.to_payload())

        attempt = self.resolver.resolve_and_run(
            self.script_path, [self.operation, payload], trace=trace,
        )

        if attempt.stderr:
            logger.debug("Engine stderr (%s): %s", attempt.executor,
                         attempt.stderr[:500].decode("utf-8", errors="replace"))

        verdict = decode_verdict(attempt.stdout)
        if trace:
            trace.on_verdict(verdict.status.value, verdict.reason, attempt.returncode)
        return verdict
