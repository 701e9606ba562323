"""
Price Verify - Verifier Package

Launches the external pricing engine and decodes its verdict:
  - verifier.executor: ExecutorResolver (ordered executor fallback)
  - verifier.invoker:  VerificationInvoker (request → verdict)
  - verifier.types:    ValidationRequest, ValidationVerdict, CommitRequest
"""

from verifier.errors import (
    VerificationError, ExecutionError, ProtocolError,
    CollaboratorError, InvalidTransition,
)
from verifier.types import (
    ValidationRequest, ValidationVerdict, VerdictStatus,
    ExecutorAttempt, AttemptOutcome, CommitRequest,
)
from verifier.executor import ExecutorResolver, resolve_and_run
from verifier.invoker import VerificationInvoker, encode_request, decode_verdict
