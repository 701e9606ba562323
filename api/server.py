"""
Price Verify — API Server

FastAPI application serving:
  POST /check-price            — run the validation engine only, return its verdict
  POST /v1/price-submissions   — verify-then-commit a vendor price
  GET  /health                 — liveness + which executors are on PATH

Handlers are plain functions: FastAPI runs them in its thread pool, so a
blocking engine subprocess never stalls the event loop.

Usage:
    uvicorn api.server:app --host 0.0.0.0 --port 8080

Requires: pip install fastapi uvicorn
"""

from __future__ import annotations

import logging
import os
from typing import Any

from verifier.config import load_config
from verifier.errors import ExecutionError, ProtocolError
from verifier.invoker import VerificationInvoker
from verifier.logging import StructuredLogger
from workflow.orchestrator import (
    MSG_ENGINE_UNAVAILABLE, MSG_ENGINE_UNREADABLE, MSG_NO_PRODUCT, PriceUpdateWorkflow,
)
from workflow.states import SubmissionState

logger = logging.getLogger("price_verify.api")

_STATUS_BY_STATE = {
    SubmissionState.DONE: 200,
    SubmissionState.REJECTED: 422,
    SubmissionState.FAILED: 502,
}


def create_app(
    workflow: PriceUpdateWorkflow | None = None,
    config: dict[str, Any] | None = None,
) -> Any:
    """
    Create and configure the FastAPI application.

    The workflow is built from config on first use unless one is given,
    so tests can inject in-memory collaborators.
    """
    from fastapi import Body, FastAPI
    from fastapi.responses import JSONResponse

    from api.models import PriceForm

    app = FastAPI(
        title="Price Verify API",
        version="0.1.0",
        description="Vendor price verification and ledger commit",
    )

    _workflow: PriceUpdateWorkflow | None = workflow

    def get_workflow() -> PriceUpdateWorkflow:
        nonlocal _workflow
        if _workflow is None:
            _workflow = PriceUpdateWorkflow.from_config(config or load_config())
        return _workflow

    def get_invoker() -> VerificationInvoker:
        return get_workflow().invoker

    # ── Price Check ───────────────────────────────────────────

    @app.post("/check-price")
    def check_price(body: Any = Body(default=None)):
        form = PriceForm.from_body(body)
        errors = form.validate()
        if errors:
            return JSONResponse(status_code=422, content={"errors": errors})

        request = form.to_submission().to_request()
        trace = StructuredLogger(workflow="price_check")
        try:
            verdict = get_invoker().invoke(request, trace=trace)
        except ExecutionError as e:
            logger.warning("check-price: engine unavailable: %s", e.message)
            return JSONResponse(status_code=502, content={"message": MSG_ENGINE_UNAVAILABLE})
        except ProtocolError:
            return JSONResponse(status_code=502, content={"message": MSG_ENGINE_UNREADABLE})

        return JSONResponse(content=verdict.to_dict())

    # ── Price Submission ──────────────────────────────────────

    @app.post("/v1/price-submissions")
    def submit_price(body: Any = Body(default=None)):
        form = PriceForm.from_body(body)
        errors = form.validate()
        if errors:
            return JSONResponse(status_code=422, content={"errors": errors})

        outcome = get_workflow().submit(form.to_submission())
        status = _STATUS_BY_STATE.get(outcome.state, 500)
        if outcome.state == SubmissionState.FAILED and outcome.message == MSG_NO_PRODUCT:
            status = 404
        return JSONResponse(status_code=status, content=outcome.to_dict())

    # ── Health ────────────────────────────────────────────────

    @app.get("/health")
    def health():
        executors = get_invoker().resolver.available_executors()
        return JSONResponse(content={
            "status": "ok" if any(executors.values()) else "degraded",
            "executors": executors,
        })

    return app


# ── Module-level app for uvicorn ──────────────────────────────

try:
    app = create_app(config=load_config(os.environ.get("PV_CONFIG", "price_verify.yaml")))
except ImportError:
    # FastAPI not installed; create_app() is still importable
    app = None
