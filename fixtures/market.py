"""
Price Verify — In-Memory Marketplace Collaborators

Catalog and ledger implementations with the same interface as the HTTP
clients in workflow.collaborators. Used by tests, the CLI demo and the
API when no backend is configured.

Usage:
    from fixtures.market import InMemoryCatalog, InMemoryLedger

    catalog = InMemoryCatalog()
    catalog.add_product("Wheat", "Bihar", "Patna", "Patna Market", "P1")
    ledger = InMemoryLedger()
"""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

from verifier.errors import CollaboratorError
from verifier.executor import ExecutorResolver
from verifier.invoker import VerificationInvoker
from verifier.types import CommitRequest


class InMemoryCatalog:
    """CatalogService backed by a dict of (commodity, state, district, market) → product id."""

    def __init__(self, products: dict[tuple[str, str, str, str], Any] | None = None):
        self._products: dict[tuple[str, str, str, str], Any] = dict(products or {})
        self.match_calls = 0

    def add_product(self, commodity: str, state: str, district: str,
                    market: str, product_id: Any) -> None:
        self._products[(commodity, state, district, market)] = product_id

    def list_commodities(self) -> list[str]:
        return sorted({k[0] for k in self._products})

    def list_states(self, commodity: str) -> list[str]:
        return sorted({k[1] for k in self._products if k[0] == commodity})

    def list_districts(self, commodity: str, state: str) -> list[str]:
        return sorted({k[2] for k in self._products if k[:2] == (commodity, state)})

    def list_markets(self, commodity: str, state: str, district: str) -> list[str]:
        return sorted({k[3] for k in self._products if k[:3] == (commodity, state, district)})

    def match_product(self, commodity: str, state: str, district: str,
                      market: str) -> dict[str, Any] | None:
        self.match_calls += 1
        product_id = self._products.get((commodity, state, district, market))
        if product_id is None:
            return None
        return {"blockchainProductId": product_id}


class InMemoryLedger:
    """LedgerService that records every commit it receives."""

    def __init__(self, fail_with: str | None = None, ml_result: dict[str, Any] | None = None):
        self.fail_with = fail_with
        self.ml_result = ml_result
        self.commits: list[CommitRequest] = []
        self.prices: dict[Any, Decimal] = {}

    def update_price(self, commit: CommitRequest) -> dict[str, Any]:
        self.commits.append(commit)
        if self.fail_with:
            raise CollaboratorError(self.fail_with, status_code=500)
        self.prices[commit.product_id] = commit.new_price
        response: dict[str, Any] = {"message": "Price updated"}
        if self.ml_result is not None:
            response["mlResult"] = self.ml_result
        return response


STUB_ENGINE_PATH = str(Path(__file__).parent / "stub_engine.py")


def make_stub_invoker(
    candidates: list[str] | None = None,
    timeout_seconds: float | None = None,
) -> VerificationInvoker:
    """Invoker wired to fixtures/stub_engine.py, run by the current interpreter by default."""
    resolver = ExecutorResolver(candidates or [sys.executable], timeout_seconds)
    return VerificationInvoker(resolver, STUB_ENGINE_PATH)
