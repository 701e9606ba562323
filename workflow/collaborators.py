"""
Price Verify — Catalog & Ledger Collaborators

The workflow talks to two external services through these interfaces:

  CatalogService — cascading selection lists and product matching
  LedgerService  — the price update for a canonical product

HTTP clients for the marketplace backend:

    GET  /options/commodities
    GET  /options/states?commodity=...
    GET  /options/districts?commodity=...&state=...
    GET  /options/markets?commodity=...&state=...&district=...
    GET  /products/match?commodity=...&state=...&district=...&market=...
    POST /products/vendor/update-price   {"productId": ..., "newPrice": ...}

Failures surface as CollaboratorError carrying the service's own message.
No retries happen here.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from verifier.errors import CollaboratorError
from verifier.types import CommitRequest

logger = logging.getLogger("price_verify.collaborators")


class CatalogService(Protocol):
    def list_commodities(self) -> list[str]: ...
    def list_states(self, commodity: str) -> list[str]: ...
    def list_districts(self, commodity: str, state: str) -> list[str]: ...
    def list_markets(self, commodity: str, state: str, district: str) -> list[str]: ...

    def match_product(
        self, commodity: str, state: str, district: str, market: str,
    ) -> dict[str, Any] | None:
        """Return {"blockchainProductId": ...} or None when nothing matches."""
        ...


class LedgerService(Protocol):
    def update_price(self, commit: CommitRequest) -> dict[str, Any]:
        """Return {"message": ..., "mlResult"?: ...}; raise CollaboratorError on failure."""
        ...


# ═══════════════════════════════════════════════════════════════════
# HTTP Clients
# ═══════════════════════════════════════════════════════════════════

def _error_message(resp: Any, fallback: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or fallback)
    return fallback


def _json_body(resp: Any, message: str) -> Any:
    try:
        return resp.json()
    except ValueError:
        raise CollaboratorError(message, status_code=resp.status_code)


class _HTTPService:
    """Shared request plumbing for the backend clients."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        auth_token: str | None = None,
        transport: Any = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.auth_token = auth_token
        self.transport = transport

    def _request(self, method: str, path: str, **kwargs) -> Any:
        import httpx  # production dependency

        headers = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self.transport,
            ) as client:
                return client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise CollaboratorError(f"{method} {path} failed: {e}")

    def _get_list(self, path: str, params: dict[str, str], fallback: str) -> list[str]:
        resp = self._request("GET", path, params=params)
        if resp.status_code >= 400:
            raise CollaboratorError(_error_message(resp, fallback), status_code=resp.status_code)
        data = _json_body(resp, fallback)
        if not isinstance(data, list):
            raise CollaboratorError(fallback, status_code=resp.status_code)
        return [str(item) for item in data]


class HTTPCatalogClient(_HTTPService):
    """CatalogService over the marketplace backend."""

    def list_commodities(self) -> list[str]:
        return self._get_list("/options/commodities", {}, "Failed to load commodities")

    def list_states(self, commodity: str) -> list[str]:
        return self._get_list("/options/states", {"commodity": commodity},
                              "Failed to load states")

    def list_districts(self, commodity: str, state: str) -> list[str]:
        return self._get_list("/options/districts",
                              {"commodity": commodity, "state": state},
                              "Failed to load districts")

    def list_markets(self, commodity: str, state: str, district: str) -> list[str]:
        return self._get_list("/options/markets",
                              {"commodity": commodity, "state": state, "district": district},
                              "Failed to load markets")

    def match_product(
        self, commodity: str, state: str, district: str, market: str,
    ) -> dict[str, Any] | None:
        resp = self._request("GET", "/products/match", params={
            "commodity": commodity,
            "state": state,
            "district": district,
            "market": market,
        })
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise CollaboratorError(
                _error_message(resp, "No matching product found"),
                status_code=resp.status_code,
            )
        body = _json_body(resp, "Catalog returned an unreadable response")
        return body if isinstance(body, dict) else None


class HTTPLedgerClient(_HTTPService):
    """LedgerService over the marketplace backend."""

    def update_price(self, commit: CommitRequest) -> dict[str, Any]:
        resp = self._request("POST", "/products/vendor/update-price", json=commit.to_payload())
        if resp.status_code >= 400:
            raise CollaboratorError(
                _error_message(resp, "Failed to update price"),
                status_code=resp.status_code,
            )
        body = _json_body(resp, "Ledger returned an unreadable response")
        if not isinstance(body, dict):
            raise CollaboratorError("Ledger returned an unreadable response",
                                    status_code=resp.status_code)
        return body
