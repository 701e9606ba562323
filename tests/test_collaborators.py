"""
Price Verify — HTTP Collaborator Tests

Drives HTTPCatalogClient / HTTPLedgerClient through httpx.MockTransport:
routes and query parameters, 404 as "no match", error messages taken
from the service body, transport failures.
"""

import json
import os
import sys
import unittest
from decimal import Decimal
from unittest.mock import MagicMock

import httpx

_base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _base)

from verifier.errors import CollaboratorError
from verifier.types import CommitRequest
from workflow.collaborators import HTTPCatalogClient, HTTPLedgerClient
from workflow.orchestrator import PriceSubmission, PriceUpdateWorkflow
from workflow.states import SubmissionState
from fixtures.market import InMemoryLedger

BASE_URL = "http://backend.test/api"


class _Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses[request.url.path]
        return httpx.Response(status, json=body)


def _catalog(responses) -> tuple[HTTPCatalogClient, _Recorder]:
    recorder = _Recorder(responses)
    return HTTPCatalogClient(BASE_URL, transport=httpx.MockTransport(recorder)), recorder


class TestCatalogClient(unittest.TestCase):

    def test_cascade_routes(self):
        client, rec = _catalog({
            "/api/options/commodities": (200, ["Rice", "Wheat"]),
            "/api/options/states": (200, ["Bihar"]),
            "/api/options/districts": (200, ["Patna"]),
            "/api/options/markets": (200, ["Patna Market"]),
        })
        self.assertEqual(client.list_commodities(), ["Rice", "Wheat"])
        self.assertEqual(client.list_states("Wheat"), ["Bihar"])
        self.assertEqual(client.list_districts("Wheat", "Bihar"), ["Patna"])
        self.assertEqual(client.list_markets("Wheat", "Bihar", "Patna"), ["Patna Market"])
        last = rec.requests[-1]
        self.assertEqual(dict(last.url.params),
                         {"commodity": "Wheat", "state": "Bihar", "district": "Patna"})

    def test_match_product(self):
        client, rec = _catalog({"/api/products/match": (200, {"blockchainProductId": "P1"})})
        match = client.match_product("Wheat", "Bihar", "Patna", "Patna Market")
        self.assertEqual(match, {"blockchainProductId": "P1"})
        self.assertEqual(rec.requests[0].url.params["market"], "Patna Market")

    def test_match_404_is_none(self):
        client, _ = _catalog({"/api/products/match": (404, {"message": "No product"})})
        self.assertIsNone(client.match_product("Wheat", "Bihar", "Patna", "Nowhere"))

    def test_server_error_message_surfaced(self):
        client, _ = _catalog({"/api/options/commodities": (500, {"message": "db down"})})
        with self.assertRaises(CollaboratorError) as ctx:
            client.list_commodities()
        self.assertEqual(ctx.exception.message, "db down")
        self.assertEqual(ctx.exception.status_code, 500)

    def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = HTTPCatalogClient(BASE_URL, transport=httpx.MockTransport(refuse))
        with self.assertRaises(CollaboratorError) as ctx:
            client.list_commodities()
        self.assertIn("connection refused", ctx.exception.message)



def _html_proxy(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>proxy</html>", headers={"Content-Type": "text/html"})


class TestNonJsonBodies(unittest.TestCase):
    """A 200 with an HTML body (proxy or gateway page) is a collaborator failure."""

    def test_list_with_html_body(self):
        client = HTTPCatalogClient(BASE_URL, transport=httpx.MockTransport(_html_proxy))
        with self.assertRaises(CollaboratorError) as ctx:
            client.list_states("Wheat")
        self.assertEqual(ctx.exception.message, "Failed to load states")
        self.assertEqual(ctx.exception.status_code, 200)

    def test_match_with_html_body(self):
        client = HTTPCatalogClient(BASE_URL, transport=httpx.MockTransport(_html_proxy))
        with self.assertRaises(CollaboratorError):
            client.match_product("Wheat", "Bihar", "Patna", "Patna Market")

    def test_ledger_with_html_body(self):
        client = HTTPLedgerClient(BASE_URL, transport=httpx.MockTransport(_html_proxy))
        with self.assertRaises(CollaboratorError) as ctx:
            client.update_price(CommitRequest(product_id="P1", new_price=Decimal(1)))
        self.assertEqual(ctx.exception.message, "Ledger returned an unreadable response")

    def test_workflow_fails_cleanly(self):
        catalog = HTTPCatalogClient(BASE_URL, transport=httpx.MockTransport(_html_proxy))
        invoker = MagicMock()
        workflow = PriceUpdateWorkflow(catalog, InMemoryLedger(), invoker)
        outcome = workflow.submit(PriceSubmission("Wheat", "Bihar", "Patna", "Patna Market", "2100"))
        self.assertEqual(outcome.state, SubmissionState.FAILED)
        self.assertEqual(outcome.message, "Catalog returned an unreadable response")
        invoker.invoke.assert_not_called()

class TestLedgerClient(unittest.TestCase):

    def test_update_price(self):
        rec = _Recorder({"/api/products/vendor/update-price": (200, {"message": "Price updated"})})
        client = HTTPLedgerClient(BASE_URL, auth_token="tok", transport=httpx.MockTransport(rec))
        result = client.update_price(CommitRequest(product_id="P1", new_price=Decimal("2100.5")))

        self.assertEqual(result, {"message": "Price updated"})
        request = rec.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(json.loads(request.content), {"productId": "P1", "newPrice": 2100.5})
        self.assertEqual(request.headers["Authorization"], "Bearer tok")

    def test_update_price_error_field(self):
        rec = _Recorder({"/api/products/vendor/update-price": (500, {"error": "chain reverted"})})
        client = HTTPLedgerClient(BASE_URL, transport=httpx.MockTransport(rec))
        with self.assertRaises(CollaboratorError) as ctx:
            client.update_price(CommitRequest(product_id="P1", new_price=Decimal(1)))
        self.assertEqual(ctx.exception.message, "chain reverted")

    def test_update_price_fallback_message(self):
        rec = _Recorder({"/api/products/vendor/update-price": (503, ["unexpected"])})
        client = HTTPLedgerClient(BASE_URL, transport=httpx.MockTransport(rec))
        with self.assertRaises(CollaboratorError) as ctx:
            client.update_price(CommitRequest(product_id="P1", new_price=Decimal(1)))
        self.assertEqual(ctx.exception.message, "Failed to update price")


if __name__ == "__main__":
    unittest.main()
