"""
Price Verify — CLI Tests

Runs `check` against the stub engine through a temporary config file,
and `submit` / `options` against in-memory collaborators.
"""

import contextlib
import io
import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import yaml

_base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _base)

from verifier.types import ValidationVerdict
from workflow import cli
from workflow.orchestrator import PriceUpdateWorkflow
from fixtures.market import STUB_ENGINE_PATH, InMemoryCatalog, InMemoryLedger

SELECTION = ["--commodity", "Wheat", "--state", "Bihar",
             "--district", "Patna", "--market", "Patna Market"]


class TestCheckCommand(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.tmpdir, "price_verify.yaml")
        with open(self.config_path, "w") as f:
            yaml.safe_dump({
                "validation": {
                    "executors": ["pv-no-such-executor", sys.executable],
                    "script_path": STUB_ENGINE_PATH,
                    "timeout_seconds": 30,
                },
                "logging": {"level": "ERROR"},
            }, f)

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _run(self, *argv, mode="accept"):
        out, err = io.StringIO(), io.StringIO()
        with patch.dict(os.environ, {"STUB_ENGINE_MODE": mode}), \
                contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = cli.main(["--config", self.config_path, *argv])
        return code, out.getvalue(), err.getvalue()

    def test_accept_prints_verdict(self):
        code, out, _ = self._run("check", *SELECTION, "--price", "2100")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["status"], "accept")

    def test_reject_exits_nonzero(self):
        code, out, _ = self._run("check", *SELECTION, "--price", "2100", mode="reject")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["status"], "reject")

    def test_unreadable_engine(self):
        code, out, err = self._run("check", *SELECTION, "--price", "2100", mode="garbage")
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("unreadable", err)

    def test_bad_price(self):
        code, _, err = self._run("check", *SELECTION, "--price", "-3")
        self.assertEqual(code, 2)
        self.assertIn("positive", err)

    def test_no_command_prints_help(self):
        code, out, _ = self._run()
        self.assertEqual(code, 2)
        self.assertIn("price-verify", out)


class TestSubmitCommand(unittest.TestCase):

    def setUp(self):
        catalog = InMemoryCatalog()
        catalog.add_product("Wheat", "Bihar", "Patna", "Patna Market", "P1")
        self.ledger = InMemoryLedger()
        self.invoker = MagicMock()
        self.invoker.invoke.return_value = ValidationVerdict.from_document(
            {"status": "accept", "market_modal_price": 2050}
        )
        self.workflow = PriceUpdateWorkflow(catalog, self.ledger, self.invoker)

    def _run(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with patch.object(cli.PriceUpdateWorkflow, "from_config", return_value=self.workflow), \
                contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = cli.main(["--log-level", "ERROR", "submit", *argv])
        return code, out.getvalue(), err.getvalue()

    def test_done(self):
        code, out, err = self._run(*SELECTION, "--price", "2100")
        self.assertEqual(code, 0)
        outcome = json.loads(out)
        self.assertEqual(outcome["state"], "done")
        self.assertEqual(outcome["product_id"], "P1")
        self.assertEqual(outcome["verdict"]["market_modal_price"], 2050)
        self.assertIn("DONE: Price updated", err)
        self.assertEqual(len(self.ledger.commits), 1)

    def test_rejected(self):
        self.invoker.invoke.return_value = ValidationVerdict.from_document(
            {"status": "reject", "reason": "Price 40% above modal"}
        )
        code, out, err = self._run(*SELECTION, "--price", "2100")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["state"], "rejected")
        self.assertIn("REJECTED: Price 40% above modal", err)
        self.assertEqual(self.ledger.commits, [])

    def test_no_match(self):
        code, out, _ = self._run("--commodity", "Wheat", "--state", "Bihar",
                                 "--district", "Patna", "--market", "Gaya Market",
                                 "--price", "2100")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["message"], "no matching product")
        self.invoker.invoke.assert_not_called()

class TestOptionsCommand(unittest.TestCase):

    def test_cascade_levels(self):
        catalog = InMemoryCatalog()
        catalog.add_product("Wheat", "Bihar", "Patna", "Patna Market", "P1")
        catalog.add_product("Wheat", "Bihar", "Gaya", "Gaya Mandi", "P2")
        workflow = MagicMock(catalog=catalog)

        with patch.object(cli.PriceUpdateWorkflow, "from_config", return_value=workflow):
            out = io.StringIO()
            with contextlib.redirect_stdout(out):
                code = cli.cmd_options(
                    cli.build_parser().parse_args(
                        ["options", "--commodity", "Wheat", "--state", "Bihar"]),
                    {},
                )
        self.assertEqual(code, 0)
        self.assertEqual(sorted(out.getvalue().split()), ["Gaya", "Patna"])


if __name__ == "__main__":
    unittest.main()
