"""
Price Verify — Stub Validation Engine

Stands in for the pricing engine in tests and local runs:

    python fixtures/stub_engine.py check '{"commodity": ..., "vendor_price": 2100}'

Behaviour is selected with STUB_ENGINE_MODE:
    accept        {"status": "accept", "market_modal_price": ...}, exit 0
    reject        {"status": "reject", "reason": STUB_ENGINE_REASON}, exit 0
    noisy_accept  accept verdict on stdout, warning on stderr, exit 1
    garbage       "not json" on stdout, exit 0
    silent_fail   traceback-like text on stderr only, exit 2
    empty         no output at all, exit 0
    sleep         sleeps STUB_ENGINE_SLEEP seconds, then accepts

STUB_ENGINE_MODAL_PRICE sets market_modal_price (defaults to the vendor price).
"""

import json
import os
import sys
import time


def _verdict_accept(payload):
    modal = os.environ.get("STUB_ENGINE_MODAL_PRICE")
    return {
        "status": "accept",
        "market_modal_price": float(modal) if modal else payload.get("vendor_price"),
        "echo": payload,
    }


def main(argv):
    if len(argv) < 3 or argv[1] != "check":
        sys.stderr.write("usage: stub_engine.py check <json>\n")
        return 64

    payload = json.loads(argv[2])
    mode = os.environ.get("STUB_ENGINE_MODE", "accept")

    if mode == "accept":
        print(json.dumps(_verdict_accept(payload)))
        return 0
    if mode == "reject":
        reason = os.environ.get("STUB_ENGINE_REASON", "Price 40% above modal")
        print(json.dumps({"status": "reject", "reason": reason}))
        return 0
    if mode == "noisy_accept":
        sys.stderr.write("UserWarning: model file is stale\n")
        print(json.dumps(_verdict_accept(payload)))
        return 1
    if mode == "garbage":
        print("not json")
        return 0
    if mode == "silent_fail":
        sys.stderr.write("Traceback (most recent call last):\nImportError: no model\n")
        return 2
    if mode == "empty":
        return 0
    if mode == "sleep":
        time.sleep(float(os.environ.get("STUB_ENGINE_SLEEP", "5")))
        print(json.dumps(_verdict_accept(payload)))
        return 0

    sys.stderr.write(f"unknown STUB_ENGINE_MODE: {mode}\n")
    return 65


if __name__ == "__main__":
    sys.exit(main(sys.argv))
