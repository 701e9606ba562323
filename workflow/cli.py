"""
Price Verify — CLI

Usage:
    # Ask the pricing engine for a verdict (no ledger write)
    python -m workflow.cli check \\
        --commodity Wheat --state Bihar --district Patna \\
        --market "Patna Market" --price 2100

    # Verify and commit through the configured backend
    python -m workflow.cli submit --commodity Wheat ... --price 2100

    # Walk the catalog cascade
    python -m workflow.cli options [--commodity Wheat [--state Bihar [--district Patna]]]

Options common to all commands:
    --config price_verify.yaml   base config file
    --env prod                   overlay profile (config/prod.yaml)
    --log-level INFO
"""

import argparse
import json
import sys

from verifier.config import load_config
from verifier.errors import CollaboratorError, ExecutionError, ProtocolError
from verifier.invoker import VerificationInvoker
from verifier.logging import StructuredLogger, configure_logging
from workflow.orchestrator import (
    MSG_ENGINE_UNAVAILABLE, MSG_ENGINE_UNREADABLE, PriceSubmission, PriceUpdateWorkflow,
)


def _submission(args) -> PriceSubmission:
    return PriceSubmission(
        commodity=args.commodity,
        state=args.state,
        district=args.district,
        market=args.market,
        vendor_price=args.price,
    )


def cmd_check(args, config) -> int:
    """Run the validation engine only and print its verdict."""
    submission = _submission(args)
    missing = submission.missing_fields()
    if missing:
        print(f"Error: missing {', '.join(missing)}", file=sys.stderr)
        return 2
    try:
        request = submission.to_request()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    invoker = VerificationInvoker.from_config(config)
    try:
        verdict = invoker.invoke(request, trace=StructuredLogger(workflow="price_check"))
    except ExecutionError as e:
        print(f"  ✗ {MSG_ENGINE_UNAVAILABLE}: {e.message}", file=sys.stderr)
        return 1
    except ProtocolError as e:
        print(f"  ✗ {MSG_ENGINE_UNREADABLE}: {e.raw_output[:200]}", file=sys.stderr)
        return 1

    print(json.dumps(verdict.to_dict(), indent=2))
    return 0 if verdict.accepted else 1


def cmd_submit(args, config) -> int:
    """Verify and commit a vendor price."""
    workflow = PriceUpdateWorkflow.from_config(config)
    outcome = workflow.submit(_submission(args))

    mark = "✓" if outcome.ok else "✗"
    print(f"  {mark} {outcome.state.value.upper()}: {outcome.message}", file=sys.stderr)
    print(json.dumps(outcome.to_dict(), indent=2))
    return 0 if outcome.ok else 1


def cmd_options(args, config) -> int:
    """List the next level of the commodity → state → district → market cascade."""
    catalog = PriceUpdateWorkflow.from_config(config).catalog
    try:
        if args.commodity and args.state and args.district:
            items = catalog.list_markets(args.commodity, args.state, args.district)
        elif args.commodity and args.state:
            items = catalog.list_districts(args.commodity, args.state)
        elif args.commodity:
            items = catalog.list_states(args.commodity)
        else:
            items = catalog.list_commodities()
    except CollaboratorError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    for item in items:
        print(item)
    return 0


def _add_selection_args(p: argparse.ArgumentParser, required: bool = True):
    p.add_argument("--commodity", required=required, default="")
    p.add_argument("--state", required=required, default="")
    p.add_argument("--district", required=required, default="")
    p.add_argument("--market", required=required, default="")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="price-verify",
        description="Vendor price verification and ledger commit",
    )
    parser.add_argument("--config", default="price_verify.yaml", help="Base config file")
    parser.add_argument("--env", default="", help="Config overlay profile")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    sub = parser.add_subparsers(dest="command")

    p_check = sub.add_parser("check", help="Validate a price with the pricing engine")
    _add_selection_args(p_check)
    p_check.add_argument("--price", required=True)

    p_submit = sub.add_parser("submit", help="Verify and commit a price")
    _add_selection_args(p_submit)
    p_submit.add_argument("--price", required=True)

    p_options = sub.add_parser("options", help="List catalog options")
    p_options.add_argument("--commodity", default="")
    p_options.add_argument("--state", default="")
    p_options.add_argument("--district", default="")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2

    config = load_config(base_path=args.config, env=args.env)
    level = args.log_level or config.get("logging", {}).get("level", "WARNING")
    configure_logging(level=level)

    commands = {"check": cmd_check, "submit": cmd_submit, "options": cmd_options}
    return commands[args.command](args, config)


if __name__ == "__main__":
    sys.exit(main())
