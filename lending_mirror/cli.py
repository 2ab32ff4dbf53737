"""Command-line interface for the lending position mirror."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config
from .logging_setup import configure_logging
from .services import Monitor


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="lending-mirror",
        description="Read-only mirror of a collateralized lending position",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--account",
        default=None,
        help="Label of the account to mirror (default: first configured)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("snapshot", help="Compute one snapshot and print it")

    watch_parser = sub.add_parser(
        "watch", help="Refresh on an interval and on pool events"
    )
    watch_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Refresh interval in seconds (overrides config)",
    )

    borrow_parser = sub.add_parser(
        "borrow-check", help="Check whether borrowing AMOUNT would be allowed"
    )
    borrow_parser.add_argument("amount", help="Amount of the borrow asset, e.g. 25.5")

    withdraw_parser = sub.add_parser(
        "withdraw-preview", help="Preview shares burned and health after a withdraw"
    )
    withdraw_parser.add_argument("amount", help="Amount of collateral to withdraw")

    return parser


async def _print_check(run, render, amount: str) -> int:
    """Run a borrow/withdraw check; exit 0 when allowed, 1 when not, 2 on bad input."""
    try:
        result = await run(amount)
    except ValueError as e:
        print(f"Invalid amount: {e}", file=sys.stderr)
        return 2
    if result is None:
        print("Could not read the position from the ledger", file=sys.stderr)
        return 1
    print(render(result))
    return 0 if result.allowed else 1


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command and return the exit code."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    monitor = Monitor(config, args.account)

    if args.command == "snapshot":
        snapshot = await monitor.check()
        if snapshot is None:
            print("Could not read the position from the ledger", file=sys.stderr)
            return 1
        print(monitor.build_log_message(snapshot))
        return 0
    if args.command == "watch":
        await monitor.run_continuous(args.interval)
        return 0
    if args.command == "borrow-check":
        return await _print_check(
            monitor.borrow_check, monitor.format_borrow_check, args.amount
        )
    if args.command == "withdraw-preview":
        return await _print_check(
            monitor.withdraw_check, monitor.format_withdraw_check, args.amount
        )

    build_parser().print_help()
    return 1


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        sys.exit(asyncio.run(_run(args)))
    except KeyboardInterrupt:
        sys.exit(130)
