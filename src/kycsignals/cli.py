# =============================================================================
# KYC Signals - Command Line Interface
# =============================================================================
"""
Command line front-end for the identity and transaction pipelines.

Usage:
    # Identity signal from visual fields + MRZ lines
    kycsignals identity --visual visual.json \\
        --mrz-line1 'P<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<' \\
        --mrz-line2 'L898902C36UTO7408122F1204159ZE184226B<<<<<10'

    # Fraud signals from a transaction feed (file or stdin)
    kycsignals fraud transactions.json
    cat transactions.json | kycsignals fraud - --json
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kycsignals.config import get_settings
from kycsignals.identity import IdentitySignal, extract_identity_signal
from kycsignals.transactions import FraudSignalReport, analyze_transactions


LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"


# =============================================================================
# Input helpers
# =============================================================================

def _read_source(source: str) -> str:
    """Read a file path, or stdin for '-'."""
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


# =============================================================================
# Rendering
# =============================================================================

def _flag(value: bool) -> str:
    return "[red]yes[/red]" if value else "[green]no[/green]"


def render_identity(console: Console, signal: IdentitySignal) -> None:
    """Print an identity signal as a rich table."""
    table = Table(title="[*] Identity Signal", expand=True)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    info = signal.id_info
    table.add_row("Full Name", info.full_name or "-")
    table.add_row("Date of Birth", info.dob or "-")
    table.add_row("Document No", info.doc_no or "-")
    table.add_row("Country", info.country or "-")
    table.add_row("MRZ Valid", "[green]yes[/green]" if signal.mrz_valid else "[red]no[/red]")
    table.add_row("Identity Mismatch", _flag(signal.identity_mismatch))
    table.add_row("Expired", _flag(signal.expired))
    table.add_row("Cropping Hint", _flag(signal.cropping_hint))
    table.add_row("Quality", f"{signal.quality:.2f}")
    if signal.error:
        table.add_row("Error", f"[red]{signal.error}[/red]")
    console.print(table)

    if signal.reasons:
        console.print(Panel(
            "\n".join(f"- {reason}" for reason in signal.reasons),
            title="[yellow]Reasons[/yellow]",
            border_style="yellow",
        ))


def render_fraud(console: Console, report: FraudSignalReport) -> None:
    """Print a fraud signal report as a rich table."""
    table = Table(title="[*] Transaction Signals", expand=True)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", justify="right")

    table.add_row("[>] Transactions", f"{report.transaction_count:,}")
    table.add_row("   +-- Untimed", f"{report.untimed_count:,}")
    table.add_row("[$] Near-Threshold Deposits", f"{report.near_threshold_count:,}")
    table.add_row("   +-- Max In Window", f"{report.max_near_threshold_in_window:,}")
    table.add_row("[~] Max Transactions In Window", f"{report.max_transactions_in_window:,}")
    table.add_row("[#] Max Devices In Window", f"{report.max_distinct_devices_in_window:,}")
    table.add_row("[!] High-Risk Wires", f"{report.geo_risk_count:,}")
    console.print(table)

    if report.labels:
        console.print(Panel(
            "\n".join(f"[red bold]{label.value}[/red bold]" for label in report.ordered_labels),
            title="[red bold][!] SIGNALS [!][/red bold]",
            border_style="red",
        ))
    else:
        console.print("[green][+] No fraud signals detected[/green]")


# =============================================================================
# Commands
# =============================================================================

def run_identity(args: argparse.Namespace, console: Console) -> int:
    visual: Any = None
    if args.visual:
        try:
            visual = json.loads(_read_source(args.visual))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Cannot read visual fields from {args.visual}: {e}")
            return 1

    signal = extract_identity_signal(visual, args.mrz_line1, args.mrz_line2, today=args.today)

    if args.json:
        print(json.dumps(signal.to_doc_signals(), indent=2))
    else:
        render_identity(console, signal)
    return 0


def run_fraud(args: argparse.Namespace, console: Console) -> int:
    try:
        feed = _read_source(args.source)
    except OSError as e:
        logger.error(f"Cannot read transactions from {args.source}: {e}")
        return 1

    report = analyze_transactions(feed)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        render_fraud(console, report)
    return 0


# =============================================================================
# CLI Interface
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kycsignals",
        description="KYC identity and transaction risk signals",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    identity = commands.add_parser("identity", help="Reconcile visual fields with the MRZ")
    identity.add_argument(
        "--visual",
        type=str,
        default=None,
        help="JSON file with visual fields ('-' for stdin)",
    )
    identity.add_argument("--mrz-line1", type=str, default=None, help="First MRZ line")
    identity.add_argument("--mrz-line2", type=str, default=None, help="Second MRZ line")
    identity.add_argument(
        "--today",
        type=_parse_date,
        default=None,
        help="Reference date for the expiry check (YYYY-MM-DD, default: UTC today)",
    )
    identity.add_argument("--json", action="store_true", help="Print the doc-signals JSON")

    fraud = commands.add_parser("fraud", help="Detect fraud patterns in a transaction feed")
    fraud.add_argument("source", type=str, help="JSON array of transactions ('-' for stdin)")
    fraud.add_argument("--json", action="store_true", help="Print the report as JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    # Configure logging
    log_level = "DEBUG" if args.verbose or settings.debug else settings.log_level
    logger.remove()
    logger.add(sys.stderr, level=log_level, format=LOG_FORMAT)

    console = Console()
    if args.command == "identity":
        return run_identity(args, console)
    return run_fraud(args, console)


if __name__ == "__main__":
    sys.exit(main())
