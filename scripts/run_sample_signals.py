#!/usr/bin/env python
# =============================================================================
# KYC Signals - Sample Signal Script
# =============================================================================
"""
Standalone smoke script for both pipelines.

This script runs the engine end to end on known inputs:
1. Decodes the ICAO 9303 specimen passport MRZ
2. Reconciles it with matching and tampered visual fields
3. Injects a structuring burst into a transaction feed
4. Verifies the expected signals fire

Usage:
    pip install -e .
    python scripts/run_sample_signals.py

Expected Output:
    [+] Specimen MRZ validated
    [+] Mismatch raised for tampered document number
    [!] SIGNALS: THRESHOLD_SKIRTING, STRUCTURING_PATTERN, ...
"""

import sys
from datetime import date, datetime, timedelta, timezone

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Configure logging
logger.remove()
logger.add(
    sys.stderr,
    level="DEBUG",
    format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
)

console = Console()

SPECIMEN_LINE1 = "P<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<"
SPECIMEN_LINE2 = "L898902C36UTO7408122F1204159ZE184226B<<<<<10"


def run_sample_signals() -> bool:
    """Run both pipelines over sample inputs."""

    console.print(Panel.fit(
        "[bold blue]KYC Signals[/bold blue]\n"
        "[yellow]Sample Signal Run[/yellow]",
        border_style="blue",
    ))

    # Import after logging setup
    from kycsignals import SignalLabel, analyze_transactions, extract_identity_signal
    from kycsignals.identity import parse_mrz

    # ==========================================================================
    # Step 1: MRZ decode
    # ==========================================================================
    console.print("\n[bold]1. Decoding specimen MRZ...[/bold]")

    record = parse_mrz(SPECIMEN_LINE1, SPECIMEN_LINE2)
    table = Table(title="MRZ Record")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in record.to_dict().items():
        if key != "checks":
            table.add_row(key, str(value))
    console.print(table)

    if not record.checks_valid:
        console.print(f"[red][x] Specimen failed checks: {record.checks.failed}[/red]")
        return False
    console.print("[green][+] Specimen MRZ validated[/green]")

    # ==========================================================================
    # Step 2: Reconciliation
    # ==========================================================================
    console.print("\n[bold]2. Reconciling visual fields...[/bold]")

    visual = {
        "fields": {
            "FullName": "Anna Maria Eriksson",
            "DocumentNumber": "L898902C3",
            "DateOfBirth": date(1974, 8, 12),
        },
        "confidence": 0.93,
        "document_ref": "specimen",
    }
    signal = extract_identity_signal(visual, SPECIMEN_LINE1, SPECIMEN_LINE2, today=date(1990, 1, 1))
    if signal.identity_mismatch:
        console.print("[red][x] Matching document flagged as mismatch[/red]")
        return False
    console.print("[green][+] Matching document accepted[/green]")

    visual["fields"]["DocumentNumber"] = "X1234567"
    tampered = extract_identity_signal(visual, SPECIMEN_LINE1, SPECIMEN_LINE2, today=date(1990, 1, 1))
    if not tampered.identity_mismatch:
        console.print("[red][x] Tampered document number not detected[/red]")
        return False
    console.print(f"[green][+] Mismatch raised for tampered document number:[/green] {tampered.reasons}")

    # ==========================================================================
    # Step 3: Transaction feed
    # ==========================================================================
    console.print("\n[bold]3. Scanning transaction feed...[/bold]")

    base_time = datetime(2025, 2, 10, 9, 0, tzinfo=timezone.utc)
    feed = [
        {"ts": (base_time + timedelta(hours=h)).isoformat(), "amt": 9500,
         "channel": "cash_deposit", "device": f"dev-{h % 3}", "country": "US"}
        for h in (0, 2, 4, 6, 8)
    ]
    feed.append({"ts": "not-a-date", "amt": "n/a", "channel": "wire_out", "country": "ir"})

    report = analyze_transactions(feed)
    expected = {
        SignalLabel.THRESHOLD_SKIRTING,
        SignalLabel.STRUCTURING_PATTERN,
        SignalLabel.VELOCITY_SPIKE,
        SignalLabel.DEVICE_HOPPING,
        SignalLabel.GEO_RISK,
    }
    labels = ", ".join(label.value for label in report.ordered_labels)
    console.print(f"[red bold][!] SIGNALS: {labels}[/red bold]")

    if set(report.labels) != expected:
        console.print(f"[red][x] Expected {sorted(l.value for l in expected)}[/red]")
        return False

    # ==========================================================================
    # Summary
    # ==========================================================================
    console.print(Panel.fit(
        "[bold green][+] ALL CHECKS PASSED![/bold green]\n\n"
        "The engine successfully:\n"
        "- Validated ICAO 9303 check digits\n"
        "- Reconciled visual fields with the MRZ\n"
        "- Detected windowed transaction patterns",
        border_style="green",
    ))

    return True


if __name__ == "__main__":
    success = run_sample_signals()
    sys.exit(0 if success else 1)
