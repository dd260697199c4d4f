# =============================================================================
# KYC Signals - Identity & Transaction Risk Signals
# =============================================================================
"""
KYC Signals: deterministic identity and transaction risk signals for KYC
pipelines.

This package turns document-analysis output and transaction feeds into
structured signals for a downstream risk scorer, covering MRZ validation
and visual-field reconciliation as well as sliding-window fraud heuristics.

Modules:
    - config: Configuration management
    - identity: MRZ decoding, check digits, identity reconciliation
    - transactions: Feed normalization and pattern detection
    - cli: Command line front-end
"""

__version__ = "1.0.0"

from typing import Final

from kycsignals.identity import IdentitySignal, VisualFields, extract_identity_signal
from kycsignals.transactions import (
    FraudSignalReport,
    SignalLabel,
    analyze_transactions,
    detect_fraud_signals,
)

# Package constants
PACKAGE_NAME: Final[str] = "kycsignals"

__all__ = [
    "FraudSignalReport",
    "IdentitySignal",
    "SignalLabel",
    "VisualFields",
    "analyze_transactions",
    "detect_fraud_signals",
    "extract_identity_signal",
]
