"""
Transaction risk-signal module.

This module contains:
- Transaction normalization for loosely typed feeds
- PatternDetector: sliding-window fraud heuristics
- detect_fraud_signals: feed in, signal labels out
"""

from kycsignals.transactions.detector import (
    PatternDetector,
    analyze_transactions,
    detect_fraud_signals,
    max_distinct_in_window,
    max_in_window,
)
from kycsignals.transactions.models import FraudSignalReport, SignalLabel, Transaction
from kycsignals.transactions.normalizer import (
    normalize_transaction,
    normalize_transactions,
    parse_feed,
)

__all__ = [
    # Models
    "FraudSignalReport",
    "SignalLabel",
    "Transaction",
    # Normalizer
    "normalize_transaction",
    "normalize_transactions",
    "parse_feed",
    # Detector
    "PatternDetector",
    "analyze_transactions",
    "detect_fraud_signals",
    "max_distinct_in_window",
    "max_in_window",
]
