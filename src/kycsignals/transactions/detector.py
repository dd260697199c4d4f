# =============================================================================
# KYC Signals - Transaction Pattern Detector
# =============================================================================
"""
Deterministic fraud heuristics over a time-ordered transaction sequence.

Four independent scans run over the same normalized, sorted sequence:

1. **Threshold skirting / structuring**: cash deposits just under the
   reporting threshold. THRESHOLD_SKIRTING counts them over the whole feed,
   STRUCTURING_PATTERN counts them inside a 72h sliding window.

2. **Velocity**: five or more transactions of any channel in 24h.

3. **Geo risk**: an outbound wire to a high-risk country.

4. **Device hopping**: three or more distinct devices active within 48h.

The windowed scans use two pointers over duration, not count: the right
pointer walks forward in time and the left pointer advances while the span
between them exceeds the window. Transactions without a timestamp are left
out of every window.

Usage:
    labels = detect_fraud_signals(transactions_json)
    if SignalLabel.STRUCTURING_PATTERN in labels:
        ...
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from kycsignals.config import FraudPatternSettings, get_settings
from kycsignals.transactions.models import FraudSignalReport, SignalLabel, Transaction
from kycsignals.transactions.normalizer import normalize_transactions


# =============================================================================
# Sliding windows
# =============================================================================

def _check_window(window: timedelta) -> None:
    if window < timedelta(0):
        raise ValueError(f"window must not be negative, got {window}")


def max_in_window(timestamps: Sequence[datetime], window: timedelta) -> int:
    """
    Largest number of timestamps falling within any window of the given span.

    Args:
        timestamps: Ascending timestamps
        window: Window span; two events exactly one span apart share a window

    Returns:
        Maximum (right - left + 1) seen during the two-pointer scan.
    """
    _check_window(window)
    best = 0
    left = 0
    for right, end in enumerate(timestamps):
        while end - timestamps[left] > window:
            left += 1
        best = max(best, right - left + 1)
    return best


def max_distinct_in_window(events: Sequence[tuple[datetime, str]], window: timedelta) -> int:
    """
    Largest number of distinct keys active within any window.

    The active set is reference counted: a key is counted in on every
    occurrence entering the window, counted out when that occurrence leaves,
    and dropped once its count reaches zero.

    Args:
        events: Ascending (timestamp, key) pairs
        window: Window span
    """
    _check_window(window)
    active: dict[str, int] = {}
    best = 0
    left = 0
    for end, key in events:
        active[key] = active.get(key, 0) + 1
        while end - events[left][0] > window:
            expired_key = events[left][1]
            active[expired_key] -= 1
            if active[expired_key] == 0:
                del active[expired_key]
            left += 1
        best = max(best, len(active))
    return best


# =============================================================================
# Pattern Detector
# =============================================================================

class PatternDetector:
    """
    Runs the fraud heuristics over a normalized transaction sequence.

    Example:
        detector = PatternDetector()
        report = detector.analyze(normalize_transactions(records))
        print(report.ordered_labels)
    """

    def __init__(self, settings: FraudPatternSettings | None = None) -> None:
        self.settings = settings or get_settings().fraud
        self._high_risk = frozenset(self.settings.high_risk_countries)

    # =========================================================================
    # Individual scans
    # =========================================================================

    def is_near_threshold(self, tx: Transaction) -> bool:
        """Cash deposit inside [near_threshold_min, near_threshold_max)."""
        s = self.settings
        return (
            tx.has_channel(s.near_threshold_channel)
            and s.near_threshold_min <= tx.amount < s.near_threshold_max
        )

    def near_threshold_counts(self, transactions: Sequence[Transaction]) -> tuple[int, int]:
        """Return (total near-threshold count, max count inside the structuring window)."""
        near = [tx for tx in transactions if self.is_near_threshold(tx)]
        timed = [tx.timestamp for tx in near if tx.timestamp is not None]
        window = timedelta(hours=self.settings.structuring_window_hours)
        return len(near), max_in_window(timed, window)

    def velocity(self, transactions: Sequence[Transaction]) -> int:
        """Max transactions of any channel inside the velocity window."""
        timed = [tx.timestamp for tx in transactions if tx.timestamp is not None]
        return max_in_window(timed, timedelta(hours=self.settings.velocity_window_hours))

    def geo_risk(self, transactions: Sequence[Transaction]) -> int:
        """Number of outbound wires to high-risk countries."""
        return sum(
            1
            for tx in transactions
            if tx.has_channel(self.settings.geo_risk_channel)
            and tx.country is not None
            and tx.country.strip().upper() in self._high_risk
        )

    def device_hopping(self, transactions: Sequence[Transaction]) -> int:
        """Max distinct devices inside the device window."""
        events = [
            (tx.timestamp, tx.device.strip())
            for tx in transactions
            if tx.timestamp is not None and tx.device and tx.device.strip()
        ]
        return max_distinct_in_window(events, timedelta(hours=self.settings.device_window_hours))

    # =========================================================================
    # Aggregation
    # =========================================================================

    def analyze(self, transactions: Sequence[Transaction]) -> FraudSignalReport:
        """
        Run every scan over transactions sorted ascending by timestamp.

        Args:
            transactions: Output of normalize_transactions()

        Returns:
            FraudSignalReport with the raised labels and window metrics.
        """
        s = self.settings
        near_total, near_windowed = self.near_threshold_counts(transactions)
        max_velocity = self.velocity(transactions)
        geo_hits = self.geo_risk(transactions)
        max_devices = self.device_hopping(transactions)

        labels: set[SignalLabel] = set()
        if near_total >= s.threshold_skirting_min_count:
            labels.add(SignalLabel.THRESHOLD_SKIRTING)
        if max_velocity >= s.velocity_min_count:
            labels.add(SignalLabel.VELOCITY_SPIKE)
        if near_windowed >= s.structuring_min_count:
            labels.add(SignalLabel.STRUCTURING_PATTERN)
        if geo_hits > 0:
            labels.add(SignalLabel.GEO_RISK)
        if max_devices >= s.device_min_distinct:
            labels.add(SignalLabel.DEVICE_HOPPING)

        report = FraudSignalReport(
            labels=frozenset(labels),
            transaction_count=len(transactions),
            untimed_count=sum(1 for tx in transactions if tx.timestamp is None),
            near_threshold_count=near_total,
            max_near_threshold_in_window=near_windowed,
            max_transactions_in_window=max_velocity,
            max_distinct_devices_in_window=max_devices,
            geo_risk_count=geo_hits,
        )
        if labels:
            logger.debug(
                f"Fraud signals over {len(transactions)} transactions: "
                f"{', '.join(label.value for label in report.ordered_labels)}"
            )
        return report


# =============================================================================
# Entry points
# =============================================================================

def analyze_transactions(
    records: Any,
    settings: FraudPatternSettings | None = None,
) -> FraudSignalReport:
    """
    Normalize a raw feed and run the detector. Never raises.

    Args:
        records: JSON array text or a sequence of loosely typed records
        settings: Pattern thresholds; defaults to the application settings

    Returns:
        FraudSignalReport; empty for empty or unparsable feeds.
    """
    try:
        transactions = normalize_transactions(records)
        if not transactions:
            return FraudSignalReport()
        return PatternDetector(settings).analyze(transactions)
    except Exception as e:
        logger.exception(f"Transaction analysis failed: {e}")
        return FraudSignalReport()


def detect_fraud_signals(
    records: Any,
    settings: FraudPatternSettings | None = None,
) -> frozenset[SignalLabel]:
    """Return the set of fraud signal labels raised by a transaction feed."""
    return analyze_transactions(records, settings).labels
