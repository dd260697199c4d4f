# =============================================================================
# KYC Signals - Transaction Data Models
# =============================================================================
"""
Normalized transaction records and the fraud signal vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SignalLabel(str, Enum):
    """Fraud heuristics that can fire on a transaction sequence."""

    THRESHOLD_SKIRTING = "THRESHOLD_SKIRTING"
    VELOCITY_SPIKE = "VELOCITY_SPIKE"
    STRUCTURING_PATTERN = "STRUCTURING_PATTERN"
    GEO_RISK = "GEO_RISK"
    DEVICE_HOPPING = "DEVICE_HOPPING"


@dataclass(frozen=True)
class Transaction:
    """A transaction after defensive normalization."""

    timestamp: datetime | None = None
    amount: float = 0.0
    country: str | None = None
    channel: str | None = None
    device: str | None = None

    @property
    def is_timed(self) -> bool:
        return self.timestamp is not None

    def has_channel(self, channel: str) -> bool:
        """Case-insensitive channel match."""
        return self.channel is not None and self.channel.lower() == channel.lower()

    def to_dict(self) -> dict:
        return {
            "ts": self.timestamp.isoformat() if self.timestamp else None,
            "amt": self.amount,
            "country": self.country,
            "channel": self.channel,
            "device": self.device,
        }


@dataclass(frozen=True)
class FraudSignalReport:
    """Signals raised over a transaction sequence plus the metrics behind them."""

    labels: frozenset[SignalLabel] = field(default_factory=frozenset)

    transaction_count: int = 0
    untimed_count: int = 0
    near_threshold_count: int = 0
    max_near_threshold_in_window: int = 0
    max_transactions_in_window: int = 0
    max_distinct_devices_in_window: int = 0
    geo_risk_count: int = 0

    @property
    def ordered_labels(self) -> list[SignalLabel]:
        """Labels in vocabulary order, for reproducible output."""
        return [label for label in SignalLabel if label in self.labels]

    def to_dict(self) -> dict:
        return {
            "signals": [label.value for label in self.ordered_labels],
            "metrics": {
                "transactionCount": self.transaction_count,
                "untimedCount": self.untimed_count,
                "nearThresholdCount": self.near_threshold_count,
                "maxNearThresholdInWindow": self.max_near_threshold_in_window,
                "maxTransactionsInWindow": self.max_transactions_in_window,
                "maxDistinctDevicesInWindow": self.max_distinct_devices_in_window,
                "geoRiskCount": self.geo_risk_count,
            },
        }
