# =============================================================================
# KYC Signals - Transaction Normalizer
# =============================================================================
"""
Turns a loosely typed transaction feed into time-sortable Transaction
records.

Each record is converted on its own and malformed fields degrade to neutral
defaults instead of dropping the record:

    unparsable timestamp -> None   (kept, but excluded from window scans)
    non-numeric amount   -> 0.0
    missing text field   -> None

Records are read with the feed's short keys (ts, amt) or the long ones
(timestamp, amount).
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from kycsignals.transactions.models import Transaction


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TIMESTAMP_KEYS: tuple[str, ...] = ("ts", "timestamp")
AMOUNT_KEYS: tuple[str, ...] = ("amt", "amount")


def parse_feed(feed: Any) -> list[Any]:
    """
    Decode a transaction feed into a list of raw records.

    Accepts a JSON array (str or bytes) or an already decoded sequence.
    Anything else, including invalid JSON, yields an empty list.
    """
    if feed is None:
        return []
    if isinstance(feed, (bytes, bytearray)):
        try:
            feed = feed.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Transaction feed is not UTF-8: {e}")
            return []
    if isinstance(feed, str):
        if not feed.strip():
            return []
        try:
            feed = json.loads(feed)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid transaction JSON: {e}")
            return []
    if isinstance(feed, Sequence) and not isinstance(feed, (str, bytes, bytearray)):
        return list(feed)
    logger.warning(f"Transaction feed is not an array (got {type(feed).__name__})")
    return []


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparsable timestamp: {value!r}")
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the instant outside the datetime range
        logger.debug(f"Timestamp out of range after UTC conversion: {value!r}")
        return None


def to_amount(value: Any) -> float:
    """Numeric amount, or 0.0 when the value is not a finite number."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Non-numeric amount: {value!r}")
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def to_text(value: Any) -> str | None:
    return None if value is None else str(value)


def _first(record: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def normalize_transaction(record: Any) -> Transaction:
    """Convert one raw record. Never raises; non-mappings become empty records."""
    if not isinstance(record, Mapping):
        logger.debug(f"Transaction record is not an object: {type(record).__name__}")
        return Transaction()
    return Transaction(
        timestamp=parse_timestamp(_first(record, TIMESTAMP_KEYS)),
        amount=to_amount(_first(record, AMOUNT_KEYS)),
        country=to_text(record.get("country")),
        channel=to_text(record.get("channel")),
        device=to_text(record.get("device")),
    )


def sort_key(tx: Transaction) -> datetime:
    """Untimed transactions sort to the earliest position (epoch)."""
    return tx.timestamp if tx.timestamp is not None else EPOCH


def normalize_transactions(records: Any) -> tuple[Transaction, ...]:
    """
    Normalize a feed and sort it ascending by timestamp.

    Args:
        records: JSON array text or a sequence of loosely typed records

    Returns:
        Tuple of Transaction, untimed records first.
    """
    transactions = [normalize_transaction(record) for record in parse_feed(records)]
    transactions.sort(key=sort_key)
    return tuple(transactions)
