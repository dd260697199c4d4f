"""Shared fixtures for the KYC Signals test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from kycsignals.config import FraudPatternSettings, Settings
from kycsignals.identity.mrz import compute_check_digit


SPECIMEN_LINE1 = "P<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<"
SPECIMEN_LINE2 = "L898902C36UTO7408122F1204159ZE184226B<<<<<10"
# Older specimen edition: field digits valid, composite digit inconsistent (computes to 4)
LEGACY_SPECIMEN_LINE2 = "L898902C<3UTO6908061F9406236ZE184226B<<<<<10"

BASE_TIME = datetime(2025, 2, 10, 9, 0, tzinfo=timezone.utc)


def build_line2(
    document_number: str,
    nationality: str,
    birth: str,
    sex: str,
    expiry: str,
    optional: str = "",
) -> str:
    """Assemble a TD3 line 2 with correctly computed check digits."""
    doc = document_number.ljust(9, "<")[:9]
    opt = optional.ljust(14, "<")[:14]
    line = (
        f"{doc}{compute_check_digit(doc)}"
        f"{nationality}"
        f"{birth}{compute_check_digit(birth)}"
        f"{sex}"
        f"{expiry}{compute_check_digit(expiry)}"
        f"{opt}{compute_check_digit(opt)}"
    )
    composite = line[0:10] + line[13:20] + line[21:43]
    return line + str(compute_check_digit(composite))


def tx(hours: float, channel: str = "card_purchase", amount: float = 100.0, **extra) -> dict:
    """Raw feed record offset from BASE_TIME."""
    record = {
        "ts": (BASE_TIME + timedelta(hours=hours)).isoformat().replace("+00:00", "Z"),
        "amt": amount,
        "channel": channel,
    }
    record.update(extra)
    return record


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the process environment."""
    return Settings(_env_file=None)


@pytest.fixture
def fraud_settings(settings: Settings) -> FraudPatternSettings:
    return settings.fraud


@pytest.fixture
def specimen_lines() -> tuple[str, str]:
    return SPECIMEN_LINE1, SPECIMEN_LINE2
