"""Configuration management module for KYC Signals."""

from kycsignals.config.settings import (
    FraudPatternSettings,
    IdentitySettings,
    MrzSettings,
    Settings,
    get_settings,
)

__all__ = [
    "FraudPatternSettings",
    "IdentitySettings",
    "MrzSettings",
    "Settings",
    "get_settings",
]
