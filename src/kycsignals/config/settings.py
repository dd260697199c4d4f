# =============================================================================
# KYC Signals Settings Configuration
# =============================================================================
"""
Centralized configuration management using Pydantic Settings.

Every threshold used by the identity and transaction pipelines lives here so
that a deployment can tune them through environment variables or a .env
file without touching code.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MrzSettings(BaseSettings):
    """Machine-Readable-Zone decoding parameters."""

    model_config = SettingsConfigDict(env_prefix="MRZ_")

    century_cutover: int = Field(
        default=30,
        ge=0,
        le=99,
        description="Two-digit years >= this value map to 19xx, below it to 20xx"
    )
    min_line2_length: int = Field(
        default=43,
        ge=1,
        description="Shortest second MRZ line that is still decoded"
    )


class IdentitySettings(BaseSettings):
    """Identity reconciliation parameters."""

    model_config = SettingsConfigDict(env_prefix="IDENTITY_")

    cropping_keyword: str = Field(
        default="cropped",
        min_length=1,
        description="Marker in the OCR text that indicates a partial frame"
    )


class FraudPatternSettings(BaseSettings):
    """Transaction pattern thresholds and sliding-window sizes."""

    model_config = SettingsConfigDict(env_prefix="FRAUD_")

    # Near-threshold cash deposits
    near_threshold_channel: str = Field(default="cash_deposit")
    near_threshold_min: float = Field(
        default=9000.0,
        description="Lower bound (inclusive) of the near-threshold band"
    )
    near_threshold_max: float = Field(
        default=10000.0,
        description="Reporting threshold, upper bound (exclusive) of the band"
    )
    threshold_skirting_min_count: int = Field(default=3, ge=1)
    structuring_window_hours: float = Field(default=72.0, gt=0)
    structuring_min_count: int = Field(default=3, ge=1)

    # Velocity
    velocity_window_hours: float = Field(default=24.0, gt=0)
    velocity_min_count: int = Field(default=5, ge=1)

    # Device hopping
    device_window_hours: float = Field(default=48.0, gt=0)
    device_min_distinct: int = Field(default=3, ge=1)

    # Geo risk
    geo_risk_channel: str = Field(default="wire_out")
    high_risk_countries: list[str] = Field(
        default_factory=lambda: ["IR", "KP", "SY", "RU", "BY", "AF", "YE"],
        description="ISO-2 destinations treated as high risk for outbound wires"
    )

    @field_validator("near_threshold_max")
    @classmethod
    def validate_threshold_band(cls, v: float, info) -> float:
        """Ensure the near-threshold band is not empty."""
        lower = info.data.get("near_threshold_min", 9000.0)
        if v <= lower:
            raise ValueError(f"near_threshold_max ({v}) must be > near_threshold_min ({lower})")
        return v

    @field_validator("high_risk_countries")
    @classmethod
    def normalize_countries(cls, v: list[str]) -> list[str]:
        """Store country codes upper-cased."""
        return [code.strip().upper() for code in v if code and code.strip()]


class Settings(BaseSettings):
    """
    Master settings aggregating all configuration sections.

    Usage:
        settings = get_settings()
        print(settings.mrz.century_cutover)
        print(settings.fraud.velocity_window_hours)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    debug: bool = Field(default=False, description="Force DEBUG logging in the CLI")
    log_level: str = Field(default="INFO")

    # Nested settings
    mrz: MrzSettings = Field(default_factory=MrzSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    fraud: FraudPatternSettings = Field(default_factory=FraudPatternSettings)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings loaded from environment.

    Note:
        Settings are cached. Call `get_settings.cache_clear()` to reload
        settings if the environment changes.
    """
    return Settings()
