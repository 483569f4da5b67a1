"""
Tradewise Settings

Engine configuration loaded from environment variables (``TRADEWISE_`` prefix),
an optional ``.env`` file, and an optional YAML file.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("config") / "tradewise.yaml"


class AnalyticsSettings(BaseSettings):
    """
    Settings shared by PerformanceAnalytics and SignalAggregationEngine.

    Every field can be overridden with ``TRADEWISE_<FIELD_NAME>``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRADEWISE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Performance analytics
    annualization_factor: int = Field(
        default=252,
        ge=1,
        le=525_600,
        description="Return bars per year used to annualize Sharpe/Sortino.",
    )
    risk_free_rate: float = Field(
        default=0.0,
        ge=-1.0,
        le=1.0,
        description="Annual risk-free rate as a fraction.",
    )
    var_confidence: float = Field(
        default=0.95,
        gt=0.5,
        lt=1.0,
        description="Confidence level for historical VaR/CVaR.",
    )

    # Signal aggregation
    cache_ttl_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Lifetime of the cached opportunity list.",
    )
    default_half_life_days: float = Field(
        default=14.0,
        gt=0,
        description="Half-life applied to signal types without a configured one.",
    )
    half_life_overrides: Dict[str, float] = Field(
        default_factory=dict,
        description="Per signal type half-life overrides in days.",
    )
    enrichment_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for each momentum discovery or AI summary call.",
    )
    summary_concurrency: int = Field(
        default=3,
        ge=1,
        le=32,
        description="Maximum AI summaries generated at once.",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level.")
    log_json: bool = Field(default=False, description="Emit JSON structured logs.")

    @field_validator("half_life_overrides")
    @classmethod
    def validate_half_lives(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Half-lives must be strictly positive."""
        for signal_type, days in v.items():
            if days <= 0:
                raise ValueError(
                    f"Half-life for {signal_type} must be positive, got {days}"
                )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    # Allow the values to be nested under a top-level "tradewise" key
    return data.get("tradewise", data)


def load_settings(path: Optional[Union[str, Path]] = None) -> AnalyticsSettings:
    """
    Build settings from the environment, overlaid with a YAML file.

    Args:
        path: YAML file to read. Falls back to ``config/tradewise.yaml``
            when it exists; a missing explicit path raises FileNotFoundError.

    Returns:
        Validated AnalyticsSettings
    """
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Settings file not found: {config_path}")
    elif DEFAULT_CONFIG_FILE.exists():
        config_path = DEFAULT_CONFIG_FILE
    else:
        return AnalyticsSettings()

    overrides = _read_yaml(config_path)
    logger.info(f"Loaded settings overrides from {config_path}: {sorted(overrides)}")
    return AnalyticsSettings(**overrides)


@lru_cache()
def get_settings() -> AnalyticsSettings:
    """Process-wide settings instance."""
    return load_settings()
