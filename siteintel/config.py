"""Configuration management for siteintel."""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from siteintel.core.errors import InvalidConfigError
from siteintel.core.types import ScraperType

# Load .env file
load_dotenv()


DEFAULT_RATES: Dict[str, float] = {
    ScraperType.STATIC.value: 0.001,
    ScraperType.API.value: 0.002,
    ScraperType.DYNAMIC.value: 0.01,
    ScraperType.SPA.value: 0.015,
    ScraperType.AI_POWERED.value: 0.05,
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidConfigError(name, raw, "expected a number") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigError(name, raw, "expected an integer") from None


class PricingConfig(BaseModel):
    """Per-page pricing and cost-tier breakpoints (USD)."""

    model_config = ConfigDict(validate_default=True)

    rates: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_RATES), description="Per-page rate by scraper type"
    )
    operation_overhead: float = Field(default=0.0001, ge=0, description="Fixed overhead per projected operation")

    # Tier breakpoints: 0 is FREE, below cheap_below is CHEAP, below moderate_below is MODERATE
    cheap_below: float = Field(default=0.01, gt=0, description="Upper bound (exclusive) of the CHEAP tier")
    moderate_below: float = Field(default=0.10, gt=0, description="Upper bound (exclusive) of the MODERATE tier")

    @field_validator("rates", mode="before")
    @classmethod
    def validate_rates(cls, v: Any) -> Dict[str, float]:
        """Fill missing scraper types with defaults and reject unknown or negative rates."""
        rates = dict(DEFAULT_RATES)
        for key, value in (v or {}).items():
            scraper = ScraperType.parse(key)
            if scraper is None:
                raise ValueError(f"unknown scraper type in rates: {key}")
            if float(value) < 0:
                raise ValueError(f"rate for {key} must be non-negative")
            rates[scraper.value] = float(value)
        return rates

    @model_validator(mode="after")
    def validate_breakpoints(self) -> "PricingConfig":
        """Tier breakpoints must be ascending."""
        if self.cheap_below >= self.moderate_below:
            raise ValueError("cheap_below must be less than moderate_below")
        return self

    def rate_for(self, scraper_type: ScraperType) -> float:
        return self.rates[scraper_type.value]


class ExecutorConfig(BaseModel):
    """Configuration for execution cycles."""

    model_config = ConfigDict(validate_default=True)

    max_phase: int = Field(default=4, ge=1, description="Phase at which a session completes")
    lock_ttl_seconds: int = Field(default=300, ge=1, description="Seconds before an abandoned lock may be reclaimed")
    default_max_budget: float = Field(default=1.0, ge=0, description="Budget used when a caller gives none (USD)")
    target_quality: int = Field(default=85, ge=0, le=100, description="Quality score the optimizer aims for")
    enabled_scrapers: List[str] = Field(
        default_factory=lambda: [s.value for s in ScraperType],
        description="Scraper types the router may recommend",
    )

    @field_validator("enabled_scrapers", mode="before")
    @classmethod
    def validate_enabled_scrapers(cls, v: Any) -> List[str]:
        """Accept a list or comma-separated string of scraper types."""
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",") if part.strip()]
        enabled = []
        for item in v or []:
            scraper = ScraperType.parse(item)
            if scraper is None:
                raise ValueError(f"unknown scraper type: {item}")
            if scraper.value not in enabled:
                enabled.append(scraper.value)
        if not enabled:
            raise ValueError("at least one scraper type must be enabled")
        return enabled

    def enabled_types(self) -> List[ScraperType]:
        return [ScraperType(value) for value in self.enabled_scrapers]


class StorageConfig(BaseModel):
    """Configuration for the session repository."""

    type: Literal["memory", "sqlite"] = Field(default="sqlite", description="Repository type: memory or sqlite")
    sqlite_path: str = Field(default="data/siteintel.db", description="Path to SQLite database")


class AppConfig(BaseModel):
    """Main application configuration."""

    pricing: PricingConfig = Field(default_factory=PricingConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Application Settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        level = str(v or "INFO").upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {v}")
        return level

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Load configuration from environment variables.

        Environment variable mapping:
        - SITEINTEL_RATE_<TYPE>: per-page rate (e.g. SITEINTEL_RATE_DYNAMIC)
        - SITEINTEL_OPERATION_OVERHEAD, SITEINTEL_TIER_CHEAP_BELOW, SITEINTEL_TIER_MODERATE_BELOW
        - SITEINTEL_MAX_PHASE, SITEINTEL_LOCK_TTL, SITEINTEL_MAX_BUDGET, SITEINTEL_TARGET_QUALITY
        - SITEINTEL_ENABLED_SCRAPERS: comma-separated scraper types
        - SITEINTEL_STORAGE: memory or sqlite; SITEINTEL_DB_PATH
        - SITEINTEL_DEBUG, SITEINTEL_LOG_LEVEL
        """
        rates = {
            scraper.value: _env_float(f"SITEINTEL_RATE_{scraper.name}", DEFAULT_RATES[scraper.value])
            for scraper in ScraperType
        }

        pricing = PricingConfig(
            rates=rates,
            operation_overhead=_env_float("SITEINTEL_OPERATION_OVERHEAD", 0.0001),
            cheap_below=_env_float("SITEINTEL_TIER_CHEAP_BELOW", 0.01),
            moderate_below=_env_float("SITEINTEL_TIER_MODERATE_BELOW", 0.10),
        )

        executor = ExecutorConfig(
            max_phase=_env_int("SITEINTEL_MAX_PHASE", 4),
            lock_ttl_seconds=_env_int("SITEINTEL_LOCK_TTL", 300),
            default_max_budget=_env_float("SITEINTEL_MAX_BUDGET", 1.0),
            target_quality=_env_int("SITEINTEL_TARGET_QUALITY", 85),
            enabled_scrapers=os.getenv("SITEINTEL_ENABLED_SCRAPERS") or [s.value for s in ScraperType],
        )

        storage = StorageConfig(
            type=os.getenv("SITEINTEL_STORAGE", "sqlite"),
            sqlite_path=os.getenv("SITEINTEL_DB_PATH", "data/siteintel.db"),
        )

        return cls(
            pricing=pricing,
            executor=executor,
            storage=storage,
            debug=os.getenv("SITEINTEL_DEBUG", "false").lower() == "true",
            log_level=os.getenv("SITEINTEL_LOG_LEVEL", "INFO"),
        )

    def to_env_file(self, path: str = ".env.example"):
        """
        Generate example .env file with current configuration.

        Args:
            path: Path to write .env file
        """
        lines = [
            "# siteintel Configuration",
            "",
            f"SITEINTEL_DEBUG={str(self.debug).lower()}",
            f"SITEINTEL_LOG_LEVEL={self.log_level}",
            "",
            "# Pricing (USD per page)",
        ]
        lines.extend(f"SITEINTEL_RATE_{ScraperType(key).name}={value}" for key, value in self.pricing.rates.items())
        lines.extend(
            [
                f"SITEINTEL_OPERATION_OVERHEAD={self.pricing.operation_overhead}",
                f"SITEINTEL_TIER_CHEAP_BELOW={self.pricing.cheap_below}",
                f"SITEINTEL_TIER_MODERATE_BELOW={self.pricing.moderate_below}",
                "",
                "# Execution",
                f"SITEINTEL_MAX_PHASE={self.executor.max_phase}",
                f"SITEINTEL_LOCK_TTL={self.executor.lock_ttl_seconds}",
                f"SITEINTEL_MAX_BUDGET={self.executor.default_max_budget}",
                f"SITEINTEL_TARGET_QUALITY={self.executor.target_quality}",
                f"SITEINTEL_ENABLED_SCRAPERS={','.join(self.executor.enabled_scrapers)}",
                "",
                "# Storage",
                f"SITEINTEL_STORAGE={self.storage.type}",
                f"SITEINTEL_DB_PATH={self.storage.sqlite_path}",
                "",
            ]
        )

        Path(path).write_text("\n".join(lines))
