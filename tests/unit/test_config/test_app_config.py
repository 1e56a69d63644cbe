"""Tests for configuration loading and validation."""

import os

import pytest
from pydantic import ValidationError

from siteintel.config import DEFAULT_RATES, AppConfig, ExecutorConfig, PricingConfig
from siteintel.core.errors import InvalidConfigError
from siteintel.core.types import ScraperType


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any SITEINTEL_* variables leaking in from the host."""
    for key in list(os.environ):
        if key.startswith("SITEINTEL_"):
            monkeypatch.delenv(key)


class TestDefaults:
    def test_default_config(self):
        config = AppConfig()
        assert config.pricing.rates == DEFAULT_RATES
        assert config.pricing.operation_overhead == 0.0001
        assert config.executor.max_phase == 4
        assert config.executor.enabled_types() == list(ScraperType)
        assert config.storage.type == "sqlite"
        assert config.log_level == "INFO"

    def test_rate_for(self):
        assert PricingConfig().rate_for(ScraperType.SPA) == 0.015


class TestPricingValidation:
    def test_partial_rates_merge_with_defaults(self):
        pricing = PricingConfig(rates={"DYNAMIC": 0.02})
        assert pricing.rates["dynamic"] == 0.02
        assert pricing.rates["static"] == 0.001

    def test_unknown_rate_rejected(self):
        with pytest.raises(ValidationError):
            PricingConfig(rates={"telepathy": 0.1})

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            PricingConfig(rates={"static": -0.1})

    def test_breakpoints_must_ascend(self):
        with pytest.raises(ValidationError):
            PricingConfig(cheap_below=0.5, moderate_below=0.1)


class TestExecutorValidation:
    def test_comma_separated_scrapers(self):
        config = ExecutorConfig(enabled_scrapers="static, API,static")
        assert config.enabled_types() == [ScraperType.STATIC, ScraperType.API]

    @pytest.mark.parametrize("value", ["", [], "static,warp"])
    def test_invalid_scrapers(self, value):
        with pytest.raises(ValidationError):
            ExecutorConfig(enabled_scrapers=value)

    def test_max_phase_positive(self):
        with pytest.raises(ValidationError):
            ExecutorConfig(max_phase=0)


class TestFromEnv:
    def test_mock_env(self, clean_env, mock_env):
        config = AppConfig.from_env()
        assert config.storage.type == "memory"
        assert config.executor.default_max_budget == 0.5
        assert config.log_level == "WARNING"

    def test_overrides(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("SITEINTEL_RATE_AI_POWERED", "0.2")
        monkeypatch.setenv("SITEINTEL_MAX_PHASE", "2")
        monkeypatch.setenv("SITEINTEL_ENABLED_SCRAPERS", "static,dynamic")
        monkeypatch.setenv("SITEINTEL_DB_PATH", str(tmp_path / "s.db"))
        monkeypatch.setenv("SITEINTEL_DEBUG", "TRUE")

        config = AppConfig.from_env()
        assert config.pricing.rate_for(ScraperType.AI_POWERED) == 0.2
        assert config.executor.max_phase == 2
        assert config.executor.enabled_scrapers == ["static", "dynamic"]
        assert config.storage.sqlite_path == str(tmp_path / "s.db")
        assert config.debug is True

    @pytest.mark.parametrize("name,value", [
        ("SITEINTEL_MAX_BUDGET", "lots"),
        ("SITEINTEL_MAX_PHASE", "2.5"),
        ("SITEINTEL_RATE_STATIC", "cheap"),
    ])
    def test_malformed_numbers(self, clean_env, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(InvalidConfigError) as exc_info:
            AppConfig.from_env()
        assert exc_info.value.details["config_key"] == name

    def test_bad_log_level(self, clean_env, monkeypatch):
        monkeypatch.setenv("SITEINTEL_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            AppConfig.from_env()


class TestEnvFile:
    def test_round_trip(self, clean_env, monkeypatch, tmp_path):
        path = tmp_path / ".env.example"
        original = AppConfig(executor=ExecutorConfig(max_phase=3, enabled_scrapers=["spa"]))
        original.to_env_file(str(path))

        text = path.read_text()
        assert "SITEINTEL_MAX_PHASE=3" in text
        assert "SITEINTEL_RATE_AI_POWERED=0.05" in text

        for line in text.splitlines():
            if line and not line.startswith("#"):
                key, _, value = line.partition("=")
                monkeypatch.setenv(key, value)
        loaded = AppConfig.from_env()
        assert loaded.executor.max_phase == 3
        assert loaded.executor.enabled_scrapers == ["spa"]
        assert loaded.pricing.rates == original.pricing.rates
