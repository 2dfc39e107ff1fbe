"""
Unit Tests for Settings and Logging

Tests cover:
1. Environment defaults and overrides
2. JSON log formatting
3. Service logs reaching root handlers
"""

import json
import logging

from points.config import Settings
from points.logger import JsonFormatter, setup_logger
from points.models import Transaction
from points.service import PointsService


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        """Unset variables fall back to the built-in defaults."""
        for name in ("SERVICE_NAME", "LOG_LEVEL", "POINTS_HOST", "POINTS_PORT", "CORS_ALLOW_ORIGINS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.service_name == "points-ledger"
        assert settings.port == 3000
        assert settings.cors_allow_origins == ["*"]

    def test_env_overrides(self, monkeypatch):
        """Environment variables override defaults; origins are comma separated."""
        monkeypatch.setenv("POINTS_PORT", "8080")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example")

        settings = Settings.from_env()

        assert settings.port == 8080
        assert settings.log_level == "debug"
        assert settings.cors_allow_origins == ["https://a.example", "https://b.example"]


class TestLogging:
    """Tests for the JSON formatter and logger setup."""

    def test_formats_record_as_json(self):
        """A record renders as one JSON object with the standard fields."""
        record = logging.LogRecord("points.service", logging.INFO, __file__, 1, "spent %d points", (5,), None)

        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "points.service"
        assert payload["message"] == "spent 5 points"
        assert "exc_info" not in payload

    def test_service_logs_reach_root_handlers(self, caplog):
        """Module loggers under ``points`` still propagate after setup."""
        setup_logger()
        service = PointsService()
        service.add_transaction(Transaction(payer="DANNON", points=10))

        with caplog.at_level(logging.INFO, logger="points.service"):
            service.spend(5)

        assert any("spent 5 points" in r.getMessage() for r in caplog.records)
