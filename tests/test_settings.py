"""Tests for settings loading and the log level wiring."""

import asyncio
import logging
import pytest
from uuid import uuid4

from balance_ledger.audit import AuditLogger
from balance_ledger.config import (
    AppSettings,
    LedgerSettings,
    get_settings,
    validate_all_settings,
)
from balance_ledger.services.storage import InMemoryAuditStorage


@pytest.fixture
def audit_level():
    """Restore the audit logger level after a test changes it."""
    logger = logging.getLogger("balance_ledger.audit")
    level = logger.level
    yield logger
    logger.setLevel(level)


class TestLedgerSettings:
    """LEDGER_ prefixed configuration."""

    def test_defaults(self):
        settings = LedgerSettings()

        assert settings.decimal_places == 2
        assert settings.currency_code == "USD"
        assert settings.audit_enabled is True
        assert settings.budget_alert_threshold == 0.8

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DECIMAL_PLACES", "3")
        monkeypatch.setenv("LEDGER_CURRENCY_CODE", "eur")
        monkeypatch.setenv("LEDGER_BUDGET_ALERT_THRESHOLD", "0.95")

        settings = get_settings().ledger

        assert settings.decimal_places == 3
        assert settings.currency_code == "EUR"
        assert settings.budget_alert_threshold == 0.95


class TestAppSettings:

    def test_default_log_level(self):
        assert AppSettings().log_level == "INFO"

    def test_log_level_sets_audit_logger_level(self, monkeypatch, audit_level):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        AuditLogger()

        assert audit_level.level == logging.ERROR

    def test_quiet_level_still_persists_events(self, monkeypatch, audit_level):
        """Test the level filters local output only, never audit storage."""
        monkeypatch.setenv("LOG_LEVEL", "CRITICAL")
        storage = InMemoryAuditStorage()

        asyncio.run(AuditLogger(storage).log_ledger_reset(entries_removed=0, correlation_id=uuid4()))

        assert len(storage.events) == 1


class TestValidateAllSettings:

    def test_all_valid(self):
        assert validate_all_settings() == {"ledger": True, "app": True}

    def test_bad_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        results = validate_all_settings()

        assert results["ledger"] is True
        assert results["app"] is False
        assert "log_level" in results["app_error"]

    def test_threshold_out_of_range(self, monkeypatch):
        monkeypatch.setenv("LEDGER_BUDGET_ALERT_THRESHOLD", "1.5")

        results = validate_all_settings()

        assert results["ledger"] is False
        assert "budget_alert_threshold" in results["ledger_error"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
