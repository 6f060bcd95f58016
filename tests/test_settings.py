"""Tests for configuration and audit logging."""

import asyncio
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP

import pytest

from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.config import LedgerSettings, get_settings, validate_all_settings
from splitledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitledger.services.storage import InMemoryAuditStorage, StorageError


class TestLedgerSettings:
    """Tests for money handling settings."""

    def test_defaults(self, monkeypatch):
        """Round half even to two places by default."""
        for name in ("LEDGER_ROUNDING", "LEDGER_DECIMAL_PLACES", "LEDGER_INVITE_TOKEN_LENGTH"):
            monkeypatch.delenv(name, raising=False)
        settings = LedgerSettings()
        assert settings.decimal_places == 2
        assert settings.rounding_mode == ROUND_HALF_EVEN
        assert settings.invite_token_length == 10

    def test_env_override(self, monkeypatch):
        """Settings are read from LEDGER_ variables."""
        monkeypatch.setenv("LEDGER_ROUNDING", "round_half_up")
        monkeypatch.setenv("LEDGER_DECIMAL_PLACES", "3")
        settings = LedgerSettings()
        assert settings.rounding == "ROUND_HALF_UP"
        assert settings.rounding_mode == ROUND_HALF_UP
        assert settings.decimal_places == 3

    def test_unknown_rounding_rejected(self):
        """Only decimal rounding modes are accepted."""
        with pytest.raises(ValueError):
            LedgerSettings(rounding="ROUND_NEAREST")

    def test_token_length_bounds(self):
        """Invite tokens cannot be trivially short."""
        with pytest.raises(ValueError):
            LedgerSettings(invite_token_length=3)

    def test_validate_all_settings(self):
        """Every settings group is reported."""
        results = validate_all_settings()
        for name in ("ledger", "reminders", "google_sheets", "app"):
            assert name in results

    def test_settings_are_cached(self):
        """get_settings returns the same object until the cache is cleared."""
        assert get_settings() is get_settings()


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("sheet unavailable")


class TestAuditLogger:
    """Tests for the audit logger."""

    def test_persists_events(self):
        """Events go to storage when configured."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)

        asyncio.run(logger.log_invite_token_generated("g1", "u1"))

        assert [e.event_type for e in storage.events] == [AuditEventType.INVITE_TOKEN_GENERATED]

    def test_storage_failure_does_not_raise(self):
        """A broken audit backend never breaks the caller."""
        logger = AuditLogger(FailingAuditStorage())
        event = AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description="boom",
        )
        assert asyncio.run(logger.log(event)) is False

    def test_local_only(self):
        """Without storage, logging still succeeds."""
        assert asyncio.run(AuditLogger().log(AuditEvent(
            event_type=AuditEventType.MEMBER_JOINED,
            description="joined",
        ))) is True

    def test_correlated_events(self):
        """Events sharing a correlation id can be read back together."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        asyncio.run(logger.log_reminder_sent("u1", 2, correlation_id))
        asyncio.run(logger.log_reminder_failed("u2", "bounced", correlation_id))
        asyncio.run(logger.log_reminder_sent("u3", 1, create_correlation_id()))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.entity_id for e in events] == ["u1", "u2"]
