"""
Tests for settings loading and structured logging.
"""

import logging

import pytest
import structlog
from pydantic import SecretStr

from clinicdesk.config import EngineSettings, IndexSettings, get_settings
from clinicdesk.observability import configure_logging, contact_redaction_processor, redact_contacts


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_are_cached(fresh_settings):
    assert get_settings() is get_settings()


def test_defaults():
    settings = EngineSettings(_env_file=None)
    assert settings.min_query_length == 2
    assert settings.search_limit == 10
    assert settings.utc_offset_hours == 6


def test_env_override(fresh_settings, monkeypatch):
    monkeypatch.setenv("CLINICDESK_MIN_QUERY_LENGTH", "3")
    monkeypatch.setenv("CLINICDESK_INDEX_BASE_URL", "https://records.example/api")
    settings = get_settings()
    assert settings.engine.min_query_length == 3
    assert settings.index.base_url == "https://records.example/api"


def test_api_token_is_secret(monkeypatch):
    monkeypatch.setenv("CLINICDESK_INDEX_API_TOKEN", "s3cret")
    settings = IndexSettings(_env_file=None)
    assert isinstance(settings.api_token, SecretStr)
    assert "s3cret" not in repr(settings)
    assert settings.api_token.get_secret_value() == "s3cret"


class TestRedaction:
    def test_redact_contacts(self):
        text = "Call 01712345678 or mail jane@example.com"
        assert redact_contacts(text) == "Call [REDACTED] or mail [REDACTED]"

    def test_short_numbers_survive(self):
        assert redact_contacts("Record PATH-000042 total 1200") == "Record PATH-000042 total 1200"

    def test_processor_skips_metadata_keys(self):
        event = {
            "event": "entity_lookup_failed",
            "query": "01712345678",
            "timestamp": "2026-10-19T08:00:00",
            "count": 3,
        }
        result = contact_redaction_processor(None, "info", dict(event))
        assert result["query"] == "[REDACTED]"
        assert result["timestamp"] == "2026-10-19T08:00:00"
        assert result["count"] == 3


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def reset_structlog(self):
        yield
        structlog.reset_defaults()

    def test_json_output_is_redacted(self, caplog):
        caplog.set_level(logging.INFO)
        configure_logging("INFO", json_output=True)

        structlog.get_logger("clinicdesk.test").info("record_submitted", phone="01712345678", display_id="PATH-000042")

        messages = [record.getMessage() for record in caplog.records if record.name == "clinicdesk.test"]
        assert len(messages) == 1
        assert '"event": "record_submitted"' in messages[0]
        assert "[REDACTED]" in messages[0]
        assert "01712345678" not in messages[0]
        assert "PATH-000042" in messages[0]

    def test_defaults_come_from_settings(self, caplog, fresh_settings, monkeypatch):
        monkeypatch.setenv("CLINICDESK_LOG_JSON", "true")
        caplog.set_level(logging.INFO)
        configure_logging()

        structlog.get_logger("clinicdesk.test").info("graph_reset", revision=3)

        messages = [record.getMessage() for record in caplog.records if record.name == "clinicdesk.test"]
        assert messages[-1].startswith("{")
        assert '"revision": 3' in messages[-1]
