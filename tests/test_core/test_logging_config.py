"""Tests for structlog configuration."""

import json

import pytest
import structlog

from marketdata.logging_config import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test JSON rendering includes event, level and timestamp."""
        configure_logging("INFO", json_output=True)
        structlog.get_logger("test").info("quote_fetched", symbol="AAPL")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "quote_fetched"
        assert record["symbol"] == "AAPL"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test events below the configured level are dropped."""
        configure_logging("WARNING", json_output=True)
        structlog.get_logger("test").info("ignored_event")

        assert "ignored_event" not in capsys.readouterr().out

    def test_unknown_level_defaults_to_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a bogus level name does not break configuration."""
        configure_logging("chatty", json_output=True)
        structlog.get_logger("test").info("still_logged")

        assert "still_logged" in capsys.readouterr().out
