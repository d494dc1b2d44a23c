"""Tests for structured logging."""

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from soundshelf.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    """configure_logging() swaps the root handlers, put the originals back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        result = set_correlation_id("test-123-abc")
        assert result == "test-123-abc"
        assert get_correlation_id() == "test-123-abc"

    def test_set_correlation_id_generates_uuid_when_none(self):
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_empty_header_value_also_generates_one(self):
        assert set_correlation_id("") != ""


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_sets_level_and_single_handler(self):
        configure_logging(log_level="DEBUG")
        configure_logging(log_level="WARNING")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_noisy_loggers_are_quieted(self):
        configure_logging(log_level="DEBUG")

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_json_lines_carry_correlation_id_and_extra(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(log_level="INFO", json_format=True)
        set_correlation_id("corr-42")

        logging.getLogger("soundshelf.tests").info("Track played", extra={"track_id": "t-1"})

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["message"] == "Track played"
        assert record["level"] == "INFO"
        assert record["logger"] == "soundshelf.tests"
        assert record["correlation_id"] == "corr-42"
        assert record["track_id"] == "t-1"

    def test_text_format(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(log_level="INFO", json_format=False)

        logging.getLogger("soundshelf.tests").warning("Disk almost full")

        out = capsys.readouterr().out
        assert "WARNING" in out
        assert "soundshelf.tests" in out
        assert "Disk almost full" in out


def test_compact_formatter_shows_the_cause_chain():
    formatter = CompactExceptionFormatter()

    try:
        try:
            raise KeyError("missing")
        except KeyError as e:
            raise RuntimeError("lookup failed") from e
    except RuntimeError:
        text = formatter.formatException(sys.exc_info())

    lines = text.splitlines()
    assert lines[0].startswith("╰─► KeyError")
    assert any(line.startswith("╰─► RuntimeError: lookup failed") for line in lines)
