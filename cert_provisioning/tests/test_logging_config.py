"""Tests for JSON log formatting."""

import json
import logging

from cert_provisioning.lib.logging_config import LOGGER, CustomJsonFormatter


def _format(**extra: object) -> dict[str, object]:
    formatter = CustomJsonFormatter(
        fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
        timestamp=True,
    )
    record = logging.LogRecord("cert_provisioning", logging.WARNING, __file__, 12, "pvwa %s", ("ready",), None)
    record.__dict__.update(extra)
    return json.loads(formatter.format(record))


def test_keeps_only_allowed_fields() -> None:
    """Only the focused field set is emitted, with level renamed."""
    payload = _format()

    assert payload["level"] == "WARNING"
    assert payload["message"] == "pvwa ready"
    assert payload["lineno"] == 12
    assert "timestamp" in payload
    assert "name" not in payload
    assert "levelname" not in payload


def test_unit_extra_kept() -> None:
    """A unit passed as extra is kept, other extras are dropped."""
    payload = _format(unit="PSM server 2", password="hunter2")

    assert payload["unit"] == "PSM server 2"
    assert "password" not in payload


def test_logger_does_not_propagate() -> None:
    """The package logger owns its handler."""
    assert LOGGER.name == "cert_provisioning"
    assert LOGGER.propagate is False
    assert len(LOGGER.handlers) == 1
