from __future__ import annotations

from typing import Any

import pytest

from streamsink.core import diagnostics
from streamsink.core.diagnostics import DiagnosticLogger, get_logger


def test_payload_shape() -> None:
    captured: list[dict[str, Any]] = []
    logger = DiagnosticLogger("kinesis-destination", writer=captured.append)
    logger.warn("record dropped", reason="remote", dropped=True)
    assert len(captured) == 1
    payload = captured[0]
    assert payload["component"] == "kinesis-destination"
    assert payload["level"] == "WARNING"
    assert payload["message"] == "record dropped"
    assert payload["reason"] == "remote"
    assert payload["dropped"] is True
    assert isinstance(payload["timestamp"], float)


def test_level_filtering_and_disabled() -> None:
    captured: list[dict[str, Any]] = []
    logger = DiagnosticLogger("c", level="WARNING", writer=captured.append)
    logger.debug("d")
    logger.info("i")
    logger.warn("w")
    logger.error("e")
    assert [p["level"] for p in captured] == ["WARNING", "ERROR"]

    silent = DiagnosticLogger("c", enabled=False, writer=captured.append)
    silent.error("never")
    assert len(captured) == 2


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError):
        DiagnosticLogger("c", level="TRACE")


def test_writer_errors_are_contained() -> None:
    def broken(_payload: dict[str, Any]) -> None:
        raise RuntimeError("disk full")

    logger = DiagnosticLogger("c", writer=broken)
    logger.error("still fine")


def test_module_writer_used_when_none_injected(
    captured_diagnostics: list[dict[str, Any]],
) -> None:
    DiagnosticLogger("c").info("hello")
    assert captured_diagnostics[0]["message"] == "hello"


def test_bind_shares_writer_and_settings() -> None:
    captured: list[dict[str, Any]] = []
    parent = DiagnosticLogger("parent", level="DEBUG", writer=captured.append)
    child = parent.bind("child")
    child.debug("x")
    assert captured[0]["component"] == "child"
    assert child.level == "DEBUG"


def test_default_writer_emits_json_line(capsys: pytest.CaptureFixture[str]) -> None:
    diagnostics._reset_for_tests()
    DiagnosticLogger("c").info("to stderr", n=1)
    err = capsys.readouterr().err
    assert '"message":"to stderr"' in err
    assert err.endswith("\n")


def test_get_logger_reads_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STREAMSINK_CORE__DIAGNOSTICS_LEVEL", "ERROR")
    monkeypatch.setenv("STREAMSINK_CORE__INTERNAL_LOGGING_ENABLED", "false")
    logger = get_logger("kinesis-destination")
    assert logger.level == "ERROR"
    assert logger.enabled is False
