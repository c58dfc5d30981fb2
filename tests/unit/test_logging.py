"""Testes para o modulo de logging estruturado."""

from __future__ import annotations

import json
import logging

import structlog

import speechbridge.logging as sb_logging


def _reset_logging() -> None:
    """Reset do estado global de logging para isolamento entre testes."""
    sb_logging._configured = False
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


def _attach_capture() -> _CaptureHandler:
    root = logging.getLogger()
    capture = _CaptureHandler()
    capture.setFormatter(root.handlers[0].formatter)
    root.addHandler(capture)
    return capture


class TestGetLogger:
    def setup_method(self) -> None:
        _reset_logging()

    def teardown_method(self) -> None:
        _reset_logging()

    def test_get_logger_returns_bound_logger(self) -> None:
        logger = sb_logging.get_logger("test")
        assert isinstance(logger, structlog.stdlib.BoundLogger)

    def test_get_logger_binds_component(self) -> None:
        logger = sb_logging.get_logger("provider.google")
        context = logger._context  # type: ignore[attr-defined]
        assert context.get("component") == "provider.google"


class TestConfigureLogging:
    def setup_method(self) -> None:
        _reset_logging()

    def teardown_method(self) -> None:
        _reset_logging()

    def test_configure_idempotent(self) -> None:
        sb_logging.configure_logging(log_format="console", level="DEBUG")
        assert sb_logging._configured is True
        sb_logging.configure_logging(log_format="json", level="ERROR")
        assert logging.getLogger().level == logging.DEBUG

    def test_level_from_environment(self, monkeypatch: object) -> None:
        monkeypatch.setenv("SPEECHBRIDGE_LOG_LEVEL", "WARNING")  # type: ignore[attr-defined]
        sb_logging.configure_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_json_format_has_required_fields(self) -> None:
        sb_logging.configure_logging(log_format="json", level="DEBUG")
        logger = sb_logging.get_logger("test_component")
        capture = _attach_capture()
        try:
            logger.info("structured_event", key="value")
        finally:
            logging.getLogger().removeHandler(capture)

        parsed = json.loads(capture.records[-1])
        assert parsed["event"] == "structured_event"
        assert parsed["level"] == "info"
        assert "timestamp" in parsed
        assert parsed["component"] == "test_component"
        assert parsed["key"] == "value"


class TestSessionContext:
    def setup_method(self) -> None:
        _reset_logging()

    def teardown_method(self) -> None:
        _reset_logging()

    def test_session_id_is_attached_until_cleared(self) -> None:
        sb_logging.configure_logging(log_format="json", level="DEBUG")
        logger = sb_logging.get_logger("server.dispatcher")
        capture = _attach_capture()
        try:
            sb_logging.bind_session_context("sess_abc123")
            logger.info("inside_session")
            sb_logging.clear_session_context()
            logger.info("outside_session")
        finally:
            logging.getLogger().removeHandler(capture)

        inside, outside = (json.loads(r) for r in capture.records[-2:])
        assert inside["session_id"] == "sess_abc123"
        assert "session_id" not in outside
