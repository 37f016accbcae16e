"""Tests for logging_config."""

from __future__ import annotations

import structlog

from logging_config import configure_logging


class TestConfigureLogging:
    def test_json_renderer(self) -> None:
        configure_logging(log_level="DEBUG", json_format=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self) -> None:
        configure_logging(json_format=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
