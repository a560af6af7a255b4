"""Unit tests for the structlog setup in src/utils/logging.py."""

from __future__ import annotations

import logging

import structlog
from structlog.testing import capture_logs

from src.utils.logging import configure_logging, get_logger


def test_get_logger_emits_snake_case_events_with_context() -> None:
    configure_logging("INFO")
    with capture_logs() as logs:
        get_logger("src.pipeline.trigger").info("workflow_dispatched", instance_id="feedback-7")

    assert logs == [
        {
            "event": "workflow_dispatched",
            "instance_id": "feedback-7",
            "logger_name": "src.pipeline.trigger",
            "log_level": "info",
        }
    ]


def test_configure_logging_routes_stdlib_through_one_handler() -> None:
    try:
        configure_logging("WARNING", json_output=True)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    finally:
        structlog.reset_defaults()
        configure_logging()
