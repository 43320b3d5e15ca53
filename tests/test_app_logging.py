"""Tests for logging configuration."""

import logging

from booth_pipeline.app_logging import configure_logging


def test_configure_logging_adds_single_handler() -> None:
    logger = logging.getLogger("booth_pipeline")
    logger.handlers.clear()

    configure_logging()
    configure_logging()

    assert len(logger.handlers) == 1
    assert logger.propagate is False
    formatter = logger.handlers[0].formatter
    assert formatter is not None
    assert formatter._fmt == "%(asctime)s %(levelname)s: %(name)s: %(message)s"


def test_configure_logging_updates_level_on_repeat_calls() -> None:
    logger = logging.getLogger("booth_pipeline")
    logger.handlers.clear()

    configure_logging(logging.WARNING)
    configure_logging(logging.DEBUG)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
