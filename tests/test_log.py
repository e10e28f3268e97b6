from __future__ import annotations

import io
import logging

import pytest

from viewmatch.log import configure_logging, parse_level


def test_configure_logging_replaces_handler() -> None:
    first = io.StringIO()
    second = io.StringIO()
    configure_logging("info", stream=first)
    logger = configure_logging("debug", stream=second)
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG

    logging.getLogger("viewmatch.driver").debug("hello %d", 3)
    assert first.getvalue() == ""
    assert "DEBUG viewmatch.driver: hello 3" in second.getvalue()


def test_level_filters_records() -> None:
    stream = io.StringIO()
    configure_logging("warning", stream=stream)
    logging.getLogger("viewmatch.calibration").info("quiet")
    logging.getLogger("viewmatch.calibration").warning("loud")
    assert "quiet" not in stream.getvalue()
    assert "loud" in stream.getvalue()


def test_parse_level() -> None:
    assert parse_level("INFO") == logging.INFO
    assert parse_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError):
        parse_level("verbose")
