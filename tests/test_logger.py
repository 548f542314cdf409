from datetime import datetime

import pytest

from flute import logger
from flute.logger import LogLevel


@pytest.fixture
def records():
    captured = []
    previous_level = logger.get_log_level()
    previous = logger.set_log_callback(captured.append)
    yield captured
    logger.set_log_callback(previous)
    logger.set_log_level(previous_level)


def test_default_level_is_trace():
    assert logger.get_log_level() == LogLevel.TRACE


def test_format_record_without_function():
    when = datetime(2020, 1, 2, 3, 4, 5, 678000)
    text = logger.format_record(LogLevel.INFO, "hello", "/src/flute/File.cc", 10, "", when)
    assert text == "2020-01-02 03:04:05,678 [INFO]  - hello - File.cc:10\n"


def test_format_record_with_function_pads_milliseconds():
    when = datetime(2020, 1, 2, 3, 4, 5, 7000)
    text = logger.format_record(LogLevel.ERROR, "boom", "main.cc", 3, "run", when)
    assert text == "2020-01-02 03:04:05,007 [ERROR] - boom - main.cc:3 function(run)\n"


@pytest.mark.parametrize(
    "level, tag",
    [
        (LogLevel.TRACE, "[TRACE]"),
        (LogLevel.DEBUG, "[DEBUG]"),
        (LogLevel.INFO, "[INFO] "),
        (LogLevel.WARN, "[WARN] "),
        (LogLevel.ERROR, "[ERROR]"),
        (LogLevel.FATAL, "[FATAL]"),
    ],
)
def test_format_record_tags(level, tag):
    text = logger.format_record(level, "m", "f.cc", 1)
    assert f" {tag} - m - f.cc:1\n" in text


def test_log_passes_record_to_callback(records):
    logger.log(LogLevel.WARN, "message", "a/b/c.py", 7, "func")
    assert len(records) == 1
    assert records[0].endswith(" - message - c.py:7 function(func)\n")


def test_debug_filtered_below_threshold(records):
    logger.set_log_level(LogLevel.INFO)
    logger.debug("hidden")
    logger.info("shown")
    assert len(records) == 1
    assert "shown" in records[0]


def test_info_and_above_ignore_threshold(records):
    logger.set_log_level(LogLevel.FATAL)
    logger.info("i")
    logger.warn("w")
    logger.error("e")
    assert len(records) == 3


def test_debug_records_caller_location(records):
    logger.debug("here")
    assert "test_logger.py:" in records[0]
    assert "[DEBUG]" in records[0]


def test_none_callback_silences(records):
    previous = logger.set_log_callback(None)
    logger.info("dropped")
    assert previous == records.append
    assert records == []


def test_default_sink_is_stdout(capsys):
    logger.info("to stdout")
    out = capsys.readouterr().out
    assert "to stdout" in out
    assert "[INFO] " in out


def test_check_not_null_returns_value(records):
    assert logger.check_not_null(5, "value") == 5
    assert records == []


def test_check_not_null_raises_and_logs(records):
    with pytest.raises(ValueError):
        logger.check_not_null(None, "ptr")
    assert "'ptr' Must be non NULL" in records[0]
    assert "[FATAL]" in records[0]