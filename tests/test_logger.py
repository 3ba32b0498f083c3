import io

import pytest

from refinery.config import MockConfig
from refinery.logger import (
    Level,
    MockLogger,
    MockLoggerEvent,
    NullLogger,
    NullLoggerEntry,
    StdlibLogger,
    get_logger_implementation,
    parse_level,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("debug", Level.DEBUG),
        ("INFO", Level.INFO),
        (" warn ", Level.WARN),
        ("warning", Level.WARN),
        ("error", Level.ERROR),
        ("panic", Level.PANIC),
    ],
)
def test_parse_level(name, expected):
    assert parse_level(name) is expected


def test_parse_level_rejects_unknown():
    with pytest.raises(ValueError, match="unrecognized logging level: loud"):
        parse_level("loud")


def test_parsed_levels_are_ordered():
    assert (
        parse_level("debug")
        < parse_level("info")
        < parse_level("warn")
        < parse_level("error")
        < parse_level("panic")
    )


def test_null_logger_discards():
    logger = NullLogger()
    entry = logger.debug().with_field("a", 1).with_fields({"b": 2}).with_string("c", "d")
    assert isinstance(entry, NullLoggerEntry)
    assert entry is logger.error()
    assert entry.logf("ignored %s", "x") is None


def test_mock_logger_records_events():
    logger = MockLogger()
    logger.debug().with_field("a", 1).logf("hello %s", "world")
    logger.info().with_fields({"b": 2}).logf("plain")
    logger.error().with_string("c", "d").logf("value %v", 3)
    assert len(logger.events) == 3
    assert logger.events[0].fields == {"a": 1, "debug": "hello world"}
    assert logger.events[1].fields == {"b": 2, "info": "plain"}
    assert logger.events[2].fields == {"c": "d", "error": "value 3"}


def test_mock_logger_event_with_string_returns_same_event():
    logger = MockLogger()
    event = logger.info()
    assert event.with_string("k", "v") is event
    assert event.fields == {"k": "v"}


def test_mock_logger_event_rejects_unexpected_level():
    logger = MockLogger()
    event = MockLoggerEvent(logger, Level.WARN)
    with pytest.raises(RuntimeError):
        event.logf("nope")
    assert logger.events == []


def test_mock_logger_set_level_is_noop():
    logger = MockLogger()
    logger.set_level("error")
    logger.debug().logf("still recorded")
    assert logger.events[0].fields["debug"] == "still recorded"


def test_stdlib_logger_writes_message_and_fields():
    stream = io.StringIO()
    logger = StdlibLogger(stream=stream)
    logger.set_level("debug")
    logger.start()
    logger.debug().with_field("a", 1).logf("hello %s", "there")
    output = stream.getvalue()
    assert "hello there" in output
    assert "a=1" in output


def test_stdlib_logger_respects_level():
    stream = io.StringIO()
    logger = StdlibLogger(stream=stream)
    logger.set_level("warn")
    logger.start()
    assert isinstance(logger.debug(), NullLoggerEntry)
    assert isinstance(logger.info(), NullLoggerEntry)
    logger.info().logf("hidden")
    logger.error().logf("shown")
    output = stream.getvalue()
    assert "hidden" not in output
    assert "shown" in output


def test_stdlib_logger_level_change_after_start():
    stream = io.StringIO()
    logger = StdlibLogger(stream=stream)
    logger.start()
    assert isinstance(logger.debug(), NullLoggerEntry)
    logger.set_level("debug")
    logger.debug().logf("now visible")
    assert "now visible" in stream.getvalue()


def test_stdlib_entries_are_immutable():
    stream = io.StringIO()
    logger = StdlibLogger(stream=stream)
    logger.start()
    base = logger.info()
    extended = base.with_field("k", "v")
    assert base.fields == {}
    assert extended.fields == {"k": "v"}


def test_stdlib_logger_requires_start():
    with pytest.raises(RuntimeError):
        StdlibLogger().info()


def test_stdlib_logger_rejects_bad_level():
    with pytest.raises(ValueError):
        StdlibLogger().set_level("shouting")


def test_get_logger_implementation():
    config = MockConfig(logger_type="logrus")
    logger = get_logger_implementation(config)
    assert isinstance(logger, StdlibLogger)
    assert logger.config is config


def test_get_logger_implementation_unknown_type():
    with pytest.raises(ValueError, match="unknown logger type"):
        get_logger_implementation(MockConfig(logger_type="carrier-pigeon"))


def test_get_logger_implementation_propagates_config_error():
    config = MockConfig(logger_type_error=KeyError("missing"))
    with pytest.raises(KeyError):
        get_logger_implementation(config)