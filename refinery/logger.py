"""Logging front end: levelled entries carrying structured fields."""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import IO, Any, Mapping


class Level(IntEnum):
    """Logging verbosity, from most to least verbose."""

    UNKNOWN = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    PANIC = 5


_LEVEL_NAMES = {
    "debug": Level.DEBUG,
    "info": Level.INFO,
    "warn": Level.WARN,
    "warning": Level.WARN,
    "error": Level.ERROR,
    "panic": Level.PANIC,
}

_STDLIB_LEVELS = {
    Level.UNKNOWN: logging.NOTSET,
    Level.DEBUG: logging.DEBUG,
    Level.INFO: logging.INFO,
    Level.WARN: logging.WARNING,
    Level.ERROR: logging.ERROR,
    Level.PANIC: logging.CRITICAL,
}


def parse_level(level: str) -> Level:
    """Turn a level name such as ``"info"`` or ``" Warning "`` into a Level."""
    try:
        return _LEVEL_NAMES[level.strip().lower()]
    except KeyError:
        raise ValueError(f"unrecognized logging level: {level}") from None


def _sprintf(fmt: str, args: tuple[Any, ...]) -> str:
    text = fmt.replace("%+v", "%s").replace("%v", "%s")
    if not args:
        return text.replace("%%", "%")
    return text % args


class Entry(ABC):
    """A log line being built up; fields are added, then it is written."""

    @abstractmethod
    def with_field(self, key: str, value: Any) -> Entry:
        """Return an entry carrying ``key`` set to ``value``."""

    def with_string(self, key: str, value: str) -> Entry:
        """Same as with_field, for string values."""
        return self.with_field(key, value)

    @abstractmethod
    def with_fields(self, fields: Mapping[str, Any]) -> Entry:
        """Return an entry carrying every pair in ``fields``."""

    @abstractmethod
    def logf(self, fmt: str, *args: Any) -> None:
        """Format the message and write the entry."""


class Logger(ABC):
    """Hands out entries at a level, or a null entry when the level is off."""

    @abstractmethod
    def debug(self) -> Entry: ...

    @abstractmethod
    def info(self) -> Entry: ...

    @abstractmethod
    def error(self) -> Entry: ...

    @abstractmethod
    def set_level(self, level: str) -> None:
        """Set the verbosity by name (debug, info, warn, error)."""


class NullLoggerEntry(Entry):
    """An entry that discards everything."""

    def with_field(self, key: str, value: Any) -> Entry:
        return self

    def with_string(self, key: str, value: str) -> Entry:
        return self

    def with_fields(self, fields: Mapping[str, Any]) -> Entry:
        return self

    def logf(self, fmt: str, *args: Any) -> None:
        return None


NULL_ENTRY = NullLoggerEntry()


class NullLogger(Logger):
    """A logger that discards everything."""

    def debug(self) -> Entry:
        return NULL_ENTRY

    def info(self) -> Entry:
        return NULL_ENTRY

    def error(self) -> Entry:
        return NULL_ENTRY

    def set_level(self, level: str) -> None:
        return None


@dataclass(eq=False)
class MockLoggerEvent(Entry):
    """An entry that records itself on its logger once written."""

    logger: MockLogger
    level: Level
    fields: dict[str, Any] = field(default_factory=dict)

    def with_field(self, key: str, value: Any) -> Entry:
        self.fields[key] = value
        return self

    def with_string(self, key: str, value: str) -> Entry:
        return self.with_field(key, value)

    def with_fields(self, fields: Mapping[str, Any]) -> Entry:
        self.fields.update(fields)
        return self

    def logf(self, fmt: str, *args: Any) -> None:
        message = _sprintf(fmt, args)
        if self.level is Level.DEBUG:
            self.with_field("debug", message)
        elif self.level is Level.INFO:
            self.with_field("info", message)
        elif self.level is Level.ERROR:
            self.with_field("error", message)
        else:
            raise RuntimeError("unexpected log level")
        self.logger.events.append(self)


@dataclass
class MockLogger(Logger):
    """A logger that keeps every written entry in ``events``."""

    events: list[MockLoggerEvent] = field(default_factory=list)

    def debug(self) -> Entry:
        return MockLoggerEvent(self, Level.DEBUG)

    def info(self) -> Entry:
        return MockLoggerEvent(self, Level.INFO)

    def error(self) -> Entry:
        return MockLoggerEvent(self, Level.ERROR)

    def set_level(self, level: str) -> None:
        return None


class StdlibEntry(Entry):
    """An immutable entry written through a standard library logger."""

    def __init__(
        self,
        logger: logging.Logger,
        level: Level,
        fields: Mapping[str, Any] | None = None,
    ) -> None:
        self._logger = logger
        self.level = level
        self.fields: dict[str, Any] = dict(fields or {})

    def with_field(self, key: str, value: Any) -> Entry:
        return StdlibEntry(self._logger, self.level, {**self.fields, key: value})

    def with_string(self, key: str, value: str) -> Entry:
        return self.with_field(key, value)

    def with_fields(self, fields: Mapping[str, Any]) -> Entry:
        return StdlibEntry(self._logger, self.level, {**self.fields, **fields})

    def logf(self, fmt: str, *args: Any) -> None:
        message = _sprintf(fmt, args)
        if self.fields:
            pairs = " ".join(f"{key}={self.fields[key]}" for key in sorted(self.fields))
            message = f"{message} {pairs}"
        if self.level is Level.DEBUG:
            self._logger.debug(message)
        elif self.level is Level.INFO:
            self._logger.info(message)
        else:
            self._logger.error(message)


class StdlibLogger(Logger):
    """A logger writing formatted lines to a stream, stdout by default."""

    def __init__(self, config: Any = None, stream: IO[str] | None = None) -> None:
        self.config = config
        self._stream = stream
        self._level = Level.INFO
        self._logger: logging.Logger | None = None

    def start(self) -> None:
        """Create the underlying logger at the chosen level."""
        logger = logging.Logger("refinery")
        handler = logging.StreamHandler(self._stream if self._stream is not None else sys.stdout)
        handler.setFormatter(
            logging.Formatter('time="%(asctime)s" level=%(levelname)s msg=%(message)s')
        )
        logger.addHandler(handler)
        logger.setLevel(_STDLIB_LEVELS[self._level])
        self._logger = logger

    def _entry(self, level: Level) -> Entry:
        if self._logger is None:
            raise RuntimeError("logger has not been started")
        if self._level > level:
            return NULL_ENTRY
        return StdlibEntry(self._logger, level)

    def debug(self) -> Entry:
        return self._entry(Level.DEBUG)

    def info(self) -> Entry:
        return self._entry(Level.INFO)

    def error(self) -> Entry:
        return self._entry(Level.ERROR)

    def set_level(self, level: str) -> None:
        self._level = parse_level(level)
        if self._logger is not None:
            self._logger.setLevel(_STDLIB_LEVELS[self._level])


def get_logger_implementation(config: Any) -> Logger:
    """Build the logger named by the configuration's logger type."""
    logger_type = config.get_logger_type()
    if logger_type in ("logrus", "stdlib"):
        return StdlibLogger(config=config)
    raise ValueError(f"unknown logger type {logger_type}")