"""Group membership kept in Redis as expiring keys."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import redis

GLOBAL_PREFIX = "refinery"
DEFAULT_REPEAT_COUNT = 2
# How long to keep scanning for members before giving up.
SCAN_TIMEOUT = timedelta(seconds=5)
SCAN_COUNT = 10

_SEPARATOR = "•"

log = logging.getLogger(__name__)


class MembershipError(Exception):
    """Raised when membership cannot be used or queried."""


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


@dataclass
class RedisMembership:
    """Registers members of a group and lists the ones that have not expired.

    ``client`` is a Redis client offering ``set`` and ``scan``.
    ``repeat_count`` is how many times the member list is fetched and merged,
    since a Redis scan only gives limited guarantees; 0 means the default.
    """

    prefix: str = ""
    client: Any = None
    repeat_count: int = 0

    def _validate_defaults(self) -> None:
        if self.repeat_count == 0:
            self.repeat_count = DEFAULT_REPEAT_COUNT
        if self.client is None:
            raise MembershipError("can't use RedisMembership without a Redis client")

    def _key(self, member_name: str) -> str:
        return _SEPARATOR.join((GLOBAL_PREFIX, self.prefix, member_name))

    def register(self, member_name: str, timeout: timedelta | float) -> None:
        """Add ``member_name`` to the group for ``timeout`` (whole seconds)."""
        self._validate_defaults()
        seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else timeout
        timeout_sec = int(seconds)
        try:
            self.client.set(self._key(member_name), "present", ex=timeout_sec)
        except redis.RedisError as exc:
            log.error(
                "registration failed name=%s timeoutSec=%d err=%s",
                member_name,
                timeout_sec,
                exc,
            )
            raise

    def get_members(self) -> list[str]:
        """Return the sorted union of several fetches of the current members."""
        self._validate_defaults()
        all_members: list[str] = []
        for _ in range(self.repeat_count):
            all_members.extend(self._get_members_once())
        return sorted(set(all_members) - {""})

    def _get_members_once(self) -> list[str]:
        pattern = _SEPARATOR.join((GLOBAL_PREFIX, self.prefix, "*"))
        keys, error = self._scan(pattern, SCAN_COUNT, SCAN_TIMEOUT)
        members = [key.split(_SEPARATOR)[2] for key in keys if key.count(_SEPARATOR) >= 2]
        if error is not None:
            log.error(
                "redis scan encountered an error keys_returned=%d timeoutSec=%s err=%s",
                len(members),
                SCAN_TIMEOUT.total_seconds(),
                error,
            )
        return members

    def _scan(
        self, pattern: str, count: int, timeout: timedelta
    ) -> tuple[list[str], Exception | None]:
        """Walk a full SCAN, returning the keys seen and any error that stopped it."""
        keys: list[str] = []
        cursor: Any = 0
        stop_at = time.monotonic() + timeout.total_seconds()
        while True:
            if time.monotonic() > stop_at:
                return keys, MembershipError("redis scan timeout")
            try:
                reply = self.client.scan(cursor=cursor, match=pattern, count=count)
            except redis.RedisError as exc:
                return keys, exc
            try:
                cursor, batch = reply
                cursor = int(cursor)
            except (TypeError, ValueError):
                return keys, MembershipError("unexpected response format from redis")
            keys.extend(_decode(key) for key in batch or ())
            if cursor == 0:
                return keys, None