"""Configuration values and an in-memory configuration for tests and tools."""

from __future__ import annotations

import dataclasses
import json
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable


@dataclass
class InMemoryCollectorCacheCapacity:
    """Sizing for the in-memory trace collector."""

    cache_capacity: int = 0
    max_alloc: int = 0


def _normalise(name: str) -> str:
    return name.replace("_", "").lower()


def _populate(target: Any, data: Any) -> None:
    """Fill ``target`` from decoded JSON, matching keys case-insensitively."""
    if isinstance(target, dict):
        if not isinstance(data, dict):
            raise ValueError("other config must be a JSON object to fill a mapping")
        target.update(data)
        return
    if not isinstance(data, dict):
        raise ValueError("other config must be a JSON object to fill a structure")
    if dataclasses.is_dataclass(target):
        names = [f.name for f in dataclasses.fields(target)]
    else:
        names = list(vars(target))
    lookup = {_normalise(n): n for n in names}
    for key, value in data.items():
        attribute = lookup.get(_normalise(key))
        if attribute is not None:
            setattr(target, attribute, value)


@dataclass
class MockConfig:
    """A configuration that answers with whatever values it was built with.

    Each ``*_error`` field, when set, is raised by the matching getter instead
    of returning the value.
    """

    callbacks: list[Callable[[], None]] = field(default_factory=list)
    api_keys: list[str] = field(default_factory=list)
    api_keys_error: Exception | None = None
    collector_type: str = ""
    collector_type_error: Exception | None = None
    in_memory_collector_cache_capacity: InMemoryCollectorCacheCapacity = field(
        default_factory=InMemoryCollectorCacheCapacity
    )
    in_memory_collector_cache_capacity_error: Exception | None = None
    honeycomb_api: str = ""
    honeycomb_api_error: Exception | None = None
    listen_addr: str = ""
    listen_addr_error: Exception | None = None
    peer_listen_addr: str = ""
    peer_listen_addr_error: Exception | None = None
    compress_peer_communication: bool = False
    grpc_listen_addr: str = ""
    grpc_listen_addr_error: Exception | None = None
    logger_type: str = ""
    logger_type_error: Exception | None = None
    logging_level: str = ""
    logging_level_error: Exception | None = None
    # JSON text describing the structure that get_other_config fills in.
    other_config: str = ""
    other_config_error: Exception | None = None
    peers: list[str] = field(default_factory=list)
    peers_error: Exception | None = None
    redis_host: str = ""
    redis_host_error: Exception | None = None
    redis_username: str = ""
    redis_username_error: Exception | None = None
    redis_password: str = ""
    redis_password_error: Exception | None = None
    use_tls: bool = False
    use_tls_error: Exception | None = None
    use_tls_insecure: bool = False
    use_tls_insecure_error: Exception | None = None
    sampler_config: Any = None
    sampler_config_error: Exception | None = None
    metrics_type: str = ""
    metrics_type_error: Exception | None = None
    send_delay: timedelta = timedelta(0)
    send_delay_error: Exception | None = None
    trace_timeout: timedelta = timedelta(0)
    trace_timeout_error: Exception | None = None
    max_batch_size: int = 0
    upstream_buffer_size: int = 0
    peer_buffer_size: int = 0
    send_ticker: timedelta = timedelta(0)
    identifier_interface_name: str = ""
    use_ipv6_identifier: bool = False
    redis_identifier: str = ""
    peer_management_type: str = ""
    debug_service_addr: str = ""
    dry_run: bool = False
    dry_run_field_name: str = ""
    add_host_metadata_to_trace: bool = False
    environment_cache_ttl: timedelta = timedelta(0)
    dataset_prefix: str = ""

    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def _get(self, name: str) -> Any:
        with self._lock:
            error = getattr(self, f"{name}_error", None)
            if error is not None:
                raise error
            return getattr(self, name)

    def reload_config(self) -> None:
        """Run every registered reload callback."""
        with self._lock:
            callbacks = list(self.callbacks)
        for callback in callbacks:
            callback()

    def register_reload_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self.callbacks.append(callback)

    def get_api_keys(self) -> list[str]:
        return self._get("api_keys")

    def get_collector_type(self) -> str:
        return self._get("collector_type")

    def get_in_mem_collector_cache_capacity(self) -> InMemoryCollectorCacheCapacity:
        return self._get("in_memory_collector_cache_capacity")

    def get_honeycomb_api(self) -> str:
        return self._get("honeycomb_api")

    def get_listen_addr(self) -> str:
        return self._get("listen_addr")

    def get_peer_listen_addr(self) -> str:
        return self._get("peer_listen_addr")

    def get_compress_peer_communication(self) -> bool:
        return self._get("compress_peer_communication")

    def get_grpc_listen_addr(self) -> str:
        return self._get("grpc_listen_addr")

    def get_logger_type(self) -> str:
        return self._get("logger_type")

    def get_logging_level(self) -> str:
        return self._get("logging_level")

    def get_other_config(self, name: str, target: Any) -> Any:
        """Fill ``target`` from the JSON in ``other_config`` and return it."""
        with self._lock:
            try:
                data = json.loads(self.other_config)
            except json.JSONDecodeError as exc:
                raise ValueError(f"invalid config for section {name!r}: {exc}") from exc
            _populate(target, data)
            if self.other_config_error is not None:
                raise self.other_config_error
        return target

    def get_peers(self) -> list[str]:
        return self._get("peers")

    def get_redis_host(self) -> str:
        return self._get("redis_host")

    def get_redis_username(self) -> str:
        return self._get("redis_username")

    def get_redis_password(self) -> str:
        return self._get("redis_password")

    def get_use_tls(self) -> bool:
        return self._get("use_tls")

    def get_use_tls_insecure(self) -> bool:
        return self._get("use_tls_insecure")

    def get_metrics_type(self) -> str:
        return self._get("metrics_type")

    def get_send_delay(self) -> timedelta:
        return self._get("send_delay")

    def get_trace_timeout(self) -> timedelta:
        return self._get("trace_timeout")

    def get_max_batch_size(self) -> int:
        return self._get("max_batch_size")

    def get_sampler_config_for_dataset(self, dataset: str) -> Any:
        """Return the sampler configuration; the same one for every dataset."""
        return self._get("sampler_config")

    def get_upstream_buffer_size(self) -> int:
        return self._get("upstream_buffer_size")

    def get_peer_buffer_size(self) -> int:
        return self._get("peer_buffer_size")

    def get_identifier_interface_name(self) -> str:
        return self._get("identifier_interface_name")

    def get_use_ipv6_identifier(self) -> bool:
        return self._get("use_ipv6_identifier")

    def get_redis_identifier(self) -> str:
        return self._get("redis_identifier")

    def get_send_ticker_value(self) -> timedelta:
        return self._get("send_ticker")

    def get_peer_management_type(self) -> str:
        return self._get("peer_management_type")

    def get_debug_service_addr(self) -> str:
        return self._get("debug_service_addr")

    def get_is_dry_run(self) -> bool:
        return self._get("dry_run")

    def get_dry_run_field_name(self) -> str:
        return self._get("dry_run_field_name")

    def get_add_host_metadata_to_trace(self) -> bool:
        return self._get("add_host_metadata_to_trace")

    def get_environment_cache_ttl(self) -> timedelta:
        return self._get("environment_cache_ttl")

    def get_dataset_prefix(self) -> str:
        return self._get("dataset_prefix")