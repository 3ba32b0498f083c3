"""The set of peers in a cluster, from the config file or from Redis."""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
from datetime import timedelta
from typing import Any, Callable

import psutil
import redis
from redis.backoff import ConstantBackoff
from redis.retry import Retry

from refinery.redimem import RedisMembership

# How often this host re-registers itself and re-reads the peer list. About
# three refreshes fit in one entry timeout, so a couple can fail safely.
REFRESH_CACHE_INTERVAL = 3.0
# How long Redis keeps a peer that stops checking in.
PEER_ENTRY_TIMEOUT = timedelta(seconds=10)

DEFAULT_REDIS_HOST = "localhost:6379"

log = logging.getLogger(__name__)


class PeerError(Exception):
    """Raised when the peer set cannot be built."""


def _quiet(getter: Callable[[], Any], default: Any) -> Any:
    try:
        return getter()
    except Exception:
        return default


def _split_host_port(address: str) -> tuple[str, str]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise PeerError(f"missing ']' in address {address!r}")
        if address[end + 1:end + 2] != ":":
            raise PeerError(f"missing port in address {address!r}")
        return address[1:end], address[end + 2:]
    host, sep, port = address.rpartition(":")
    if not sep:
        raise PeerError(f"missing port in address {address!r}")
    if ":" in host:
        raise PeerError(f"too many colons in address {address!r}")
    return host, port


def _parse_ip(text: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    bare = text.split("/", 1)[0].split("%", 1)[0]
    try:
        return ipaddress.ip_address(bare)
    except ValueError:
        return None


class FilePeers:
    """Peers listed in the configuration file; never reloaded."""

    def __init__(self, config: Any) -> None:
        self._config = config
        self.callbacks: list[Callable[[], None]] = []

    def get_peers(self) -> list[str]:
        return list(self._config.get_peers())

    def register_updated_peers_callback(self, callback: Callable[[], None]) -> None:
        """Keep the callback; file peers never change, so it is never run."""
        self.callbacks.append(callback)


def build_connection_kwargs(config: Any) -> dict[str, Any]:
    """Keyword arguments for a Redis client, taken from the configuration."""
    kwargs: dict[str, Any] = {
        "socket_timeout": 1.0,
        "socket_connect_timeout": 1.0,
        "db": 0,
    }
    username = _quiet(config.get_redis_username, "")
    if username:
        kwargs["username"] = username
    password = _quiet(config.get_redis_password, "")
    if password:
        kwargs["password"] = password
    use_tls = _quiet(config.get_use_tls, False)
    tls_insecure = _quiet(config.get_use_tls_insecure, False)
    if use_tls:
        kwargs["ssl"] = True
        if tls_insecure:
            kwargs["ssl_cert_reqs"] = "none"
    return kwargs


def public_addr(config: Any) -> str:
    """The URL other peers use to reach this host's peer listener."""
    listen_addr = _quiet(config.get_peer_listen_addr, "")
    _, port = _split_host_port(listen_addr)

    identifier = socket.gethostname()
    interface_name = _quiet(config.get_identifier_interface_name, "")
    if interface_name:
        addresses = psutil.net_if_addrs().get(interface_name)
        if addresses is None:
            log.error(
                "IdentifierInterfaceName set but couldn't find interface by that name "
                "interface=%s",
                interface_name,
            )
            raise PeerError(f"no such network interface: {interface_name}")
        use_ipv6 = _quiet(config.get_use_ipv6_identifier, False)
        chosen = ""
        for entry in addresses:
            ip = _parse_ip(entry.address)
            if ip is None:
                continue
            if use_ipv6:
                chosen = f"[{ip}]"
                break
            if ip.version == 4:
                chosen = str(ip)
                break
        if not chosen:
            raise PeerError("could not find a valid IP to use from interface")
        identifier = chosen
        log.info(
            "using identifier from interface identifier=%s interface=%s",
            identifier,
            interface_name,
        )

    redis_identifier = _quiet(config.get_redis_identifier, "")
    if redis_identifier:
        identifier = redis_identifier
        log.info("using specific identifier from config identifier=%s", identifier)

    return f"http://{identifier}:{port}"


def _make_client(config: Any) -> Any:
    address = _quiet(config.get_redis_host, "") or DEFAULT_REDIS_HOST
    host, port = _split_host_port(address)
    try:
        port_number = int(port)
    except ValueError:
        raise PeerError(f"invalid redis port in {address!r}") from None
    # Redis may still be starting; keep retrying the connection for ~10 seconds.
    return redis.Redis(
        host=host,
        port=port_number,
        retry=Retry(ConstantBackoff(1), 10),
        retry_on_error=[redis.ConnectionError, redis.TimeoutError],
        **build_connection_kwargs(config),
    )


class RedisPeers:
    """Peers that register themselves in Redis and watch the shared list.

    Background threads keep this host registered and refresh the peer list;
    call ``stop`` to end them.
    """

    def __init__(
        self,
        config: Any,
        client: Any = None,
        refresh_interval: float = REFRESH_CACHE_INTERVAL,
    ) -> None:
        self._config = config
        if client is None:
            client = _make_client(config)
        self.address = public_addr(config)
        self.store = RedisMembership(prefix="refinery", client=client)
        self._peers: list[str] = [""]
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._interval = refresh_interval
        self._stopping = threading.Event()

        try:
            self.store.register(self.address, PEER_ENTRY_TIMEOUT)
        except Exception:
            log.error("failed to register self with peer store")
            raise

        self._threads = [
            threading.Thread(target=self._register_self, daemon=True),
        ]
        self._threads[0].start()
        self.update_peer_list_once()
        watcher = threading.Thread(target=self._watch_peers, daemon=True)
        self._threads.append(watcher)
        watcher.start()

    def get_peers(self) -> list[str]:
        with self._lock:
            return list(self._peers)

    def register_updated_peers_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` in its own thread whenever the peer list changes."""
        with self._lock:
            self._callbacks.append(callback)

    def update_peer_list_once(self) -> None:
        """Fetch the member list and store it; keep the old list on failure."""
        try:
            current = self.store.get_members()
        except Exception:
            return
        with self._lock:
            self._peers = sorted(current)

    def stop(self) -> None:
        """Stop the background registration and watch threads."""
        self._stopping.set()
        for thread in self._threads:
            thread.join(timeout=5)

    def _register_self(self) -> None:
        while not self._stopping.wait(self._interval):
            try:
                self.store.register(self.address, PEER_ENTRY_TIMEOUT)
            except Exception as exc:
                log.debug("re-registering with peer store failed: %s", exc)

    def _watch_peers(self) -> None:
        with self._lock:
            old = sorted(self._peers)
        while not self._stopping.wait(self._interval):
            try:
                current = sorted(self.store.get_members())
            except Exception:
                continue
            if current == old:
                continue
            with self._lock:
                self._peers = current
                callbacks = list(self._callbacks)
            old = current
            for callback in callbacks:
                threading.Thread(target=callback, daemon=True).start()


def new_peers(config: Any) -> FilePeers | RedisPeers:
    """Build the peer set named by the configuration's peer management type."""
    management_type = config.get_peer_management_type()
    if management_type == "file":
        return FilePeers(config)
    if management_type == "redis":
        return RedisPeers(config)
    raise PeerError("Invalid PeerManagement Type")