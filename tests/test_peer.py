import fnmatch
import socket
import threading
from collections import namedtuple
from unittest.mock import patch

import pytest

from refinery.config import MockConfig
from refinery.peer import (
    FilePeers,
    PeerError,
    RedisPeers,
    build_connection_kwargs,
    new_peers,
    public_addr,
)

Addr = namedtuple("Addr", "family address")


class FakeRedis:
    def __init__(self):
        self.data = {}

    def set(self, key, value, ex=None):
        self.data[key] = value
        return True

    def scan(self, cursor=0, match=None, count=None):
        keys = sorted(k for k in self.data if match is None or fnmatch.fnmatchcase(k, match))
        return 0, keys


def test_file_peers():
    config = MockConfig(peers=["peer"])
    peers = FilePeers(config)
    assert peers.get_peers() == ["peer"]


def test_new_peers_file():
    peers = new_peers(MockConfig(peer_management_type="file", peers=["a", "b"]))
    assert isinstance(peers, FilePeers)
    assert peers.get_peers() == ["a", "b"]


def test_new_peers_invalid_type():
    with pytest.raises(PeerError, match="Invalid PeerManagement Type"):
        new_peers(MockConfig(peer_management_type="carrier-pigeon"))


def test_new_peers_redis():
    fake = FakeRedis()
    config = MockConfig(
        peer_listen_addr="0.0.0.0:8081",
        peer_management_type="redis",
        redis_identifier="node-a",
    )
    with patch("redis.Redis", return_value=fake) as redis_cls:
        peers = new_peers(config)
    try:
        assert isinstance(peers, RedisPeers)
        assert redis_cls.call_args.kwargs["host"] == "localhost"
        assert redis_cls.call_args.kwargs["port"] == 6379
        assert peers.get_peers() == ["http://node-a:8081"]
    finally:
        peers.stop()


def test_build_connection_kwargs_defaults():
    assert build_connection_kwargs(MockConfig()) == {
        "socket_timeout": 1.0,
        "socket_connect_timeout": 1.0,
        "db": 0,
    }


def test_build_connection_kwargs_credentials_and_tls():
    password = "password"
    config = MockConfig(
        redis_username="user",
        redis_password=password,
        use_tls=True,
        use_tls_insecure=True,
    )
    kwargs = build_connection_kwargs(config)
    assert kwargs["username"] == "user"
    assert kwargs["password"] == password
    assert kwargs["ssl"] is True
    assert kwargs["ssl_cert_reqs"] == "none"


def test_build_connection_kwargs_tls_secure_keeps_checks():
    kwargs = build_connection_kwargs(MockConfig(use_tls=True))
    assert kwargs["ssl"] is True
    assert "ssl_cert_reqs" not in kwargs


def test_public_addr_uses_hostname():
    with patch("socket.gethostname", return_value="node-a"):
        address = public_addr(MockConfig(peer_listen_addr="0.0.0.0:8081"))
    assert address == "http://node-a:8081"


def test_public_addr_redis_identifier_wins():
    config = MockConfig(peer_listen_addr="0.0.0.0:8081", redis_identifier="node-b")
    assert public_addr(config) == "http://node-b:8081"


@pytest.mark.parametrize("listen_addr", ["", "0.0.0.0", "::1:8081"])
def test_public_addr_rejects_bad_listen_addr(listen_addr):
    with pytest.raises(PeerError):
        public_addr(MockConfig(peer_listen_addr=listen_addr))


def test_public_addr_unknown_interface():
    config = MockConfig(peer_listen_addr="0.0.0.0:8081", identifier_interface_name="eth9")
    with patch("psutil.net_if_addrs", return_value={}):
        with pytest.raises(PeerError):
            public_addr(config)


def _interfaces():
    return {
        "eth0": [
            Addr(getattr(socket, "AF_PACKET", 17), "00:00:5e:00:53:01"),
            Addr(socket.AF_INET6, "fe80::1%eth0"),
            Addr(socket.AF_INET, "192.0.2.10"),
        ]
    }


def test_public_addr_from_interface_ipv4():
    config = MockConfig(peer_listen_addr="0.0.0.0:8081", identifier_interface_name="eth0")
    with patch("psutil.net_if_addrs", return_value=_interfaces()):
        assert public_addr(config) == "http://192.0.2.10:8081"


def test_public_addr_from_interface_ipv6():
    config = MockConfig(
        peer_listen_addr="0.0.0.0:8081",
        identifier_interface_name="eth0",
        use_ipv6_identifier=True,
    )
    with patch("psutil.net_if_addrs", return_value=_interfaces()):
        assert public_addr(config) == "http://[fe80::1]:8081"


def test_public_addr_interface_without_ip():
    config = MockConfig(peer_listen_addr="0.0.0.0:8081", identifier_interface_name="eth0")
    only_link = {"eth0": [Addr(17, "00:00:5e:00:53:01")]}
    with patch("psutil.net_if_addrs", return_value=only_link):
        with pytest.raises(PeerError, match="could not find a valid IP"):
            public_addr(config)


def _redis_config():
    return MockConfig(peer_listen_addr="0.0.0.0:8081", redis_identifier="self")


def test_redis_peers_registers_self_and_lists_peers():
    fake = FakeRedis()
    fake.set("refinery•refinery•http://other:8081", "present")
    peers = RedisPeers(_redis_config(), client=fake)
    try:
        assert "refinery•refinery•http://self:8081" in fake.data
        assert peers.get_peers() == ["http://other:8081", "http://self:8081"]
    finally:
        peers.stop()


def test_redis_peers_get_peers_returns_copy():
    peers = RedisPeers(_redis_config(), client=FakeRedis())
    try:
        listed = peers.get_peers()
        listed.append("intruder")
        assert peers.get_peers() == ["http://self:8081"]
    finally:
        peers.stop()


def test_update_peer_list_once_picks_up_new_member():
    fake = FakeRedis()
    peers = RedisPeers(_redis_config(), client=fake)
    try:
        fake.set("refinery•refinery•http://late:8081", "present")
        peers.update_peer_list_once()
        assert peers.get_peers() == ["http://late:8081", "http://self:8081"]
    finally:
        peers.stop()


def test_watch_runs_callbacks_on_change():
    fake = FakeRedis()
    peers = RedisPeers(_redis_config(), client=fake, refresh_interval=0.05)
    changed = threading.Event()
    peers.register_updated_peers_callback(changed.set)
    try:
        fake.set("refinery•refinery•http://new:8081", "present")
        assert changed.wait(5)
        assert peers.get_peers() == ["http://new:8081", "http://self:8081"]
    finally:
        peers.stop()