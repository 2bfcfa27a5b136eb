from __future__ import annotations

import hashlib
import socket
from collections import namedtuple

import psutil
import pytest

from keygen.core import node_id as node_id_module
from keygen.core.const import MAXIMUM_NODE_ID
from keygen.core.exceptions import ConfigurationError
from keygen.core.node_id import hardware_addresses, node_id_from_addresses, random_node_id, resolve_node_id
from keygen.core.snowflake import SnowflakeGenerator
from tests.conftest import EPOCH, FakeClock

Snic = namedtuple("Snic", ["family", "address", "netmask", "broadcast", "ptp"])


def _link(address: str) -> Snic:
    return Snic(psutil.AF_LINK, address, None, None, None)


def _inet(address: str) -> Snic:
    return Snic(socket.AF_INET, address, "255.255.255.0", None, None)


FAKE_INTERFACES = {
    "lo": [_inet("127.0.0.1"), _link("00:00:00:00:00:00")],
    "eth0": [_inet("10.0.0.5"), _link("02:42:ac:11:00:02")],
    "wlan0": [_link("a4-5e-60-e8-1b-3f")],
}


def test_hardware_addresses_skips_loopback_and_non_link_entries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "net_if_addrs", lambda: FAKE_INTERFACES)

    assert hardware_addresses() == ["0242AC110002", "A45E60E81B3F"]


def test_node_id_from_addresses_is_stable_and_masked() -> None:
    addresses = ["0242AC110002", "A45E60E81B3F"]
    expected = int.from_bytes(hashlib.sha256(b"0242AC110002A45E60E81B3F").digest(), "big") & MAXIMUM_NODE_ID

    assert node_id_from_addresses(addresses) == expected
    assert node_id_from_addresses(list(addresses)) == expected
    assert 0 <= expected <= MAXIMUM_NODE_ID


def test_node_id_from_no_addresses_is_none() -> None:
    assert node_id_from_addresses([]) is None


def test_random_node_id_in_range() -> None:
    for _ in range(200):
        assert 0 <= random_node_id() <= MAXIMUM_NODE_ID


def test_resolve_uses_hardware_addresses(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "net_if_addrs", lambda: FAKE_INTERFACES)

    assert resolve_node_id() == node_id_from_addresses(["0242AC110002", "A45E60E81B3F"])


@pytest.mark.parametrize("error", [OSError("no netlink"), RuntimeError("unsupported"), psutil.AccessDenied()])
def test_resolve_falls_back_to_random_on_enumeration_failure(monkeypatch: pytest.MonkeyPatch, error: Exception) -> None:
    def failing():
        raise error

    monkeypatch.setattr(psutil, "net_if_addrs", failing)
    monkeypatch.setattr(node_id_module, "random_node_id", lambda: 777)

    assert resolve_node_id() == 777


def test_resolve_falls_back_to_random_without_addresses(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "net_if_addrs", lambda: {"lo": [_link("00:00:00:00:00:00")]})
    monkeypatch.setattr(node_id_module, "random_node_id", lambda: 3)

    assert resolve_node_id() == 3


def test_resolve_override_skips_enumeration(monkeypatch: pytest.MonkeyPatch) -> None:
    def unexpected():
        raise AssertionError("hardware enumeration should not run")

    monkeypatch.setattr(psutil, "net_if_addrs", unexpected)

    assert resolve_node_id(12) == 12


def test_generator_node_id_in_range_when_enumeration_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing():
        raise OSError("no interfaces")

    monkeypatch.setattr(psutil, "net_if_addrs", failing)

    generator = SnowflakeGenerator(node_id=None, epoch=EPOCH, clock=FakeClock(EPOCH), spin_sleep=0)

    assert 0 <= generator.node_id <= MAXIMUM_NODE_ID


def test_generator_rejects_out_of_range_override() -> None:
    with pytest.raises(ConfigurationError):
        SnowflakeGenerator(node_id=MAXIMUM_NODE_ID + 1, epoch=EPOCH, clock=FakeClock(EPOCH), spin_sleep=0)
