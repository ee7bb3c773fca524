"""
Tests for ExplorerRuntime: both loops start, rebuild and preload run, shutdown joins cleanly.
"""

from __future__ import annotations

import time

import pytest

from conftest import FakeNode
from signum_explorer.config import Settings
from signum_explorer.core.exceptions import ShutdownError
from signum_explorer.runtime import ExplorerRuntime

NODE = "https://node.example"


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def node():
    return FakeNode(
        {
            "getBlockchainStatus": {"numberOfBlocks": 100, "lastBlock": "1", "time": 1, "version": "v3.8.0"},
            "getAccount": lambda params: {"account": params["account"], "accountRS": "S-BIG1-AAAA-BBBB-CCCCC", "name": "Pool"},
            "getAccountTransactions": {"transactions": []},
            "getAccountBlocks": {"blocks": []},
        }
    )


def _settings(**kwargs) -> Settings:
    defaults = dict(
        api_hosts=[NODE],
        rebuild_period_sec=0.05,
        notifier_period_sec=0.05,
        cache_ttl_sec=0.01,
        shuffle_head_ratio=0.0,
    )
    defaults.update(kwargs)
    return Settings(**defaults)


def test_runtime_starts_rebuilds_and_stops(store, mock_nodes, node):
    nodes = mock_nodes({NODE: node})
    store.add_account(store.add_user(42, "alice"), "1000", "S-SELF-1111-2222-33333", notify_incoming=True)
    runtime = ExplorerRuntime(
        _settings(preload_big_wallet_names=True, big_wallet_accounts=["5555"]),
        store,
        transport=nodes.transport,
    )
    runtime.start()
    try:
        assert _wait_until(lambda: len(node.of_type("getBlockchainStatus")) >= 2)
        assert _wait_until(lambda: len(node.of_type("getAccountTransactions")) >= 2)
        assert runtime.client.get_account_name("5555") == "Pool"
        assert runtime.notifier.counter >= 1
        assert runtime.running
        assert not runtime.finished()
    finally:
        runtime.stop(timeout=5)

    assert not runtime.running
    assert not runtime.notifier_running
    assert runtime.finished()
    assert runtime.wait(0) is True
    with pytest.raises(ShutdownError):
        runtime.client.get_account("1000")


def test_runtime_cannot_start_twice(store, mock_nodes, node):
    nodes = mock_nodes({NODE: node})
    runtime = ExplorerRuntime(_settings(), store, transport=nodes.transport)
    runtime.start()
    try:
        with pytest.raises(RuntimeError):
            runtime.start()
    finally:
        runtime.stop(timeout=5)


def test_rebuild_failure_does_not_kill_rebuilder(store, mock_nodes):
    nodes = mock_nodes({NODE: FakeNode({})})
    runtime = ExplorerRuntime(_settings(), store, transport=nodes.transport)
    assert runtime.rebuild_once() is False
    assert runtime.client.pool.hosts == [NODE]
