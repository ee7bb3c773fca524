"""
Tests for settings loaded from the environment.
"""

from __future__ import annotations

import pytest

from signum_explorer.config import Settings, get_settings
from signum_explorer.config.settings import DEFAULT_API_HOSTS, DEFAULT_FAUCET_ACCOUNT
from signum_explorer.core.exceptions import ConfigError

ENV_VARS = (
    "SIGNUM_API_HOSTS",
    "CACHE_TTL_SEC",
    "NOTIFIER_PERIOD_SEC",
    "NOTIFIER_BLOCK_TICK_RATIO",
    "PRELOAD_BIG_WALLET_NAMES",
    "BIG_WALLET_ACCOUNTS",
    "SHUFFLE_HEAD_RATIO",
    "POOL_RANDOM_SEED",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr("signum_explorer.config.settings.load_explorer_env", lambda: False)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = get_settings()
    assert settings.api_hosts == DEFAULT_API_HOSTS
    assert settings.cache_ttl_sec == 180
    assert settings.notifier_period_sec == 240
    assert settings.notifier_block_tick_ratio == 3
    assert settings.rebuild_period_sec == 1800
    assert settings.faucet_account == DEFAULT_FAUCET_ACCOUNT
    assert settings.preload_big_wallet_names is False
    assert settings.shuffle_head_ratio == 0.5
    assert settings.random_seed is None
    assert settings.database_url.startswith("sqlite:///")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SIGNUM_API_HOSTS", " https://a.example/ , ,https://b.example")
    monkeypatch.setenv("CACHE_TTL_SEC", "30")
    monkeypatch.setenv("NOTIFIER_BLOCK_TICK_RATIO", "5")
    monkeypatch.setenv("PRELOAD_BIG_WALLET_NAMES", "yes")
    monkeypatch.setenv("BIG_WALLET_ACCOUNTS", "S-AAAA-BBBB-CCCC-DDDDD,123")
    monkeypatch.setenv("POOL_RANDOM_SEED", "7")
    settings = get_settings()
    assert settings.api_hosts == ["https://a.example", "https://b.example"]
    assert settings.cache_ttl_sec == 30
    assert settings.notifier_block_tick_ratio == 5
    assert settings.preload_big_wallet_names is True
    assert settings.big_wallet_accounts == ["S-AAAA-BBBB-CCCC-DDDDD", "123"]
    assert settings.random_seed == 7


@pytest.mark.parametrize(
    "name,value",
    [
        ("CACHE_TTL_SEC", "soon"),
        ("CACHE_TTL_SEC", "-1"),
        ("NOTIFIER_BLOCK_TICK_RATIO", "0"),
        ("PRELOAD_BIG_WALLET_NAMES", "maybe"),
        ("SHUFFLE_HEAD_RATIO", "1.5"),
        ("SIGNUM_API_HOSTS", " , "),
    ],
)
def test_invalid_values_raise_config_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError):
        get_settings()


def test_settings_validate_directly():
    with pytest.raises(ConfigError):
        Settings(api_hosts=[])
    assert Settings(api_hosts=["https://x.example/"]).api_hosts == ["https://x.example"]
