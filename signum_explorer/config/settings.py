"""
Application settings and environment configuration.

Responsibilities:
- Load configuration from environment variables and .env files.
- Validate required settings and provide defaults for optional ones.
- Expose typed settings (API hosts, cache TTL, timer periods, DB URL, etc.)
  for use across the upstream pool, caches, notifier and runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from signum_explorer.config.env import (
    env_bool,
    env_float,
    env_int,
    env_list,
    env_str,
    load_explorer_env,
)
from signum_explorer.core.exceptions import ConfigError

DEFAULT_API_HOSTS = [
    "https://europe.signum.network",
    "https://brazil.signum.network",
    "https://uk.signum.network",
    "https://australia.signum.network",
    "https://canada.signum.network",
]
DEFAULT_FAUCET_ACCOUNT = "S-8N2F-TDD7-4LY6-64FZ7"
DEFAULT_DATABASE_URL = "sqlite:///signum_explorer.db"

DEFAULT_CACHE_TTL_SEC = 180.0
DEFAULT_REBUILD_PERIOD_SEC = 1800.0
DEFAULT_NOTIFIER_PERIOD_SEC = 240.0
DEFAULT_NOTIFIER_BLOCK_TICK_RATIO = 3  # 4 min * 3 = per 12 min
DEFAULT_REQUEST_TIMEOUT_SEC = 10.0
DEFAULT_TRANSACTIONS_PAGE_SIZE = 100
DEFAULT_SHUFFLE_HEAD_RATIO = 0.5
DEFAULT_CACHE_SWEEP_FACTOR = 10
DEFAULT_OUTBOX_SIZE = 1000


@dataclass
class Settings:
    """
    Typed configuration record.

    api_hosts: Equivalent Signum API nodes; ranked at runtime by the pool.
    cache_ttl_sec: Validity of every cached per-account query result.
    rebuild_period_sec: Interval between upstream re-rankings.
    notifier_period_sec: Interval between notifier ticks.
    notifier_block_tick_ratio: Blocks are checked on every k-th tick.
    faucet_account: RS address whose payments are booked as donations/faucet payouts.
    preload_big_wallet_names: Fetch names of big_wallet_accounts after the first rebuild.
    shuffle_head_ratio: Share of the ranked list that is shuffled per request.
    """

    api_hosts: list[str] = field(default_factory=lambda: list(DEFAULT_API_HOSTS))
    cache_ttl_sec: float = DEFAULT_CACHE_TTL_SEC
    rebuild_period_sec: float = DEFAULT_REBUILD_PERIOD_SEC
    notifier_period_sec: float = DEFAULT_NOTIFIER_PERIOD_SEC
    notifier_block_tick_ratio: int = DEFAULT_NOTIFIER_BLOCK_TICK_RATIO
    faucet_account: str = DEFAULT_FAUCET_ACCOUNT
    preload_big_wallet_names: bool = False
    big_wallet_accounts: list[str] = field(default_factory=list)
    database_url: str = DEFAULT_DATABASE_URL
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    transactions_page_size: int = DEFAULT_TRANSACTIONS_PAGE_SIZE
    shuffle_head_ratio: float = DEFAULT_SHUFFLE_HEAD_RATIO
    random_seed: int | None = None
    cache_sweep_factor: int = DEFAULT_CACHE_SWEEP_FACTOR
    outbox_size: int = DEFAULT_OUTBOX_SIZE

    def __post_init__(self) -> None:
        self.api_hosts = [h.strip().rstrip("/") for h in self.api_hosts if h and h.strip()]
        if not self.api_hosts:
            raise ConfigError("api_hosts must contain at least one host")
        for name in ("cache_ttl_sec", "rebuild_period_sec", "notifier_period_sec", "request_timeout_sec"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.notifier_block_tick_ratio < 1:
            raise ConfigError("notifier_block_tick_ratio must be >= 1")
        if self.transactions_page_size < 1:
            raise ConfigError("transactions_page_size must be >= 1")
        if not (0.0 <= self.shuffle_head_ratio <= 1.0):
            raise ConfigError("shuffle_head_ratio must be between 0 and 1")
        if self.cache_sweep_factor < 1:
            raise ConfigError("cache_sweep_factor must be >= 1")
        if self.outbox_size < 0:
            raise ConfigError("outbox_size must be >= 0")


def get_settings() -> Settings:
    """
    Return the current application settings built from the environment.

    Loads .env first (container environment wins over the file for variables already set).
    Raises ConfigError on malformed values.
    """
    load_explorer_env()
    return Settings(
        api_hosts=env_list("SIGNUM_API_HOSTS", DEFAULT_API_HOSTS),
        cache_ttl_sec=env_float("CACHE_TTL_SEC", DEFAULT_CACHE_TTL_SEC),
        rebuild_period_sec=env_float("REBUILD_PERIOD_SEC", DEFAULT_REBUILD_PERIOD_SEC),
        notifier_period_sec=env_float("NOTIFIER_PERIOD_SEC", DEFAULT_NOTIFIER_PERIOD_SEC),
        notifier_block_tick_ratio=env_int("NOTIFIER_BLOCK_TICK_RATIO", DEFAULT_NOTIFIER_BLOCK_TICK_RATIO),
        faucet_account=env_str("FAUCET_ACCOUNT", DEFAULT_FAUCET_ACCOUNT),
        preload_big_wallet_names=env_bool("PRELOAD_BIG_WALLET_NAMES", False),
        big_wallet_accounts=env_list("BIG_WALLET_ACCOUNTS"),
        database_url=env_str("DATABASE_URL", DEFAULT_DATABASE_URL),
        request_timeout_sec=env_float("REQUEST_TIMEOUT_SEC", DEFAULT_REQUEST_TIMEOUT_SEC),
        transactions_page_size=env_int("TRANSACTIONS_PAGE_SIZE", DEFAULT_TRANSACTIONS_PAGE_SIZE),
        shuffle_head_ratio=env_float("SHUFFLE_HEAD_RATIO", DEFAULT_SHUFFLE_HEAD_RATIO),
        random_seed=env_int("POOL_RANDOM_SEED", None),
        cache_sweep_factor=env_int("CACHE_SWEEP_FACTOR", DEFAULT_CACHE_SWEEP_FACTOR),
        outbox_size=env_int("OUTBOX_SIZE", DEFAULT_OUTBOX_SIZE),
    )
