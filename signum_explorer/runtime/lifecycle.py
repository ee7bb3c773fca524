"""
Explorer runtime: the upstream rebuilder and the notifier as two long-lived threads.

Both threads share one shutdown Event. Each loop waits on it instead of
sleeping, so stop() wakes them immediately; they return after the current
iteration, and the pool refuses new requests once the event is set.
"""

from __future__ import annotations

import queue
import threading
from typing import Any

from signum_explorer.config import Settings
from signum_explorer.database import WatermarkStore
from signum_explorer.explorer_logging import get_logger
from signum_explorer.notifier import Notifier, NotifierMessage
from signum_explorer.signum_api.client import SignumClient
from signum_explorer.signum_api.transport import HttpTransport

logger = get_logger(__name__)

DEFAULT_JOIN_TIMEOUT_SEC = 15.0


class ExplorerRuntime:
    """Owns the shutdown signal, the client and the two background loops."""

    def __init__(
        self,
        settings: Settings,
        store: WatermarkStore,
        *,
        client: SignumClient | None = None,
        transport: HttpTransport | None = None,
        outbox: queue.Queue[NotifierMessage] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.shutdown_event = threading.Event()
        self.client = client or SignumClient.from_settings(
            settings, transport=transport, shutdown_event=self.shutdown_event
        )
        self.outbox: queue.Queue[NotifierMessage] = outbox or queue.Queue(maxsize=settings.outbox_size)
        self.notifier = Notifier.from_settings(
            settings, store, self.client, self.outbox, shutdown_event=self.shutdown_event
        )
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    @property
    def notifier_running(self) -> bool:
        return any(t.name == "notifier" and t.is_alive() for t in self._threads)

    def finished(self) -> bool:
        """True once shutdown is signalled and the notifier can no longer queue messages."""
        return self.shutdown_event.is_set() and not self.notifier_running

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("runtime already started")
        self._threads = [
            threading.Thread(target=self._guard, args=("rebuilder", self.run_rebuilder), name="rebuilder", daemon=True),
            threading.Thread(target=self._guard, args=("notifier", self.notifier.run), name="notifier", daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        logger.info(
            "runtime_started",
            hosts=len(self.settings.api_hosts),
            rebuild_period_sec=self.settings.rebuild_period_sec,
            notifier_period_sec=self.settings.notifier_period_sec,
        )

    def _guard(self, name: str, target: Any) -> None:
        try:
            target()
        except Exception as e:
            logger.exception("runtime_task_crashed", task=name, error=str(e))

    def run_rebuilder(self) -> None:
        """Rank upstreams now, optionally preload names, then re-rank each period."""
        self.rebuild_once()
        if self.settings.preload_big_wallet_names and self.settings.big_wallet_accounts:
            if not self.shutdown_event.is_set():
                self.client.preload_big_wallet_names(self.settings.big_wallet_accounts)
        while not self.shutdown_event.wait(self.settings.rebuild_period_sec):
            self.rebuild_once()
            swept = self.client.sweep_caches(self.settings.cache_sweep_factor * self.settings.cache_ttl_sec)
            if swept:
                logger.info("runtime_caches_swept", removed=swept)
        logger.info("runtime_rebuilder_stopped")

    def rebuild_once(self) -> bool:
        try:
            return self.client.pool.rebuild()
        except Exception as e:
            logger.exception("runtime_rebuild_failed", error=str(e))
            return False

    def stop(self, timeout: float = DEFAULT_JOIN_TIMEOUT_SEC) -> None:
        """Signal shutdown, join both loops, release the HTTP client."""
        logger.info("runtime_stopping")
        self.shutdown_event.set()
        for thread in self._threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("runtime_thread_still_running", thread=thread.name)
        self.client.close()
        logger.info("runtime_stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown is signalled. Returns whether it was."""
        return self.shutdown_event.wait(timeout)
