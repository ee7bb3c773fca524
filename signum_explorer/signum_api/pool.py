"""
Upstream pool: ranked list of equivalent Signum API nodes with per-request fail-over.

Responsibilities:
- Probe every configured host with getBlockchainStatus, rank survivors by
  freshness (block height, one block of sync skew tolerated) then latency.
- Swap the ranked list atomically under the exclusive side of a read/write lock;
  requests snapshot the list under the shared side.
- Dispatch each request down a lightly shuffled copy of the snapshot, failing over
  to the next node except where replaying could execute a POST twice.
"""

from __future__ import annotations

import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from signum_explorer.core.exceptions import (
    AllUpstreamsFailedError,
    DecodeError,
    DomainError,
    HttpStatusError,
    ShutdownError,
    SignumApiError,
    TransportError,
)
from signum_explorer.core.rwlock import ReadWriteLock
from signum_explorer.explorer_logging import get_logger
from signum_explorer.signum_api.constants import API_PATH, RequestType
from signum_explorer.signum_api.models import BlockchainStatus
from signum_explorer.signum_api.transport import (
    KIND_CERTIFICATE_EXPIRED,
    KIND_CONNECTION_REFUSED,
    KIND_HOST_UNREACHABLE,
    KIND_REMOTE_ERROR,
    KIND_TLS_HANDSHAKE_TIMEOUT,
    HttpTransport,
)

logger = get_logger(__name__)

T = TypeVar("T")

# Failures where a POST provably did not execute on the node; anything else is surfaced
POST_RETRYABLE_TRANSPORT_KINDS = frozenset(
    {
        KIND_CONNECTION_REFUSED,
        KIND_HOST_UNREACHABLE,
        KIND_TLS_HANDSHAKE_TIMEOUT,
        KIND_REMOTE_ERROR,
        KIND_CERTIFICATE_EXPIRED,
    }
)
# Heights within this many blocks of each other rank as equally fresh
HEIGHT_TOLERANCE = 1
DEFAULT_SHUFFLE_HEAD_RATIO = 0.5


@dataclass(frozen=True)
class Upstream:
    """One node. Never mutated; a rebuild produces new instances."""

    host: str
    observed_height: int | None = None
    observed_latency: float | None = None
    """Seconds taken by the last successful probe."""
    last_probe_at: float | None = None
    """Unix timestamp of the last successful probe."""


def rank_upstreams(upstreams: Iterable[Upstream]) -> list[Upstream]:
    """
    Order upstreams freshest first, fastest first within a freshness bucket.

    The bucket of the highest remaining height holds every upstream at most
    HEIGHT_TOLERANCE blocks behind it; buckets are emitted in turn, each sorted
    by ascending latency.
    """
    remaining = sorted(upstreams, key=lambda u: u.observed_height or 0, reverse=True)
    ranked: list[Upstream] = []
    while remaining:
        top = remaining[0].observed_height or 0
        bucket = [u for u in remaining if (u.observed_height or 0) >= top - HEIGHT_TOLERANCE]
        remaining = [u for u in remaining if (u.observed_height or 0) < top - HEIGHT_TOLERANCE]
        bucket.sort(key=lambda u: u.observed_latency if u.observed_latency is not None else math.inf)
        ranked.extend(bucket)
    return ranked


def should_fail_over(error: SignumApiError, http_method: str) -> bool:
    """Return True if the request may be retried on the next upstream."""
    if isinstance(error, DomainError):
        return False
    if http_method.upper() != "POST":
        return isinstance(error, (TransportError, HttpStatusError, DecodeError))
    if isinstance(error, HttpStatusError):
        return True
    if isinstance(error, TransportError):
        return error.kind in POST_RETRYABLE_TRANSPORT_KINDS
    return False


class UpstreamPool:
    """
    Ranked, fail-over pool of Signum API nodes.

    The initial list is the configured hosts in configuration order (unprobed),
    so requests work before the first rebuild completes.
    """

    def __init__(
        self,
        hosts: list[str],
        transport: HttpTransport,
        *,
        path: str = API_PATH,
        shuffle_head_ratio: float = DEFAULT_SHUFFLE_HEAD_RATIO,
        seed: int | None = None,
        shutdown_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        if not hosts:
            raise ValueError("hosts must be non-empty")
        if not (0.0 <= shuffle_head_ratio <= 1.0):
            raise ValueError("shuffle_head_ratio must be between 0 and 1")
        self._hosts = list(hosts)
        self._transport = transport
        self._path = path
        self._shuffle_head_ratio = shuffle_head_ratio
        self._rng = random.Random(seed)
        self._rng_lock = threading.Lock()
        self._shutdown = shutdown_event or threading.Event()
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = ReadWriteLock()
        self._clients: list[Upstream] = [Upstream(host=h) for h in self._hosts]

    @property
    def hosts(self) -> list[str]:
        return list(self._hosts)

    def close(self) -> None:
        self._transport.close()

    def snapshot(self) -> list[Upstream]:
        """Current ranked list (a copy)."""
        with self._lock.read_locked():
            return list(self._clients)

    def _request_order(self) -> list[Upstream]:
        clients = self.snapshot()
        head = int(len(clients) * self._shuffle_head_ratio)
        if head > 1:
            shuffled = clients[:head]
            with self._rng_lock:
                self._rng.shuffle(shuffled)
            clients[:head] = shuffled
        return clients

    def _ensure_running(self) -> None:
        if self._shutdown.is_set():
            raise ShutdownError("request refused: shutdown in progress")

    @staticmethod
    def _decode(decode: Callable[[dict[str, Any]], T], payload: dict[str, Any], host: str, request_type: str) -> T:
        try:
            return decode(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("pool_decode_failed", host=host, request_type=request_type, payload=str(payload)[:512])
            raise DecodeError(
                f"{request_type} on {host}: unexpected payload: {type(e).__name__}: {e}",
                host=host,
                request_type=request_type,
            ) from e

    def request(
        self,
        http_method: str,
        params: dict[str, Any],
        decode: Callable[[dict[str, Any]], T],
        headers: dict[str, str] | None = None,
    ) -> T:
        """
        Run one request with fail-over and return the decoded result.

        Raises DomainError (never retried), a non-retryable POST error as-is,
        ShutdownError after the shutdown signal, or AllUpstreamsFailedError.
        """
        request_type = str(params.get("requestType", ""))
        self._ensure_running()
        last_error: SignumApiError | None = None
        for upstream in self._request_order():
            self._ensure_running()
            try:
                payload = self._transport.request_json(
                    upstream.host, http_method, self._path, params, headers
                )
                return self._decode(decode, payload, upstream.host, request_type)
            except SignumApiError as e:
                last_error = e
                logger.warning(
                    "pool_request_failed",
                    host=upstream.host,
                    request_type=request_type,
                    http_method=http_method,
                    error=str(e),
                )
                if not should_fail_over(e, http_method):
                    raise
        raise AllUpstreamsFailedError(request_type, last_error) from last_error

    def probe(self, host: str) -> Upstream | None:
        """Probe one host; return a fresh Upstream or None if it failed."""
        params = {"requestType": RequestType.GET_BLOCKCHAIN_STATUS.value}
        started = self._clock()
        try:
            payload = self._transport.request_json(host, "GET", self._path, params)
            status = self._decode(BlockchainStatus.from_api, payload, host, params["requestType"])
        except SignumApiError as e:
            logger.warning("pool_probe_failed", host=host, error=str(e))
            return None
        latency = self._clock() - started
        logger.debug(
            "pool_probe_done",
            host=host,
            height=status.number_of_blocks,
            latency_sec=round(latency, 4),
        )
        return Upstream(
            host=host,
            observed_height=status.number_of_blocks,
            observed_latency=latency,
            last_probe_at=self._wall_clock(),
        )

    def rebuild(self) -> bool:
        """
        Re-probe every configured host and swap in the ranked survivors.

        Returns True if the list was replaced; when no host answers the existing
        list is kept.
        """
        logger.info("pool_rebuild_started", host_count=len(self._hosts))
        started = self._clock()
        survivors: list[Upstream] = []
        for host in self._hosts:
            if self._shutdown.is_set():
                logger.info("pool_rebuild_interrupted")
                return False
            upstream = self.probe(host)
            if upstream is not None:
                survivors.append(upstream)
        ranked = rank_upstreams(survivors)
        if not ranked:
            logger.error("pool_rebuild_failed", reason="no upstream responded", host_count=len(self._hosts))
            return False
        with self._lock.write_locked():
            self._clients = ranked
        logger.info(
            "pool_rebuilt",
            upstream_count=len(ranked),
            order=[u.host for u in ranked],
            duration_sec=round(self._clock() - started, 3),
        )
        return True
