"""
HTTP transport: one typed JSON request against one upstream node.

Responsibilities:
- Issue a single GET/POST with query parameters via httpx.
- Map failures onto the explorer error kinds: TransportError (with a kind used by
  the POST fail-over allow-list), HttpStatusError, DecodeError, DomainError.
- Never render a secretPhrase value in an error string (exceptions scrub on construction).
"""

from __future__ import annotations

import errno
import ssl
from typing import Any

import httpx

from signum_explorer.core.exceptions import (
    DecodeError,
    DomainError,
    HttpStatusError,
    TransportError,
    scrub_secret,
)
from signum_explorer.explorer_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0
# Raw envelope logged at debug on decode failures, truncated to this many chars
MAX_LOGGED_BODY = 512

KIND_CONNECTION_REFUSED = "connection_refused"
KIND_HOST_UNREACHABLE = "host_unreachable"
KIND_TLS_HANDSHAKE_TIMEOUT = "tls_handshake_timeout"
KIND_REMOTE_ERROR = "remote_error"
KIND_CERTIFICATE_EXPIRED = "certificate_expired"
KIND_TIMEOUT = "timeout"
KIND_OTHER = "other"

_UNREACHABLE_ERRNOS = frozenset({errno.EHOSTUNREACH, errno.ENETUNREACH})


def _exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def classify_transport_error(exc: BaseException) -> str:
    """
    Return the transport error kind for an httpx exception by walking its cause chain.

    The kinds mirror what a node can fail with before a request is processed
    (refused, unreachable, TLS trouble) versus failures after it may have been
    processed (timeouts, dropped connections).
    """
    chain = _exception_chain(exc)
    text = " ".join(str(e) for e in chain).lower()

    if any(isinstance(e, ConnectionRefusedError) for e in chain) or "connection refused" in text:
        return KIND_CONNECTION_REFUSED
    if any(isinstance(e, OSError) and e.errno in _UNREACHABLE_ERRNOS for e in chain):
        return KIND_HOST_UNREACHABLE
    if "host unreachable" in text or "no route to host" in text or "network is unreachable" in text:
        return KIND_HOST_UNREACHABLE
    if "certificate has expired" in text:
        return KIND_CERTIFICATE_EXPIRED
    if "handshake" in text and (isinstance(exc, httpx.TimeoutException) or "timed out" in text):
        return KIND_TLS_HANDSHAKE_TIMEOUT
    if "alert" in text and any(isinstance(e, ssl.SSLError) for e in chain):
        return KIND_REMOTE_ERROR
    if "tlsv1_alert" in text or "sslv3_alert" in text or "remote error" in text:
        return KIND_REMOTE_ERROR
    if isinstance(exc, httpx.TimeoutException):
        return KIND_TIMEOUT
    return KIND_OTHER


class HttpTransport:
    """
    Thin JSON-over-HTTP transport shared by every upstream.

    One httpx.Client (connection pooling, per-request timeout) serves all hosts;
    tests pass an httpx.MockTransport via `transport`.
    """

    def __init__(
        self,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        *,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_sec),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request_json(
        self,
        host: str,
        http_method: str,
        path: str,
        params: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Perform the request and return the decoded JSON object.

        Raises TransportError, HttpStatusError, DecodeError or DomainError.
        """
        request_type = str(params.get("requestType", ""))
        url = host.rstrip("/") + path
        context = {"host": host, "request_type": request_type}
        try:
            resp = self._client.request(http_method, url, params=params, headers=headers)
        except httpx.HTTPError as e:
            kind = classify_transport_error(e)
            raise TransportError(
                f"{http_method} {request_type} on {host}: {type(e).__name__}: {e}",
                kind=kind,
                **context,
            ) from e

        if not 200 <= resp.status_code < 300:
            raise HttpStatusError(
                resp.status_code,
                f"{http_method} {request_type} on {host}: StatusCode {resp.status_code}",
                **context,
            )

        try:
            data = resp.json()
        except ValueError as e:
            logger.debug(
                "transport_decode_failed",
                host=host,
                request_type=request_type,
                body=scrub_secret(resp.text[:MAX_LOGGED_BODY]),
            )
            raise DecodeError(f"{request_type} on {host}: malformed JSON body: {e}", **context) from e
        if not isinstance(data, dict):
            logger.debug(
                "transport_decode_failed",
                host=host,
                request_type=request_type,
                body=scrub_secret(resp.text[:MAX_LOGGED_BODY]),
            )
            raise DecodeError(f"{request_type} on {host}: expected a JSON object", **context)

        if "errorCode" in data or "errorDescription" in data:
            code = data.get("errorCode")
            try:
                code = int(code) if code is not None else None
            except (TypeError, ValueError):
                pass
            raise DomainError(code, data.get("errorDescription"), **context)
        return data
