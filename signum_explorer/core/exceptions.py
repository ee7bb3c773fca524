"""
Application-level exceptions.

Every failure the explorer can surface is one of the classes below so callers
can tell transport trouble from an upstream refusal. Messages are scrubbed of
secretPhrase payloads on construction, so str(error) is always safe to log or
show to a user.
"""

from __future__ import annotations

SECRET_MARKER = "secretPhrase="
# Characters that end a secretPhrase value inside rendered URLs and JSON text
SECRET_TERMINATORS = frozenset("\"'& \t\r\n")


def scrub_secret(text: str) -> str:
    """
    Remove every secretPhrase payload from text.

    The value between ``secretPhrase=`` and the next terminator is dropped and the
    terminator kept. When no terminator follows, the text is cut before the marker.
    """
    if not text or SECRET_MARKER not in text:
        return text
    parts: list[str] = []
    pos = 0
    while True:
        start = text.find(SECRET_MARKER, pos)
        if start < 0:
            parts.append(text[pos:])
            break
        value_start = start + len(SECRET_MARKER)
        end = value_start
        while end < len(text) and text[end] not in SECRET_TERMINATORS:
            end += 1
        if end == len(text):
            parts.append(text[pos:start])
            break
        parts.append(text[pos:value_start])
        pos = end
    return "".join(parts)


class SignumExplorerError(Exception):
    """Base class for all explorer errors; message is scrubbed."""

    def __init__(self, message: str = "") -> None:
        self.message = scrub_secret(str(message))
        super().__init__(self.message)


class SignumApiError(SignumExplorerError):
    """Base class for errors raised while talking to an upstream node."""

    def __init__(
        self,
        message: str = "",
        *,
        host: str | None = None,
        request_type: str | None = None,
    ) -> None:
        self.host = host
        self.request_type = request_type
        super().__init__(message)


class TransportError(SignumApiError):
    """TCP/TLS/timeout failure; the request may or may not have reached the node."""

    def __init__(self, message: str = "", *, kind: str = "other", **kwargs) -> None:
        self.kind = kind
        super().__init__(message, **kwargs)


class HttpStatusError(SignumApiError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str = "", **kwargs) -> None:
        self.status_code = status_code
        super().__init__(message or f"StatusCode {status_code}", **kwargs)


class DecodeError(SignumApiError):
    """Response body was not JSON or lacked a required field."""


class DomainError(SignumApiError):
    """Upstream returned an envelope carrying errorCode and/or errorDescription."""

    def __init__(
        self,
        code: int | None,
        description: str | None,
        **kwargs,
    ) -> None:
        self.code = code
        self.description = description or ""
        super().__init__(f"error {code}: {self.description}", **kwargs)


class AllUpstreamsFailedError(SignumApiError):
    """Every upstream in the snapshot failed; last_error is the final attempt's error."""

    def __init__(self, request_type: str, last_error: Exception | None) -> None:
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "no upstream available"
        super().__init__(
            f"couldn't get {request_type} method: {detail}",
            request_type=request_type,
        )


class ConfigError(SignumExplorerError):
    """Missing or invalid configuration value."""


class WatermarkStoreError(SignumExplorerError):
    """Watermark store read or write failed."""


class ShutdownError(SignumExplorerError):
    """A network request was attempted after the shutdown signal."""
