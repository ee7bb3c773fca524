"""Records the notifier puts on the outgoing event channel."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NotifierMessage:
    """
    One human-readable event for a chat. Delivery and backpressure are the
    consumer's job; body uses <b>/<i>/<code> markup.
    """

    chat_id: int
    user_name: str
    body: str
