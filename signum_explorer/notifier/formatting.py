"""Presentation helpers for notification bodies (HTML-like markup for the chat transport)."""

from __future__ import annotations

import html
from datetime import datetime, timedelta, timezone

from signum_explorer.signum_api.units import NQT_PER_SIGNA

# Chain timestamps are seconds since the genesis block
SIGNUM_GENESIS = datetime(2014, 8, 11, 2, 0, 0, tzinfo=timezone.utc)
MESSAGE_PREVIEW_LENGTH = 32
ENCRYPTED_PLACEHOLDER = "[encrypted]"


def format_number(value: float, precision: int = 2) -> str:
    """Thousands separators, at most `precision` decimals, trailing zeros trimmed."""
    text = f"{value:,.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def format_signa(amount_nqt: float, precision: int = 2) -> str:
    return format_number(amount_nqt / NQT_PER_SIGNA, precision)


def format_fee(fee_nqt: int) -> str:
    return format_number(fee_nqt / NQT_PER_SIGNA, 8)


def format_chain_time(timestamp: int) -> str:
    return (SIGNUM_GENESIS + timedelta(seconds=timestamp)).strftime("%Y-%m-%d %H:%M:%S UTC")


def escape(text: str | None) -> str:
    return html.escape(text or "", quote=False)


def preview_message(text: str) -> str:
    """One-line preview: newlines collapsed, cut to 32 code points with an ellipsis."""
    text = text.replace("\r\n", "\n").replace("\n", " ")
    if len(text) > MESSAGE_PREVIEW_LENGTH:
        text = text[:MESSAGE_PREVIEW_LENGTH] + "..."
    return text


def name_line(name: str | None) -> str:
    return f"\n<i>Name:</i> {escape(name)}" if name else ""
