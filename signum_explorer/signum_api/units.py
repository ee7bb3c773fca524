"""NQT <-> SIGNA conversion. Floats only exist at presentation boundaries."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

NQT_PER_SIGNA = 100_000_000


def signa_to_nqt(amount: float | int | str | Decimal) -> int:
    """Convert a user-visible SIGNA amount to integer NQT (half-up rounding)."""
    value = Decimal(str(amount)) * NQT_PER_SIGNA
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def nqt_to_signa(amount_nqt: int) -> float:
    return amount_nqt / NQT_PER_SIGNA


def parse_nqt(raw) -> int:
    """Wire amounts arrive as decimal strings (or ints); None means zero."""
    if raw is None or raw == "":
        return 0
    return int(raw)


def parse_signa(raw) -> int:
    """Some fields (blockReward) are whole SIGNA decimal strings; return NQT."""
    if raw is None or raw == "":
        return 0
    return signa_to_nqt(raw)
