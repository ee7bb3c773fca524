"""
Watermark store: monitored accounts, last-notified ids, faucet/donation ledger.

SQLAlchemy-backed; SQLite by default, PostgreSQL via DATABASE_URL.
"""

from signum_explorer.database.models import WATERMARK_COLUMNS, MonitoredAccount
from signum_explorer.database.watermarks import (
    DbAccount,
    DbUser,
    Donation,
    Faucet,
    WatermarkStore,
)

__all__ = [
    "WATERMARK_COLUMNS",
    "DbAccount",
    "DbUser",
    "Donation",
    "Faucet",
    "MonitoredAccount",
    "WatermarkStore",
]
