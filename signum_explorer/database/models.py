"""
Domain records read from the watermark store.

Plain dataclasses so the notifier stays free of ORM coupling.
"""

from __future__ import annotations

from dataclasses import dataclass

# Logical watermark name -> db_accounts column
WATERMARK_COLUMNS = {
    "last_payment_tx_id": "last_transaction_id",
    "last_mining_tx_id": "last_mining_tx",
    "last_message_tx_id": "last_message_tx",
    "last_block_id": "last_block_id",
}


@dataclass
class MonitoredAccount:
    """One monitored account joined with its owning chat user."""

    db_account_id: int
    account_id: str
    account_rs: str
    chat_id: int
    user_name: str
    notify_incoming: bool = False
    notify_outgoing: bool = False
    notify_new_blocks: bool = False
    notify_other: bool = False
    last_payment_tx_id: str | None = None
    last_mining_tx_id: str | None = None
    last_message_tx_id: str | None = None
    last_block_id: str | None = None
    """Watermarks are opaque ids, compared only for equality."""

    @property
    def notifies_payments(self) -> bool:
        return self.notify_incoming or self.notify_outgoing
