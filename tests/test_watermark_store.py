"""
Pytest tests for the SQLAlchemy watermark store.

Uses the temporary SQLite store from conftest.
"""

from __future__ import annotations

import pytest

from signum_explorer.core.exceptions import WatermarkStoreError
from signum_explorer.database import WATERMARK_COLUMNS, WatermarkStore

ACCOUNT = "1111"
ACCOUNT_RS = "S-AAAA-BBBB-CCCC-DDDDD"


def test_add_user_is_idempotent(store):
    first = store.add_user(42, "alice")
    second = store.add_user(42, "alice")
    assert first == second


def test_load_monitored_accounts_only_with_flags(store):
    user_id = store.add_user(42, "alice")
    watched = store.add_account(user_id, ACCOUNT, ACCOUNT_RS, notify_incoming=True, last_payment_tx_id="T0")
    store.add_account(user_id, "2222", "S-QUIE-TTTT-AAAA-BBBBB")
    blocks_only = store.add_account(user_id, "3333", "S-MINE-RRRR-AAAA-BBBBB", notify_new_blocks=True)

    accounts = store.load_monitored_accounts()
    assert [a.db_account_id for a in accounts] == [watched, blocks_only]
    first = accounts[0]
    assert first.chat_id == 42
    assert first.user_name == "alice"
    assert first.account_rs == ACCOUNT_RS
    assert first.notify_incoming is True
    assert first.notify_outgoing is False
    assert first.notifies_payments is True
    assert first.last_payment_tx_id == "T0"
    assert first.last_block_id is None


def test_update_watermark_persists(store):
    user_id = store.add_user(42)
    account_id = store.add_account(user_id, ACCOUNT, ACCOUNT_RS, notify_other=True)
    for field in WATERMARK_COLUMNS:
        store.update_watermark(account_id, field, f"{field}-1")
    watermarks = store.get_account_watermarks(account_id)
    assert watermarks == {field: f"{field}-1" for field in WATERMARK_COLUMNS}

    store.update_watermark(account_id, "last_payment_tx_id", "T9")
    assert store.load_monitored_accounts()[0].last_payment_tx_id == "T9"


def test_update_watermark_unknown_field(store):
    with pytest.raises(ValueError, match="unknown watermark field"):
        store.update_watermark(1, "last_anything", "x")


def test_update_watermark_missing_account_is_noop(store):
    store.update_watermark(999, "last_block_id", "B1")
    assert store.get_account_watermarks(999) is None


def test_donation_and_faucet_ledger(store):
    store.record_donation("2222", "S-DONO-RRRR-AAAA-BBBBB", "T1", 500000000)
    store.record_faucet(ACCOUNT, ACCOUNT_RS, "T2", 10000000, 735000)
    store.record_faucet(None, None, "T3", 30000000, 1470000)

    donations = store.list_donations()
    assert len(donations) == 1
    assert donations[0]["amount_nqt"] == 500000000
    assert donations[0]["transaction_id"] == "T1"
    assert donations[0]["created_at"] > 0

    faucets = store.list_faucets()
    assert [f["transaction_id"] for f in faucets] == ["T2", "T3"]
    assert faucets[0]["fee_nqt"] == 735000
    assert faucets[1]["account"] is None


def test_ledger_books_each_transaction_once(store):
    first = store.record_donation("2222", "S-DONO-RRRR-AAAA-BBBBB", "T1", 500000000)
    assert store.record_donation("2222", "S-DONO-RRRR-AAAA-BBBBB", "T1", 500000000) == first
    payout = store.record_faucet(ACCOUNT, ACCOUNT_RS, "T2", 10000000, 735000)
    assert store.record_faucet(ACCOUNT, ACCOUNT_RS, "T2", 10000000, 735000) == payout

    assert [d["transaction_id"] for d in store.list_donations()] == ["T1"]
    assert [f["transaction_id"] for f in store.list_faucets()] == ["T2"]


def test_database_errors_are_wrapped(tmp_path):
    broken = WatermarkStore(f"sqlite:///{tmp_path / 'never_initialised.db'}")
    with pytest.raises(WatermarkStoreError):
        broken.load_monitored_accounts()
    broken.dispose()
