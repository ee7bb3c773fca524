"""
Notifier loop: turns new chain activity of monitored accounts into chat messages.

Each tick loads the monitored accounts, fetches their payment, mining and
message transactions (and, every k-th tick, forged blocks) through the cached
client, walks each newest-first list down to the stored watermark, emits the
new items oldest-first and advances the watermark to the newest id.

Failures are isolated per check and per account; the loop never crashes.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Callable

from signum_explorer.config import Settings
from signum_explorer.config.settings import (
    DEFAULT_FAUCET_ACCOUNT,
    DEFAULT_NOTIFIER_BLOCK_TICK_RATIO,
    DEFAULT_NOTIFIER_PERIOD_SEC,
)
from signum_explorer.core.exceptions import SignumExplorerError, WatermarkStoreError
from signum_explorer.database import MonitoredAccount, WatermarkStore
from signum_explorer.explorer_logging import get_logger
from signum_explorer.notifier.formatting import (
    ENCRYPTED_PLACEHOLDER,
    escape,
    format_chain_time,
    format_fee,
    format_signa,
    name_line,
    preview_message,
)
from signum_explorer.notifier.models import NotifierMessage
from signum_explorer.signum_api.client import SignumClient
from signum_explorer.signum_api.constants import MessagingSubtype, MiningSubtype, PaymentSubtype
from signum_explorer.signum_api.models import (
    AccountTransactions,
    AddCommitment,
    Attachment,
    MultiOutPayment,
    MultiOutSamePayment,
    RemoveCommitment,
    Transaction,
)

logger = get_logger(__name__)

# Raffle payouts are too frequent to be worth a notification
RAFFLE_ACCOUNT_RS = "S-JM3M-MHWM-UVQ6-DSN3Q"

PAYMENT_EMOJI = "💸"
MINING_EMOJI = "📝"
BLOCK_EMOJI = "💽"

_PAYMENT_LABELS = {
    PaymentSubtype.ORDINARY: "Ordinary",
    PaymentSubtype.MULTI_OUT: "Multi-out",
    PaymentSubtype.MULTI_OUT_SAME: "Multi-out same",
}


@dataclass(frozen=True)
class PaymentView:
    """What one payment means for the monitored account."""

    label: str
    income: bool
    amount_nqt: int
    counterparty: str | None
    counterparty_rs: str | None
    recipient_count: int = 0


def _recipient_label(tx: Transaction) -> str:
    return tx.recipient_rs or tx.recipient or ""


def describe_payment(tx: Transaction, account_id: str) -> PaymentView | None:
    """
    Amount and counterparty of a payment from account_id's point of view.
    Returns None for subtypes the notifier does not know.
    """
    income = tx.sender != account_id
    label = _PAYMENT_LABELS.get(tx.subtype)
    if label is None:
        return None
    attachment = tx.attachment
    if tx.subtype == PaymentSubtype.ORDINARY:
        if income:
            return PaymentView(label, True, tx.amount_nqt, tx.sender, tx.sender_rs)
        return PaymentView(label, False, tx.amount_nqt, tx.recipient, _recipient_label(tx))
    if not isinstance(attachment, (MultiOutPayment, MultiOutSamePayment)):
        return None
    count = len(attachment.recipients)
    if not income:
        return PaymentView(label, False, tx.amount_nqt, None, None, recipient_count=count)
    if isinstance(attachment, MultiOutPayment):
        amount_nqt = attachment.amount_for(account_id)
    else:
        amount_nqt = tx.amount_nqt // count if count else 0
    return PaymentView(label, True, amount_nqt, tx.sender, tx.sender_rs, recipient_count=count)


def _message_line(attachment: Attachment) -> str:
    if attachment.has_text_message:
        return f"\n<i>Message:</i> {escape(preview_message(attachment.message or ''))}"
    if attachment.has_encrypted_message:
        return f"\n<i>Message:</i> {ENCRYPTED_PLACEHOLDER}"
    return ""


class Notifier:
    """
    Periodic watcher over the watermark store. Messages go to `outbox`;
    the chat transport consumes them.
    """

    def __init__(
        self,
        store: WatermarkStore,
        client: SignumClient,
        outbox: queue.Queue[NotifierMessage],
        *,
        period_sec: float = DEFAULT_NOTIFIER_PERIOD_SEC,
        block_tick_ratio: int = DEFAULT_NOTIFIER_BLOCK_TICK_RATIO,
        faucet_account: str = DEFAULT_FAUCET_ACCOUNT,
        shutdown_event: threading.Event | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._outbox = outbox
        self._period_sec = period_sec
        self._block_tick_ratio = max(1, int(block_tick_ratio))
        self._faucet_account = faucet_account
        self._shutdown = shutdown_event or threading.Event()
        self._counter = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: WatermarkStore,
        client: SignumClient,
        outbox: queue.Queue[NotifierMessage],
        *,
        shutdown_event: threading.Event | None = None,
    ) -> "Notifier":
        return cls(
            store,
            client,
            outbox,
            period_sec=settings.notifier_period_sec,
            block_tick_ratio=settings.notifier_block_tick_ratio,
            faucet_account=settings.faucet_account,
            shutdown_event=shutdown_event,
        )

    @property
    def counter(self) -> int:
        return self._counter

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def run(self) -> None:
        """Startup pass (blocks included), then one tick per period until shutdown."""
        logger.info(
            "notifier_started",
            period_sec=self._period_sec,
            block_tick_ratio=self._block_tick_ratio,
        )
        self.check_accounts(check_blocks=True)
        while not self._shutdown.wait(self._period_sec):
            self.tick()
        logger.info("notifier_stopped", ticks=self._counter)

    def tick(self) -> bool:
        """One periodic pass. Returns whether blocks were checked on it."""
        self._counter += 1
        check_blocks = self._counter % self._block_tick_ratio == 0
        self.check_accounts(check_blocks)
        return check_blocks

    def check_accounts(self, check_blocks: bool) -> int:
        """Run every enabled check for every monitored account. Returns the number of messages emitted."""
        try:
            accounts = self._store.load_monitored_accounts()
        except WatermarkStoreError as e:
            logger.error("notifier_load_accounts_failed", error=str(e))
            return 0
        emitted = 0
        for account in accounts:
            if self._shutdown.is_set():
                logger.info("notifier_shutdown_mid_pass")
                break
            try:
                emitted += self._check_account(account, check_blocks)
            except Exception as e:
                logger.warning(
                    "notifier_account_failed",
                    account_id=account.account_id,
                    error=str(e),
                    exc_info=True,
                )
        logger.info(
            "notifier_pass_done",
            accounts=len(accounts),
            emitted=emitted,
            check_blocks=check_blocks,
        )
        return emitted

    def _check_account(self, account: MonitoredAccount, check_blocks: bool) -> int:
        emitted = 0
        if account.notifies_payments:
            emitted += self.check_payment_transactions(account)
        if account.notify_other:
            emitted += self.check_mining_transactions(account)
            emitted += self.check_message_transactions(account)
        if check_blocks and account.notify_new_blocks:
            emitted += self.check_blocks(account)
        return emitted

    # -------------------------------------------------------------------------
    # Watermark walk
    # -------------------------------------------------------------------------

    def _new_transactions(
        self,
        fetch: Callable[[str], AccountTransactions],
        account: MonitoredAccount,
        field: str,
    ) -> tuple[list[Transaction], str] | None:
        """
        Transactions newer than the watermark, oldest first, plus the newest id.
        None when there is nothing to do (fetch failed, empty list, or up to date).
        """
        try:
            transactions = fetch(account.account_id).transactions
        except SignumExplorerError as e:
            logger.warning("notifier_fetch_failed", account_id=account.account_id, watermark=field, error=str(e))
            return None
        if not transactions:
            return None
        watermark = getattr(account, field)
        newest_id = transactions[0].transaction_id
        if newest_id == watermark:
            return None
        fresh: list[Transaction] = []
        for tx in transactions:
            if tx.transaction_id == watermark:
                break
            fresh.append(tx)
        fresh.reverse()
        return fresh, newest_id

    def _advance_watermark(self, account: MonitoredAccount, field: str, value: str) -> None:
        self._store.update_watermark(account.db_account_id, field, value)
        setattr(account, field, value)

    def _emit(self, account: MonitoredAccount, body: str) -> None:
        self._outbox.put(NotifierMessage(account.chat_id, account.user_name, body))

    def _is_faucet(self, account: MonitoredAccount) -> bool:
        return self._faucet_account in (account.account_rs, account.account_id)

    def _balance_footer(self, account: MonitoredAccount, *, committed: bool) -> str:
        """Fresh balance line for the batch; empty if the account cannot be read."""
        try:
            info = self._client.get_account(account.account_id)
        except SignumExplorerError as e:
            logger.warning("notifier_balance_failed", account_id=account.account_id, error=str(e))
            return ""
        if committed:
            return f"\n<b>Total commitment: {format_signa(info.committed_balance_nqt)} SIGNA</b>"
        return f"\n<b>Total balance: {format_signa(info.balance_nqt)} SIGNA</b>"

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def check_payment_transactions(self, account: MonitoredAccount) -> int:
        batch = self._new_transactions(
            self._client.get_cached_account_payment_transactions, account, "last_payment_tx_id"
        )
        if batch is None:
            return 0
        transactions, newest_id = batch
        footer = self._balance_footer(account, committed=False)
        emitted = 0
        for tx in transactions:
            if tx.sender_rs == RAFFLE_ACCOUNT_RS:
                continue
            payment = describe_payment(tx, account.account_id)
            if payment is None:
                logger.info(
                    "notifier_unknown_subtype",
                    account_id=account.account_id,
                    transaction_id=tx.transaction_id,
                    type=tx.type,
                    subtype=tx.subtype,
                )
                continue
            if self._is_faucet(account):
                self._book_faucet_payment(tx, payment)
            if payment.income and not account.notify_incoming:
                continue
            if not payment.income and not account.notify_outgoing:
                continue
            self._emit(account, self._payment_body(account, tx, payment) + footer)
            emitted += 1
        self._advance_watermark(account, "last_payment_tx_id", newest_id)
        return emitted

    def _payment_body(self, account: MonitoredAccount, tx: Transaction, payment: PaymentView) -> str:
        if payment.income:
            head = f"{PAYMENT_EMOJI} <b>{account.account_rs}</b> new income:"
            party = f"\n<i>Sender:</i> {payment.counterparty_rs}"
            party += name_line(self._client.get_account_name(payment.counterparty))
            amount = f"\n<i>Amount:</i> +{format_signa(payment.amount_nqt)} SIGNA"
        else:
            head = f"{PAYMENT_EMOJI} <b>{account.account_rs}</b> new outgo:"
            if payment.recipient_count:
                party = f"\n<i>Recipients:</i> {payment.recipient_count}"
            else:
                party = f"\n<i>Recipient:</i> {payment.counterparty_rs}"
                party += name_line(self._client.get_account_name(payment.counterparty))
            amount = f"\n<i>Amount:</i> -{format_signa(payment.amount_nqt)} SIGNA"
        return (
            f"{head}\n<i>Payment:</i> {payment.label}{party}{amount}"
            f"{_message_line(tx.attachment)}\n<i>Fee:</i> {format_fee(tx.fee_nqt)} SIGNA"
        )

    def _book_faucet_payment(self, tx: Transaction, payment: PaymentView) -> None:
        try:
            if payment.income:
                self._store.record_donation(tx.sender, tx.sender_rs, tx.transaction_id, payment.amount_nqt)
            else:
                self._store.record_faucet(
                    payment.counterparty,
                    payment.counterparty_rs,
                    tx.transaction_id,
                    payment.amount_nqt,
                    tx.fee_nqt,
                )
        except WatermarkStoreError as e:
            logger.error("notifier_faucet_booking_failed", transaction_id=tx.transaction_id, error=str(e))

    def check_mining_transactions(self, account: MonitoredAccount) -> int:
        batch = self._new_transactions(
            self._client.get_cached_account_mining_transactions, account, "last_mining_tx_id"
        )
        if batch is None:
            return 0
        transactions, newest_id = batch
        footer = self._balance_footer(account, committed=True)
        emitted = 0
        for tx in transactions:
            body = self._mining_body(account, tx)
            if body is None:
                logger.info(
                    "notifier_unknown_subtype",
                    account_id=account.account_id,
                    transaction_id=tx.transaction_id,
                    type=tx.type,
                    subtype=tx.subtype,
                )
                continue
            self._emit(account, body + footer)
            emitted += 1
        self._advance_watermark(account, "last_mining_tx_id", newest_id)
        return emitted

    def _mining_body(self, account: MonitoredAccount, tx: Transaction) -> str | None:
        head = f"{MINING_EMOJI} <b>{account.account_rs}</b>"
        fee = f"\n<i>Fee:</i> {format_fee(tx.fee_nqt)} SIGNA"
        attachment = tx.attachment
        if tx.subtype == MiningSubtype.REWARD_RECIPIENT_ASSIGNMENT:
            name = name_line(self._client.get_account_name(tx.recipient))
            return f"{head} new recipient assigned:\n<i>Recipient:</i> {_recipient_label(tx)}{name}{fee}"
        if isinstance(attachment, AddCommitment):
            return f"{head} new commitment added:\n<i>Amount:</i> +{format_signa(attachment.amount_nqt)} SIGNA{fee}"
        if isinstance(attachment, RemoveCommitment):
            return f"{head} commitment revoked:\n<i>Amount:</i> -{format_signa(attachment.amount_nqt)} SIGNA{fee}"
        return None

    def check_message_transactions(self, account: MonitoredAccount) -> int:
        batch = self._new_transactions(
            self._client.get_cached_account_message_transactions, account, "last_message_tx_id"
        )
        if batch is None:
            return 0
        transactions, newest_id = batch
        emitted = 0
        for tx in transactions:
            if tx.subtype != MessagingSubtype.ARBITRARY_MESSAGE:
                continue
            self._emit(account, self._message_body(account, tx))
            emitted += 1
        self._advance_watermark(account, "last_message_tx_id", newest_id)
        return emitted

    def _message_body(self, account: MonitoredAccount, tx: Transaction) -> str:
        attachment = tx.attachment
        if attachment.has_text_message:
            text = escape(attachment.message)
        else:
            text = ENCRYPTED_PLACEHOLDER
        head = f"{MINING_EMOJI} <b>{account.account_rs}</b>"
        if tx.sender != account.account_id:
            name = name_line(self._client.get_account_name(tx.sender))
            party = f" new message received:\n<i>Sender:</i> {tx.sender_rs}{name}"
        else:
            name = name_line(self._client.get_account_name(tx.recipient))
            party = f" new message sent:\n<i>Recipient:</i> {_recipient_label(tx)}{name}"
        return f"{head}{party}\n<i>Message:</i> {text}\n<i>Fee:</i> {format_fee(tx.fee_nqt)} SIGNA"

    def check_blocks(self, account: MonitoredAccount) -> int:
        try:
            blocks = self._client.get_cached_account_blocks(account.account_id).blocks
        except SignumExplorerError as e:
            logger.warning("notifier_fetch_failed", account_id=account.account_id, watermark="last_block_id", error=str(e))
            return 0
        if not blocks or blocks[0].block_id == account.last_block_id:
            return 0
        # Only the newest block is announced; older unseen ones are folded into it
        block = blocks[0]
        self._emit(
            account,
            f"{BLOCK_EMOJI} <b>{account.account_rs}</b> new block at {format_chain_time(block.timestamp)} "
            f"<b>#{block.height}</b> ({format_signa(block.reward_nqt)} SIGNA)",
        )
        self._advance_watermark(account, "last_block_id", block.block_id)
        return 1
