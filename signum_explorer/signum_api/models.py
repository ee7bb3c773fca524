"""
Data models for Signum API responses.

Responsibilities:
- Typed, immutable records for accounts, transactions, blocks and node status.
- Subtype-aware attachment decoding: the wire JSON embeds attachment fields
  conditionally, so the variant is chosen from (type, subtype) rather than by
  inspecting which keys happen to be present.
- Amounts are kept as integer NQT; SIGNA floats are derived properties only.

from_api() raises KeyError/TypeError/ValueError on malformed payloads; the pool
converts those into DecodeError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from signum_explorer.signum_api.constants import (
    MessagingSubtype,
    MiningSubtype,
    PaymentSubtype,
    TransactionType,
)
from signum_explorer.signum_api.units import nqt_to_signa, parse_nqt, parse_signa

# -----------------------------------------------------------------------------
# Attachments: tagged union keyed by (type, subtype)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Attachment:
    """
    Common appendix fields. Any transaction may carry a plain or encrypted
    message next to its subtype-specific payload.
    """

    message: str | None = None
    message_is_text: bool = False
    encrypted_message: dict[str, Any] | None = None

    @property
    def has_text_message(self) -> bool:
        return self.message_is_text and bool(self.message)

    @property
    def has_encrypted_message(self) -> bool:
        return self.encrypted_message is not None


@dataclass(frozen=True)
class OrdinaryPayment(Attachment):
    """Amount lives on the parent transaction."""


@dataclass(frozen=True)
class MultiOutRecipient:
    recipient: str
    amount_nqt: int


@dataclass(frozen=True)
class MultiOutPayment(Attachment):
    recipients: tuple[MultiOutRecipient, ...] = ()

    def amount_for(self, account_id: str) -> int:
        """Sum of NQT paid to account_id; an account may appear more than once."""
        return sum(r.amount_nqt for r in self.recipients if r.recipient == account_id)


@dataclass(frozen=True)
class MultiOutSamePayment(Attachment):
    """Parent amountNQT is split equally across recipients."""

    recipients: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArbitraryMessage(Attachment):
    pass


@dataclass(frozen=True)
class RewardRecipientAssignment(Attachment):
    pass


@dataclass(frozen=True)
class AddCommitment(Attachment):
    amount_nqt: int = 0


@dataclass(frozen=True)
class RemoveCommitment(Attachment):
    amount_nqt: int = 0


@dataclass(frozen=True)
class UnknownAttachment(Attachment):
    raw: dict[str, Any] = field(default_factory=dict)


def _appendix_fields(raw: dict[str, Any]) -> dict[str, Any]:
    message = raw.get("message")
    return {
        "message": str(message) if message is not None else None,
        "message_is_text": bool(raw.get("messageIsText", False)),
        "encrypted_message": raw.get("encryptedMessage"),
    }


def _multi_out_recipient(item: Any) -> MultiOutRecipient:
    if isinstance(item, dict):
        return MultiOutRecipient(str(item["recipient"]), parse_nqt(item["amountNQT"]))
    recipient, amount = item
    return MultiOutRecipient(str(recipient), parse_nqt(amount))


def _decode_ordinary(raw: dict[str, Any]) -> Attachment:
    return OrdinaryPayment(**_appendix_fields(raw))


def _decode_multi_out(raw: dict[str, Any]) -> Attachment:
    recipients = tuple(_multi_out_recipient(r) for r in raw.get("recipients") or [])
    return MultiOutPayment(recipients=recipients, **_appendix_fields(raw))


def _decode_multi_out_same(raw: dict[str, Any]) -> Attachment:
    recipients = tuple(str(r) for r in raw.get("recipients") or [])
    return MultiOutSamePayment(recipients=recipients, **_appendix_fields(raw))


def _decode_arbitrary_message(raw: dict[str, Any]) -> Attachment:
    return ArbitraryMessage(**_appendix_fields(raw))


def _decode_reward_recipient(raw: dict[str, Any]) -> Attachment:
    return RewardRecipientAssignment(**_appendix_fields(raw))


def _decode_add_commitment(raw: dict[str, Any]) -> Attachment:
    return AddCommitment(amount_nqt=parse_nqt(raw.get("amountNQT")), **_appendix_fields(raw))


def _decode_remove_commitment(raw: dict[str, Any]) -> Attachment:
    return RemoveCommitment(amount_nqt=parse_nqt(raw.get("amountNQT")), **_appendix_fields(raw))


_ATTACHMENT_DECODERS: dict[tuple[int, int], Callable[[dict[str, Any]], Attachment]] = {
    (TransactionType.PAYMENT, PaymentSubtype.ORDINARY): _decode_ordinary,
    (TransactionType.PAYMENT, PaymentSubtype.MULTI_OUT): _decode_multi_out,
    (TransactionType.PAYMENT, PaymentSubtype.MULTI_OUT_SAME): _decode_multi_out_same,
    (TransactionType.MESSAGING, MessagingSubtype.ARBITRARY_MESSAGE): _decode_arbitrary_message,
    (TransactionType.MINING, MiningSubtype.REWARD_RECIPIENT_ASSIGNMENT): _decode_reward_recipient,
    (TransactionType.MINING, MiningSubtype.ADD_COMMITMENT): _decode_add_commitment,
    (TransactionType.MINING, MiningSubtype.REMOVE_COMMITMENT): _decode_remove_commitment,
}


def decode_attachment(tx_type: int, subtype: int, raw: dict[str, Any] | None) -> Attachment:
    """Pick the attachment variant from (type, subtype)."""
    raw = raw or {}
    decoder = _ATTACHMENT_DECODERS.get((tx_type, subtype))
    if decoder is None:
        return UnknownAttachment(raw=dict(raw), **_appendix_fields(raw))
    return decoder(raw)


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Account:
    """Account state from getAccount. Numeric id and RS form are opaque equivalents."""

    account_id: str
    account_rs: str
    name: str
    balance_nqt: int
    unconfirmed_balance_nqt: int
    committed_balance_nqt: int
    last_activity_height: int | None = None

    @property
    def total_balance(self) -> float:
        return nqt_to_signa(self.balance_nqt)

    @property
    def committed_balance(self) -> float:
        return nqt_to_signa(self.committed_balance_nqt)

    @property
    def available_balance(self) -> float:
        return nqt_to_signa(self.unconfirmed_balance_nqt - self.committed_balance_nqt)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "Account":
        height = item.get("lastActivityHeight")
        return cls(
            account_id=str(item.get("account") or ""),
            account_rs=str(item.get("accountRS") or ""),
            name=str(item.get("name") or ""),
            balance_nqt=parse_nqt(item.get("balanceNQT")),
            unconfirmed_balance_nqt=parse_nqt(item.get("unconfirmedBalanceNQT", item.get("balanceNQT"))),
            committed_balance_nqt=parse_nqt(item.get("committedBalanceNQT")),
            last_activity_height=int(height) if height is not None else None,
        )


@dataclass(frozen=True)
class Transaction:
    transaction_id: str
    type: int
    subtype: int
    sender: str
    sender_rs: str
    recipient: str | None
    recipient_rs: str | None
    amount_nqt: int
    fee_nqt: int
    timestamp: int
    height: int | None
    attachment: Attachment

    @property
    def amount(self) -> float:
        return nqt_to_signa(self.amount_nqt)

    @property
    def fee(self) -> float:
        return nqt_to_signa(self.fee_nqt)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "Transaction":
        tx_type = int(item["type"])
        subtype = int(item["subtype"])
        recipient = item.get("recipient")
        height = item.get("height")
        return cls(
            transaction_id=str(item["transaction"]),
            type=tx_type,
            subtype=subtype,
            sender=str(item["sender"]),
            sender_rs=str(item.get("senderRS") or ""),
            recipient=str(recipient) if recipient is not None else None,
            recipient_rs=item.get("recipientRS"),
            amount_nqt=parse_nqt(item.get("amountNQT")),
            fee_nqt=parse_nqt(item.get("feeNQT")),
            timestamp=int(item.get("timestamp") or 0),
            height=int(height) if height is not None else None,
            attachment=decode_attachment(tx_type, subtype, item.get("attachment")),
        )


@dataclass(frozen=True)
class AccountTransactions:
    """Newest-first list, as returned by the node."""

    transactions: tuple[Transaction, ...]

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "AccountTransactions":
        return cls(tuple(Transaction.from_api(t) for t in item.get("transactions") or []))


@dataclass(frozen=True)
class Block:
    block_id: str
    height: int
    timestamp: int
    reward_nqt: int
    generator: str
    generator_rs: str

    @property
    def reward(self) -> float:
        return nqt_to_signa(self.reward_nqt)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "Block":
        return cls(
            block_id=str(item["block"]),
            height=int(item["height"]),
            timestamp=int(item.get("timestamp") or 0),
            reward_nqt=parse_signa(item.get("blockReward")),
            generator=str(item.get("generator") or ""),
            generator_rs=str(item.get("generatorRS") or ""),
        )


@dataclass(frozen=True)
class AccountBlocks:
    """Newest-first list of blocks forged by the account."""

    blocks: tuple[Block, ...]

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "AccountBlocks":
        return cls(tuple(Block.from_api(b) for b in item.get("blocks") or []))


@dataclass(frozen=True)
class BlockchainStatus:
    number_of_blocks: int
    last_block_id: str
    time: int
    version: str

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "BlockchainStatus":
        return cls(
            number_of_blocks=int(item["numberOfBlocks"]),
            last_block_id=str(item.get("lastBlock") or ""),
            time=int(item.get("time") or 0),
            version=str(item.get("version") or ""),
        )


@dataclass(frozen=True)
class MiningInfo:
    height: int
    base_target: int
    average_commitment_nqt: int
    last_block_reward_nqt: int
    generation_signature: str
    timestamp: int

    @property
    def average_commitment(self) -> float:
        return nqt_to_signa(self.average_commitment_nqt)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "MiningInfo":
        return cls(
            height=int(item["height"]),
            base_target=int(item.get("baseTarget") or 0),
            average_commitment_nqt=parse_nqt(item.get("averageCommitmentNQT")),
            last_block_reward_nqt=parse_signa(item.get("lastBlockReward")),
            generation_signature=str(item.get("generationSignature") or ""),
            timestamp=int(item.get("timestamp") or 0),
        )


@dataclass(frozen=True)
class SuggestFee:
    """Suggested fees in NQT."""

    cheap: int
    standard: int
    priority: int

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "SuggestFee":
        return cls(
            cheap=parse_nqt(item["cheap"]),
            standard=parse_nqt(item["standard"]),
            priority=parse_nqt(item["priority"]),
        )


@dataclass(frozen=True)
class AccountId:
    account_id: str
    account_rs: str

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "AccountId":
        return cls(account_id=str(item["account"]), account_rs=str(item.get("accountRS") or ""))


@dataclass(frozen=True)
class RewardRecipient:
    reward_recipient: str

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "RewardRecipient":
        return cls(reward_recipient=str(item["rewardRecipient"]))


@dataclass(frozen=True)
class MessageContent:
    message: str | None
    decrypted_message: str | None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "MessageContent":
        return cls(message=item.get("message"), decrypted_message=item.get("decryptedMessage"))


@dataclass(frozen=True)
class TransactionResponse:
    """Result of a transaction-creating POST."""

    transaction_id: str
    full_hash: str
    broadcasted: bool
    unsigned_transaction_bytes: str

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "TransactionResponse":
        return cls(
            transaction_id=str(item["transaction"]),
            full_hash=str(item.get("fullHash") or ""),
            broadcasted=bool(item.get("broadcasted", False)),
            unsigned_transaction_bytes=str(item.get("unsignedTransactionBytes") or ""),
        )
