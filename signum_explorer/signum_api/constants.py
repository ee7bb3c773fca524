"""
Signum HTTP API request types and transaction type/subtype constants.

Numeric pairs are shared with the upstream node software.
"""

from __future__ import annotations

from enum import Enum, IntEnum

API_PATH = "/burst"
DEFAULT_DEADLINE = 1440  # minutes


class RequestType(str, Enum):
    SEND_MONEY = "sendMoney"  # recipient + amountNQT
    SEND_MONEY_MULTI = "sendMoneyMulti"  # recipients = <id1>:<amount1>;<id2>:<amount2>
    SEND_MONEY_MULTI_SAME = "sendMoneyMultiSame"  # recipients = <id1>;<id2> + amountNQT
    SEND_MESSAGE = "sendMessage"
    READ_MESSAGE = "readMessage"
    SUGGEST_FEE = "suggestFee"
    GET_ACCOUNT = "getAccount"
    GET_ACCOUNT_ID = "getAccountId"
    GET_ACCOUNT_TRANSACTIONS = "getAccountTransactions"
    GET_ACCOUNT_BLOCKS = "getAccountBlocks"
    GET_TRANSACTION = "getTransaction"
    GET_BLOCK = "getBlock"
    GET_MINING_INFO = "getMiningInfo"
    GET_BLOCKCHAIN_STATUS = "getBlockchainStatus"
    GET_REWARD_RECIPIENT = "getRewardRecipient"
    SET_REWARD_RECIPIENT = "setRewardRecipient"
    ADD_COMMITMENT = "addCommitment"
    REMOVE_COMMITMENT = "removeCommitment"
    SET_ACCOUNT_INFO = "setAccountInfo"


class TransactionType(IntEnum):
    PAYMENT = 0
    MESSAGING = 1
    COLORED_COINS = 2
    DIGITAL_GOODS = 3
    ACCOUNT_CONTROL = 4
    MINING = 20
    ADVANCED_PAYMENT = 21
    AUTOMATED_TRANSACTIONS = 22


class PaymentSubtype(IntEnum):
    ORDINARY = 0
    MULTI_OUT = 1
    MULTI_OUT_SAME = 2


class MessagingSubtype(IntEnum):
    ARBITRARY_MESSAGE = 0
    ALIAS_ASSIGNMENT = 1
    ACCOUNT_INFO = 5


class MiningSubtype(IntEnum):
    REWARD_RECIPIENT_ASSIGNMENT = 0
    ADD_COMMITMENT = 1
    REMOVE_COMMITMENT = 2
