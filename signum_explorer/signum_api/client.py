"""
Signum API client: one typed operation per request kind.

Read operations have an uncached form (always hits the pool) and, for the
per-account queries the notifier polls, a get_cached_* form backed by TTL caches.
Write operations build the node's parameter shape and POST straight to the
pool: never cached, and never replayed on another node once the request may
have reached one (see pool.should_fail_over).
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, TypeVar

from signum_explorer.config.settings import Settings
from signum_explorer.core.exceptions import SignumExplorerError
from signum_explorer.explorer_logging import get_logger
from signum_explorer.signum_api.cache import TTLCache
from signum_explorer.signum_api.constants import (
    DEFAULT_DEADLINE,
    MessagingSubtype,
    RequestType,
    TransactionType,
)
from signum_explorer.signum_api.models import (
    Account,
    AccountBlocks,
    AccountId,
    AccountTransactions,
    Block,
    BlockchainStatus,
    MessageContent,
    MiningInfo,
    RewardRecipient,
    SuggestFee,
    Transaction,
    TransactionResponse,
)
from signum_explorer.signum_api.pool import UpstreamPool
from signum_explorer.signum_api.transport import HttpTransport
from signum_explorer.signum_api.units import signa_to_nqt

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100
_SINGLETON_KEY = "latest"


class SignumClient:
    """Typed operations over an UpstreamPool with TTL caches for per-account reads."""

    def __init__(
        self,
        pool: UpstreamPool,
        *,
        cache_ttl_sec: float,
        transactions_page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._pool = pool
        self._page_size = transactions_page_size
        self.account_cache: TTLCache[str, Account] = TTLCache("account", cache_ttl_sec, clock=clock)
        self.transactions_cache: TTLCache[tuple[str, int | None, int | None], AccountTransactions] = TTLCache(
            "transactions", cache_ttl_sec, clock=clock
        )
        self.blocks_cache: TTLCache[str, AccountBlocks] = TTLCache("blocks", cache_ttl_sec, clock=clock)
        self.suggest_fee_cache: TTLCache[str, SuggestFee] = TTLCache("suggest_fee", cache_ttl_sec, clock=clock)
        self.blockchain_status_cache: TTLCache[str, BlockchainStatus] = TTLCache(
            "blockchain_status", cache_ttl_sec, clock=clock
        )
        self._big_wallet_names: dict[str, str] = {}
        self._names_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: HttpTransport | None = None,
        shutdown_event: threading.Event | None = None,
    ) -> "SignumClient":
        pool = UpstreamPool(
            settings.api_hosts,
            transport or HttpTransport(settings.request_timeout_sec),
            shuffle_head_ratio=settings.shuffle_head_ratio,
            seed=settings.random_seed,
            shutdown_event=shutdown_event,
        )
        return cls(
            pool,
            cache_ttl_sec=settings.cache_ttl_sec,
            transactions_page_size=settings.transactions_page_size,
        )

    @property
    def pool(self) -> UpstreamPool:
        return self._pool

    def close(self) -> None:
        self._pool.close()

    def _get(self, request_type: RequestType, decode: Callable[[dict[str, Any]], T], **params: Any) -> T:
        query = {"requestType": request_type.value}
        query.update({k: v for k, v in params.items() if v is not None})
        return self._pool.request("GET", query, decode)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_account(self, account: str) -> Account:
        return self._get(RequestType.GET_ACCOUNT, Account.from_api, account=account)

    def get_cached_account(self, account: str) -> Account:
        return self.account_cache.get(account, lambda: self.get_account(account))

    def get_account_transactions(
        self,
        account: str,
        tx_type: int | None = None,
        subtype: int | None = None,
    ) -> AccountTransactions:
        """Newest page of the account's transactions, optionally filtered by type/subtype."""
        return self._get(
            RequestType.GET_ACCOUNT_TRANSACTIONS,
            AccountTransactions.from_api,
            account=account,
            type=int(tx_type) if tx_type is not None else None,
            subtype=int(subtype) if subtype is not None else None,
            firstIndex=0,
            lastIndex=self._page_size - 1,
            includeIndirect="true",
        )

    def get_cached_account_transactions(
        self,
        account: str,
        tx_type: int | None = None,
        subtype: int | None = None,
    ) -> AccountTransactions:
        key = (account, int(tx_type) if tx_type is not None else None, int(subtype) if subtype is not None else None)
        return self.transactions_cache.get(key, lambda: self.get_account_transactions(account, tx_type, subtype))

    def get_cached_account_payment_transactions(self, account: str) -> AccountTransactions:
        return self.get_cached_account_transactions(account, TransactionType.PAYMENT)

    def get_cached_account_mining_transactions(self, account: str) -> AccountTransactions:
        return self.get_cached_account_transactions(account, TransactionType.MINING)

    def get_cached_account_message_transactions(self, account: str) -> AccountTransactions:
        return self.get_cached_account_transactions(
            account, TransactionType.MESSAGING, MessagingSubtype.ARBITRARY_MESSAGE
        )

    def get_account_blocks(self, account: str) -> AccountBlocks:
        return self._get(
            RequestType.GET_ACCOUNT_BLOCKS,
            AccountBlocks.from_api,
            account=account,
            firstIndex=0,
            lastIndex=self._page_size - 1,
        )

    def get_cached_account_blocks(self, account: str) -> AccountBlocks:
        return self.blocks_cache.get(account, lambda: self.get_account_blocks(account))

    def get_blockchain_status(self) -> BlockchainStatus:
        return self._get(RequestType.GET_BLOCKCHAIN_STATUS, BlockchainStatus.from_api)

    def get_cached_blockchain_status(self) -> BlockchainStatus:
        return self.blockchain_status_cache.get(_SINGLETON_KEY, self.get_blockchain_status)

    def get_mining_info(self) -> MiningInfo:
        return self._get(RequestType.GET_MINING_INFO, MiningInfo.from_api)

    def suggest_fee(self) -> SuggestFee:
        return self._get(RequestType.SUGGEST_FEE, SuggestFee.from_api)

    def get_cached_suggest_fee(self) -> SuggestFee:
        return self.suggest_fee_cache.get(_SINGLETON_KEY, self.suggest_fee, allow_stale=True)

    def get_account_id(self, public_key: str) -> AccountId:
        return self._get(RequestType.GET_ACCOUNT_ID, AccountId.from_api, publicKey=public_key)

    def get_block(self, block_id: str | None = None, height: int | None = None) -> Block:
        if block_id is None and height is None:
            raise ValueError("block_id or height is required")
        return self._get(RequestType.GET_BLOCK, Block.from_api, block=block_id, height=height)

    def get_transaction(self, transaction_id: str) -> Transaction:
        return self._get(RequestType.GET_TRANSACTION, Transaction.from_api, transaction=transaction_id)

    def get_reward_recipient(self, account: str) -> RewardRecipient:
        return self._get(RequestType.GET_REWARD_RECIPIENT, RewardRecipient.from_api, account=account)

    def read_message(self, transaction_id: str, secret_phrase: str | None = None) -> MessageContent:
        return self._get(
            RequestType.READ_MESSAGE,
            MessageContent.from_api,
            transaction=transaction_id,
            secretPhrase=secret_phrase,
        )

    def sweep_caches(self, max_age_sec: float) -> int:
        caches = (
            self.account_cache,
            self.transactions_cache,
            self.blocks_cache,
            self.suggest_fee_cache,
            self.blockchain_status_cache,
        )
        return sum(c.sweep(max_age_sec) for c in caches)

    # -------------------------------------------------------------------------
    # Names
    # -------------------------------------------------------------------------

    def preload_big_wallet_names(self, accounts: list[str]) -> int:
        """Fetch and remember the names of well-known accounts. Returns how many had a name."""
        loaded = 0
        for account in accounts:
            try:
                info = self.get_account(account)
            except SignumExplorerError as e:
                logger.warning("client_big_wallet_name_failed", account_id=account, error=str(e))
                continue
            self.account_cache.put(account, info)
            if info.name:
                with self._names_lock:
                    self._big_wallet_names[account] = info.name
                    if info.account_id:
                        self._big_wallet_names[info.account_id] = info.name
                    if info.account_rs:
                        self._big_wallet_names[info.account_rs] = info.name
                loaded += 1
        logger.info("client_big_wallet_names_loaded", requested=len(accounts), loaded=loaded)
        return loaded

    def get_account_name(self, account: str | None) -> str:
        """Best-effort name lookup: preloaded names first, then the cached account. "" if unknown."""
        if not account:
            return ""
        with self._names_lock:
            name = self._big_wallet_names.get(account)
        if name:
            return name
        try:
            return self.get_cached_account(account).name
        except SignumExplorerError as e:
            logger.debug("client_account_name_failed", account_id=account, error=str(e))
            return ""

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _create_transaction(
        self,
        request_type: RequestType,
        secret_phrase: str,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
        **params: Any,
    ) -> TransactionResponse:
        query: dict[str, Any] = {
            "requestType": request_type.value,
            "secretPhrase": secret_phrase,
            "feeNQT": int(fee_nqt),
            "deadline": deadline,
        }
        query.update({k: v for k, v in params.items() if v is not None})
        response = self._pool.request("POST", query, TransactionResponse.from_api)
        logger.info(
            "client_transaction_created",
            request_type=request_type.value,
            transaction_id=response.transaction_id,
            broadcasted=response.broadcasted,
        )
        return response

    def send_money(
        self,
        secret_phrase: str,
        recipient: str,
        amount: float,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        """Send amount SIGNA to recipient."""
        return self._create_transaction(
            RequestType.SEND_MONEY,
            secret_phrase,
            fee_nqt,
            deadline,
            recipient=recipient,
            amountNQT=signa_to_nqt(amount),
        )

    def send_money_multi(
        self,
        secret_phrase: str,
        recipients_amount: dict[str, float],
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        """Pay each recipient its own SIGNA amount in one transaction."""
        if not recipients_amount:
            raise ValueError("recipients_amount must be non-empty")
        recipients = ";".join(f"{numid}:{signa_to_nqt(amount)}" for numid, amount in recipients_amount.items())
        return self._create_transaction(
            RequestType.SEND_MONEY_MULTI,
            secret_phrase,
            fee_nqt,
            deadline,
            recipients=recipients,
        )

    def send_money_multi_same(
        self,
        secret_phrase: str,
        recipients: list[str],
        amount: float,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        """Split a total of amount SIGNA equally across recipients (floor to whole NQT)."""
        if not recipients:
            raise ValueError("recipients must be non-empty")
        per_recipient_nqt = signa_to_nqt(amount) // len(recipients)
        return self._create_transaction(
            RequestType.SEND_MONEY_MULTI_SAME,
            secret_phrase,
            fee_nqt,
            deadline,
            recipients=";".join(recipients),
            amountNQT=per_recipient_nqt,
        )

    def send_message(
        self,
        secret_phrase: str,
        recipient: str,
        message: str,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        return self._create_transaction(
            RequestType.SEND_MESSAGE,
            secret_phrase,
            fee_nqt,
            deadline,
            recipient=recipient,
            message=message,
            messageIsText="true",
        )

    def set_reward_recipient(
        self,
        secret_phrase: str,
        recipient: str,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        return self._create_transaction(
            RequestType.SET_REWARD_RECIPIENT,
            secret_phrase,
            fee_nqt,
            deadline,
            recipient=recipient,
        )

    def add_commitment(
        self,
        secret_phrase: str,
        amount: float,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        return self._create_transaction(
            RequestType.ADD_COMMITMENT,
            secret_phrase,
            fee_nqt,
            deadline,
            amountNQT=signa_to_nqt(amount),
        )

    def remove_commitment(
        self,
        secret_phrase: str,
        amount: float,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        return self._create_transaction(
            RequestType.REMOVE_COMMITMENT,
            secret_phrase,
            fee_nqt,
            deadline,
            amountNQT=signa_to_nqt(amount),
        )

    def set_account_info(
        self,
        secret_phrase: str,
        name: str,
        description: str,
        fee_nqt: int,
        deadline: int = DEFAULT_DEADLINE,
    ) -> TransactionResponse:
        return self._create_transaction(
            RequestType.SET_ACCOUNT_INFO,
            secret_phrase,
            fee_nqt,
            deadline,
            name=name,
            description=description,
        )
