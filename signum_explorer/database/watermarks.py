"""
Watermark store: SQLAlchemy-backed users, monitored accounts and faucet ledger.

Uses DATABASE_URL for PostgreSQL (or any SQLAlchemy URL) when set; otherwise
SQLite. The notifier is the only writer of the watermark columns; the chat
layer registers users/accounts and may read them.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import BigInteger, Boolean, Column, ForeignKey, Integer, String, create_engine, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from signum_explorer.core.exceptions import WatermarkStoreError
from signum_explorer.database.models import WATERMARK_COLUMNS, MonitoredAccount
from signum_explorer.explorer_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class DbUser(Base):
    """Chat user owning zero or more monitored accounts."""

    __tablename__ = "db_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(BigInteger, unique=True, nullable=False, index=True)
    user_name = Column(String(256), nullable=True)


class DbAccount(Base):
    """
    Account registered by a user, with notification flags and the last
    transaction/block ids already notified.
    """

    __tablename__ = "db_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    db_user_id = Column(Integer, ForeignKey("db_users.id"), nullable=False, index=True)
    account = Column(String(32), nullable=False, index=True)
    account_rs = Column(String(64), nullable=False)
    name = Column(String(256), nullable=True)
    notify_income_transactions = Column(Boolean, nullable=False, default=False)
    notify_outgo_transactions = Column(Boolean, nullable=False, default=False)
    notify_new_blocks = Column(Boolean, nullable=False, default=False)
    notify_other_txs = Column(Boolean, nullable=False, default=False)
    last_transaction_id = Column(String(32), nullable=True)
    last_mining_tx = Column(String(32), nullable=True)
    last_message_tx = Column(String(32), nullable=True)
    last_block_id = Column(String(32), nullable=True)


class Donation(Base):
    """Incoming payment to the faucet account (append-only, one row per transaction)."""

    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account = Column(String(32), nullable=True, index=True)
    account_rs = Column(String(64), nullable=True)
    transaction_id = Column(String(32), nullable=False, unique=True, index=True)
    amount_nqt = Column(BigInteger, nullable=False)
    created_at = Column(Integer, nullable=False)  # Unix

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account": self.account,
            "account_rs": self.account_rs,
            "transaction_id": self.transaction_id,
            "amount_nqt": self.amount_nqt,
            "created_at": self.created_at,
        }


class Faucet(Base):
    """Outgoing payment from the faucet account (append-only, one row per transaction)."""

    __tablename__ = "faucets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account = Column(String(32), nullable=True, index=True)
    account_rs = Column(String(64), nullable=True)
    transaction_id = Column(String(32), nullable=False, unique=True, index=True)
    amount_nqt = Column(BigInteger, nullable=False)
    fee_nqt = Column(BigInteger, nullable=False)
    created_at = Column(Integer, nullable=False)  # Unix

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account": self.account,
            "account_rs": self.account_rs,
            "transaction_id": self.transaction_id,
            "amount_nqt": self.amount_nqt,
            "fee_nqt": self.fee_nqt,
            "created_at": self.created_at,
        }


def _db_label(url: str) -> str:
    """Loggable form of a DB URL (no credentials, no query)."""
    return url.split("?")[0].split("@")[-1].split("//")[-1]


class WatermarkStore:
    """Persistence for monitored accounts, their watermarks and the faucet ledger."""

    def __init__(self, url: str) -> None:
        connect_args: dict[str, Any] = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._url = url
        self._engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        logger.info("watermark_store_engine", url=_db_label(url))

    @contextmanager
    def _session_scope(self, operation: str) -> Iterator[Session]:
        """Single session: commits on success, rolls back and raises WatermarkStoreError on DB errors."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("watermark_store_failed", operation=operation, error=str(e))
            raise WatermarkStoreError(f"{operation} failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_db(self) -> None:
        """Create tables if they do not exist. Safe to call on every startup."""
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as e:
            logger.exception("watermark_store_init_failed", error=str(e))
            raise WatermarkStoreError(f"init_db failed: {e}") from e
        logger.info("watermark_store_init_db", url=_db_label(self._url))

    def dispose(self) -> None:
        self._engine.dispose()

    # -------------------------------------------------------------------------
    # Registration (chat layer)
    # -------------------------------------------------------------------------

    def add_user(self, chat_id: int, user_name: str = "") -> int:
        """Insert the user if missing; return its id."""
        with self._session_scope("add_user") as session:
            user = session.query(DbUser).filter(DbUser.chat_id == chat_id).first()
            if user is None:
                user = DbUser(chat_id=chat_id, user_name=user_name or None)
                session.add(user)
                session.flush()
                logger.info("watermark_store_user_added", chat_id=chat_id)
            return user.id

    def add_account(
        self,
        db_user_id: int,
        account: str,
        account_rs: str,
        *,
        name: str | None = None,
        notify_incoming: bool = False,
        notify_outgoing: bool = False,
        notify_new_blocks: bool = False,
        notify_other: bool = False,
        last_payment_tx_id: str | None = None,
        last_mining_tx_id: str | None = None,
        last_message_tx_id: str | None = None,
        last_block_id: str | None = None,
    ) -> int:
        """Register an account for a user; return the db_accounts row id."""
        with self._session_scope("add_account") as session:
            row = DbAccount(
                db_user_id=db_user_id,
                account=account,
                account_rs=account_rs,
                name=name,
                notify_income_transactions=notify_incoming,
                notify_outgo_transactions=notify_outgoing,
                notify_new_blocks=notify_new_blocks,
                notify_other_txs=notify_other,
                last_transaction_id=last_payment_tx_id,
                last_mining_tx=last_mining_tx_id,
                last_message_tx=last_message_tx_id,
                last_block_id=last_block_id,
            )
            session.add(row)
            session.flush()
            logger.info("watermark_store_account_added", account_id=account, db_user_id=db_user_id)
            return row.id

    # -------------------------------------------------------------------------
    # Notifier reads/writes
    # -------------------------------------------------------------------------

    def load_monitored_accounts(self) -> list[MonitoredAccount]:
        """Every account with at least one notification flag enabled, joined with its user."""
        with self._session_scope("load_monitored_accounts") as session:
            rows = (
                session.query(DbUser, DbAccount)
                .join(DbAccount, DbAccount.db_user_id == DbUser.id)
                .filter(
                    or_(
                        DbAccount.notify_income_transactions.is_(True),
                        DbAccount.notify_outgo_transactions.is_(True),
                        DbAccount.notify_new_blocks.is_(True),
                        DbAccount.notify_other_txs.is_(True),
                    )
                )
                .order_by(DbAccount.id)
                .all()
            )
            return [
                MonitoredAccount(
                    db_account_id=acc.id,
                    account_id=acc.account,
                    account_rs=acc.account_rs,
                    chat_id=user.chat_id,
                    user_name=user.user_name or "",
                    notify_incoming=bool(acc.notify_income_transactions),
                    notify_outgoing=bool(acc.notify_outgo_transactions),
                    notify_new_blocks=bool(acc.notify_new_blocks),
                    notify_other=bool(acc.notify_other_txs),
                    last_payment_tx_id=acc.last_transaction_id,
                    last_mining_tx_id=acc.last_mining_tx,
                    last_message_tx_id=acc.last_message_tx,
                    last_block_id=acc.last_block_id,
                )
                for user, acc in rows
            ]

    def get_account_watermarks(self, db_account_id: int) -> dict[str, str | None] | None:
        """Return {logical watermark name: id} for one account, or None if it does not exist."""
        with self._session_scope("get_account_watermarks") as session:
            row = session.query(DbAccount).filter(DbAccount.id == db_account_id).first()
            if row is None:
                return None
            return {name: getattr(row, column) for name, column in WATERMARK_COLUMNS.items()}

    def update_watermark(self, db_account_id: int, field: str, value: str) -> None:
        """Persist one watermark (field is a key of WATERMARK_COLUMNS)."""
        column = WATERMARK_COLUMNS.get(field)
        if column is None:
            raise ValueError(f"unknown watermark field: {field}")
        with self._session_scope("update_watermark") as session:
            updated = session.query(DbAccount).filter(DbAccount.id == db_account_id).update({column: value})
        if not updated:
            logger.warning("watermark_store_account_missing", db_account_id=db_account_id, field=field)
        else:
            logger.debug("watermark_store_updated", db_account_id=db_account_id, field=field, value=value)

    def record_donation(
        self,
        account: str | None,
        account_rs: str | None,
        transaction_id: str,
        amount_nqt: int,
    ) -> int:
        """Book an incoming faucet payment once; a known transaction returns its existing row id."""
        with self._session_scope("record_donation") as session:
            row = session.query(Donation).filter(Donation.transaction_id == transaction_id).first()
            if row is not None:
                logger.debug("watermark_store_donation_known", transaction_id=transaction_id)
                return row.id
            row = Donation(
                account=account,
                account_rs=account_rs,
                transaction_id=transaction_id,
                amount_nqt=amount_nqt,
                created_at=int(time.time()),
            )
            session.add(row)
            session.flush()
            return row.id

    def record_faucet(
        self,
        account: str | None,
        account_rs: str | None,
        transaction_id: str,
        amount_nqt: int,
        fee_nqt: int,
    ) -> int:
        """Book an outgoing faucet payment once; a known transaction returns its existing row id."""
        with self._session_scope("record_faucet") as session:
            row = session.query(Faucet).filter(Faucet.transaction_id == transaction_id).first()
            if row is not None:
                logger.debug("watermark_store_faucet_known", transaction_id=transaction_id)
                return row.id
            row = Faucet(
                account=account,
                account_rs=account_rs,
                transaction_id=transaction_id,
                amount_nqt=amount_nqt,
                fee_nqt=fee_nqt,
                created_at=int(time.time()),
            )
            session.add(row)
            session.flush()
            return row.id

    def list_donations(self, *, limit: int = 100) -> list[dict[str, Any]]:
        with self._session_scope("list_donations") as session:
            rows = session.query(Donation).order_by(Donation.id).limit(limit).all()
            return [r.to_dict() for r in rows]

    def list_faucets(self, *, limit: int = 100) -> list[dict[str, Any]]:
        with self._session_scope("list_faucets") as session:
            rows = session.query(Faucet).order_by(Faucet.id).limit(limit).all()
            return [r.to_dict() for r in rows]
