"""Transaction ledger - newest-first record of swap attempts."""

import structlog

from rebalancer.logging_config import get_trade_logger
from rebalancer.models import Transaction, TransactionStatus

logger = structlog.get_logger(__name__)

TERMINAL_STATUSES = (TransactionStatus.COMPLETED, TransactionStatus.FAILED)


class InvalidTransitionError(ValueError):
    """Raised on an illegal ledger operation (duplicate id, non-monotonic status)."""


class TransactionLedger:
    """Append-only list of transactions, most recent first.

    Entries are never removed or reordered. Only `status` may change, and only
    from pending to a terminal state.
    """

    def __init__(self):
        self._transactions: list[Transaction] = []
        self._trade_log = get_trade_logger()

    def append(self, tx: Transaction) -> Transaction:
        """Record a new transaction. It must start out pending."""
        if tx.status != TransactionStatus.PENDING:
            raise InvalidTransitionError(
                f"Transaction {tx.id} must be appended as pending, got {tx.status.value}"
            )
        if self._index_of(tx.id) is not None:
            raise InvalidTransitionError(f"Transaction {tx.id} already recorded")

        self._transactions.insert(0, tx)

        self._trade_log.info(
            "ledger.transaction_recorded",
            tx_id=tx.id,
            from_symbol=tx.from_symbol,
            to_symbol=tx.to_symbol,
            from_amount=tx.from_amount,
            to_amount=tx.to_amount,
            usd_value=round(tx.usd_value, 2),
        )
        return tx

    def update_status(self, tx_id: str, status: TransactionStatus) -> Transaction:
        """Move a pending transaction to a terminal status."""
        index = self._index_of(tx_id)
        if index is None:
            raise KeyError(tx_id)

        current = self._transactions[index]
        if current.status != TransactionStatus.PENDING or status not in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Cannot move transaction {tx_id} from {current.status.value} to {status.value}"
            )

        updated = current.model_copy(update={"status": status})
        self._transactions[index] = updated

        self._trade_log.info(
            "ledger.transaction_updated",
            tx_id=tx_id,
            from_symbol=updated.from_symbol,
            to_symbol=updated.to_symbol,
            status=status.value,
        )
        return updated

    def get(self, tx_id: str) -> Transaction | None:
        index = self._index_of(tx_id)
        return self._transactions[index] if index is not None else None

    @property
    def transactions(self) -> list[Transaction]:
        """Snapshot of the ledger, newest first."""
        return list(self._transactions)

    def pending(self) -> list[Transaction]:
        return [tx for tx in self._transactions if tx.status == TransactionStatus.PENDING]

    def __len__(self) -> int:
        return len(self._transactions)

    def _index_of(self, tx_id: str) -> int | None:
        for i, tx in enumerate(self._transactions):
            if tx.id == tx_id:
                return i
        return None
