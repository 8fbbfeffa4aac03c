"""Ledger store: validated, durable, append-only transaction history."""

from __future__ import annotations

import math
from typing import Optional

from ..clock import Clock, SystemClock, epoch_millis
from ..domain.repositories import LedgerRepository
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models.transaction import AssetClass, Transaction, TransactionKind, new_transaction_id
from .positions import fold_transactions

logger = get_logger(__name__)


def validate_transaction(tx: Transaction) -> None:
    """Reject malformed input before anything is persisted."""

    if not tx.id:
        raise ValidationError("Transaction id is required")
    if not tx.asset_id or not str(tx.asset_id).strip():
        raise ValidationError("Transaction asset_id is required")
    try:
        asset_class = AssetClass(tx.asset_class)
        kind = TransactionKind(tx.kind)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if not isinstance(tx.timestamp, int) or tx.timestamp <= 0:
        raise ValidationError("Transaction timestamp must be a positive epoch millisecond value")

    if kind is TransactionKind.CANCEL:
        if asset_class is not AssetClass.INSURANCE:
            raise ValidationError("Only insurance policies can be cancelled")
        if not tx.policy_id:
            raise ValidationError("A cancel must name the policy it cancels")
        return

    if asset_class is AssetClass.INSURANCE and kind is TransactionKind.SELL:
        raise ValidationError("Insurance policies are cancelled, not sold")
    if not math.isfinite(tx.quantity) or tx.quantity <= 0:
        raise ValidationError(f"Quantity must be positive, got {tx.quantity!r}")
    if asset_class is AssetClass.INSURANCE and tx.quantity != 1:
        raise ValidationError("An insurance purchase always covers exactly one policy")
    if not math.isfinite(tx.unit_price) or tx.unit_price < 0:
        raise ValidationError(f"Unit price must not be negative, got {tx.unit_price!r}")
    expected_total = tx.quantity * tx.unit_price
    if not math.isclose(tx.total_value, expected_total, rel_tol=1e-9, abs_tol=1e-6):
        raise ValidationError(
            f"total_value {tx.total_value!r} does not equal quantity * unit_price ({expected_total!r})"
        )


class LedgerStore:
    """Durable, ordered record of every transaction.

    Reads always go to the repository, so a valuation pass running after a
    write sees that write even when it happened in another process.
    """

    def __init__(self, repository: LedgerRepository, clock: Clock | None = None) -> None:
        self.repository = repository
        self.clock = clock or SystemClock()

    def new_transaction(
        self,
        *,
        asset_id: str,
        asset_name: str,
        asset_class: AssetClass,
        kind: TransactionKind,
        quantity: float,
        unit_price: float,
        policy_id: Optional[str] = None,
    ) -> Transaction:
        """Build an unrecorded transaction with a fresh id and timestamp.

        Timestamps never go backwards relative to what is already recorded, so
        a clock adjustment cannot reorder the history.
        """
        timestamp = epoch_millis(self.clock.now())
        last = self.repository.last_timestamp()
        if last is not None and timestamp < last:
            timestamp = last
        return Transaction(
            id=new_transaction_id(),
            asset_id=asset_id,
            asset_name=asset_name,
            asset_class=asset_class,
            kind=kind,
            quantity=quantity,
            unit_price=unit_price,
            total_value=quantity * unit_price,
            timestamp=timestamp,
            policy_id=policy_id,
        )

    def record(self, transaction: Transaction) -> Transaction:
        """Validate and durably append ``transaction``.

        The history is replayed with ``transaction`` appended first, so a sell
        or cancel it cannot cover raises ``InsufficientHoldingsError`` instead
        of poisoning every later valuation. Raises ``ValidationError`` for bad
        input and ``PersistenceError`` when the write fails. In every case the
        ledger is unchanged.
        """
        validate_transaction(transaction)
        if self.repository.get_by_id(transaction.id) is not None:
            raise ValidationError(f"Transaction id {transaction.id!r} already recorded")
        fold_transactions([*self.all(), transaction])

        stored = self.repository.append(transaction)
        logger.info(
            f"Recorded {TransactionKind(stored.kind).value} of {stored.quantity:g} {stored.asset_id}",
            extra={
                "transaction_id": stored.id,
                "asset_class": AssetClass(stored.asset_class).value,
                "unit_price": stored.unit_price,
                "total_value": stored.total_value,
            },
        )
        return stored

    def all(self) -> tuple[Transaction, ...]:
        """Every transaction in insertion order."""
        return tuple(self.repository.list_all())

    def recent(self, n: int) -> list[Transaction]:
        """The ``n`` newest transactions, newest first; ties by reverse insertion order."""
        if n <= 0:
            return []
        rows = self.repository.list_all()
        ordered = sorted(
            enumerate(rows),
            key=lambda pair: (pair[1].timestamp, pair[0]),
            reverse=True,
        )
        return [tx for _, tx in ordered[:n]]
