"""SQLModel definitions for ledger transactions."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar, Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel


class AssetClass(str, Enum):
    """Asset classes tracked by the portfolio."""

    STOCK = "stock"
    CRYPTO = "crypto"
    INSURANCE = "insurance"

    @property
    def is_tradable(self) -> bool:
        """Stocks and crypto aggregate into quantity positions; policies do not."""
        return self is not AssetClass.INSURANCE


class TransactionKind(str, Enum):
    """Ledger event kinds. ``cancel`` applies to insurance policies only."""

    BUY = "buy"
    SELL = "sell"
    CANCEL = "cancel"


def new_transaction_id() -> str:
    return f"tx-{uuid4().hex}"


class Transaction(SQLModel, table=True):
    """One append-only ledger event.

    ``sequence`` is the insertion order and breaks timestamp ties. ``total_value``
    is captured at record time and never recomputed from live prices.
    """

    __tablename__: ClassVar[str] = "ledger_transaction"

    sequence: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(default_factory=new_transaction_id, unique=True, index=True, max_length=64)
    asset_id: str = Field(index=True, nullable=False, max_length=64)
    asset_name: str = Field(nullable=False, max_length=128)
    asset_class: AssetClass = Field(nullable=False, index=True)
    kind: TransactionKind = Field(nullable=False)
    quantity: float = Field(nullable=False, default=0.0)
    unit_price: float = Field(nullable=False, default=0.0)
    total_value: float = Field(nullable=False, default=0.0)
    timestamp: int = Field(nullable=False, index=True, description="Milliseconds since epoch")
    # For a cancel: id of the buy transaction that opened the policy
    policy_id: Optional[str] = Field(default=None, max_length=64)
