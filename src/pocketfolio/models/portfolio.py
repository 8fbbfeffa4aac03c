"""Portfolio models."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from .transaction import AssetClass


class Holding(SQLModel, table=True):
    """Persisted output of the last valuation pass.

    Rows are rebuilt wholesale on every pass. For stocks and crypto the key is
    ``<asset class>:<asset id>``; every insurance policy is its own row keyed by the id of the
    buy transaction that opened it. ``current_price`` doubles as the last known
    price when the oracle has nothing newer.
    """

    __tablename__: ClassVar[str] = "holding"

    holding_key: str = Field(primary_key=True, max_length=80)
    asset_id: str = Field(index=True, nullable=False, max_length=64)
    asset_name: str = Field(nullable=False, max_length=128)
    asset_class: AssetClass = Field(nullable=False, index=True)
    quantity: float = Field(nullable=False, default=0.0)
    avg_buy_price: float = Field(nullable=False, default=0.0)
    current_price: float = Field(nullable=False, default=0.0)
    change_24h: float = Field(nullable=False, default=0.0)
    stale: bool = Field(nullable=False, default=False)
    acquired_at: Optional[int] = Field(default=None, description="Milliseconds since epoch")
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))  # UTC


class PortfolioSnapshot(SQLModel, table=True):
    """Valuation checkpoint; at most one row per local calendar day."""

    __tablename__: ClassVar[str] = "portfolio_snapshot"

    snapshot_date: date = Field(primary_key=True)
    total_value: float = Field(nullable=False, default=0.0)
    stocks_value: float = Field(nullable=False, default=0.0)
    crypto_value: float = Field(nullable=False, default=0.0)
    insurance_value: float = Field(nullable=False, default=0.0)
    recorded_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))  # UTC

    def value_for(self, asset_class: AssetClass) -> float:
        if asset_class == AssetClass.STOCK:
            return self.stocks_value
        if asset_class == AssetClass.CRYPTO:
            return self.crypto_value
        return self.insurance_value
