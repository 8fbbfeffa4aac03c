"""SQLModel table exports."""

from .portfolio import Holding, PortfolioSnapshot
from .settings import AppSetting
from .transaction import AssetClass, Transaction, TransactionKind, new_transaction_id

__all__ = [
    "AppSetting",
    "AssetClass",
    "Holding",
    "PortfolioSnapshot",
    "Transaction",
    "TransactionKind",
    "new_transaction_id",
]
