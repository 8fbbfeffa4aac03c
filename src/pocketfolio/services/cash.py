"""Cash balance kept alongside the portfolio (deposits and withdrawals)."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from ..domain.repositories import SettingsRepository
from ..errors import InsufficientFundsError, ValidationError
from ..logging_config import get_logger

logger = get_logger(__name__)

CASH_BALANCE_KEY = "cash_balance"
_CENTS = Decimal("0.01")


def _to_money(amount: float) -> Decimal:
    return Decimal(repr(float(amount))).quantize(_CENTS, rounding=ROUND_HALF_UP)


class CashAccount:
    """Single-currency cash balance persisted as an app setting.

    Trades do not move cash; deposits and withdrawals are explicit.
    """

    def __init__(self, settings: SettingsRepository) -> None:
        self.settings = settings

    def balance(self) -> float:
        setting = self.settings.get(CASH_BALANCE_KEY)
        if setting is None:
            return 0.0
        return float(Decimal(setting.value))

    def _validate(self, amount: float) -> Decimal:
        if not isinstance(amount, (int, float)) or not math.isfinite(amount) or amount <= 0:
            raise ValidationError(f"Amount must be a positive number, got {amount!r}")
        return _to_money(amount)

    def _store(self, value: Decimal) -> float:
        self.settings.set(CASH_BALANCE_KEY, str(value), description="Available cash balance")
        return float(value)

    def deposit(self, amount: float) -> float:
        """Add ``amount`` and return the new balance."""
        money = self._validate(amount)
        new_balance = self._store(_to_money(self.balance()) + money)
        logger.info(f"Deposited {money}", extra={"balance": new_balance})
        return new_balance

    def withdraw(self, amount: float) -> float:
        """Remove ``amount`` and return the new balance."""
        money = self._validate(amount)
        current = _to_money(self.balance())
        if money > current:
            raise InsufficientFundsError(f"Cannot withdraw {money}: balance is {current}")
        new_balance = self._store(current - money)
        logger.info(f"Withdrew {money}", extra={"balance": new_balance})
        return new_balance
