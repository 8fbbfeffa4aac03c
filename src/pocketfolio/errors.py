"""Error taxonomy for ledger, valuation and storage failures."""

from __future__ import annotations


class PortfolioError(Exception):
    """Base class for every error raised by the portfolio engine."""


class ValidationError(PortfolioError, ValueError):
    """Malformed transaction input; rejected before anything is persisted."""


class InsufficientHoldingsError(PortfolioError, ValueError):
    """A sell exceeds the held quantity, or a cancel names a policy not held."""

    def __init__(self, asset_id: str, requested: float, available: float) -> None:
        self.asset_id = asset_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot remove {requested:g} of {asset_id!r}: only {available:g} held"
        )


class InsufficientFundsError(PortfolioError, ValueError):
    """A cash withdrawal exceeds the available balance."""


class StaleDataError(PortfolioError, RuntimeError):
    """Live prices could not be fetched; last known prices stay in use."""


class PersistenceError(PortfolioError, RuntimeError):
    """A durable write failed and the operation was not committed."""


__all__ = [
    "InsufficientFundsError",
    "InsufficientHoldingsError",
    "PersistenceError",
    "PortfolioError",
    "StaleDataError",
    "ValidationError",
]
