"""Service module exports."""

from . import cash, ledger, market_data, portfolio, positions, reports, seed, snapshots

__all__ = [
    "cash",
    "ledger",
    "market_data",
    "portfolio",
    "positions",
    "reports",
    "seed",
    "snapshots",
]
