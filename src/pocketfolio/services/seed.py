"""Demo data seed for trying the tracker without real trades."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..logging_config import get_logger
from ..models.transaction import AssetClass, Transaction
from .portfolio import PortfolioService

logger = get_logger(__name__)

# (asset class, asset id, name, quantity, unit price)
DEMO_TRADES = [
    (AssetClass.CRYPTO, "bitcoin", "Bitcoin", 0.05, 3_500_000.0),
    (AssetClass.CRYPTO, "ethereum", "Ethereum", 0.5, 180_000.0),
    (AssetClass.STOCK, "RELIANCE.BSE", "Reliance Industries", 10.0, 2_750.0),
    (AssetClass.STOCK, "INFY.BSE", "Infosys", 15.0, 1_480.0),
]
DEMO_POLICY = "term-life-1cr"


@dataclass(slots=True)
class SeedSummary:
    transactions: list[Transaction] = field(default_factory=list)
    skipped: bool = False

    @property
    def count(self) -> int:
        return len(self.transactions)


def seed_demo(portfolio: PortfolioService, *, force: bool = False) -> SeedSummary:
    """Record a handful of sample trades and one policy.

    Skipped when the ledger already has entries unless ``force`` is set, so
    running it twice does not double the demo portfolio.
    """
    if portfolio.ledger.all() and not force:
        logger.info("Ledger not empty; demo seed skipped")
        return SeedSummary(skipped=True)

    summary = SeedSummary()
    for asset_class, asset_id, name, quantity, price in DEMO_TRADES:
        summary.transactions.append(
            portfolio.buy(asset_class, asset_id, quantity, unit_price=price, asset_name=name)
        )
    summary.transactions.append(portfolio.purchase_policy(DEMO_POLICY))
    logger.info(f"Seeded {summary.count} demo transactions")
    return summary
