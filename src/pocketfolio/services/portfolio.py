"""Portfolio orchestration: trades, price refresh and valuation passes.

The ledger store replays its history *with* a new transaction before recording
it, so an oversell never reaches storage. Once recorded, holdings are
recomputed from the full ledger and today's snapshot updated. Refreshes only
ever read the ledger, and quotes are fetched outside the write lock so a slow
price feed never holds up a trade.
"""

from __future__ import annotations

import threading
from typing import Optional

from ..clock import Clock, SystemClock, utc_now
from ..domain.repositories import HoldingRepository, SnapshotRepository
from ..errors import (
    InsufficientHoldingsError,
    PersistenceError,
    StaleDataError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models.transaction import AssetClass, Transaction, TransactionKind
from .ledger import LedgerStore
from .market_data import MarketQuote, PriceOracle, find_insurance_product
from .positions import (
    InsurancePolicy,
    PortfolioHoldings,
    QuoteKey,
    ValuationTotals,
    compute_positions,
    fold_transactions,
    index_quotes,
    last_known_quotes,
    to_holding_rows,
)
from .snapshots import SnapshotRecorder

logger = get_logger(__name__)

PRICED_CLASSES = (AssetClass.STOCK, AssetClass.CRYPTO)


class PortfolioService:
    """Entry point for buy/sell/cancel actions and periodic refreshes."""

    def __init__(
        self,
        *,
        ledger: LedgerStore,
        holdings: HoldingRepository,
        oracle: PriceOracle,
        snapshots: SnapshotRepository | None = None,
        recorder: SnapshotRecorder | None = None,
        clock: Clock | None = None,
        retention: int = 365,
    ) -> None:
        self.ledger = ledger
        self.holding_repo = holdings
        self.oracle = oracle
        self.clock = clock or SystemClock()
        if recorder is None:
            if snapshots is None:
                raise ValueError("Either a snapshot repository or a recorder is required")
            recorder = SnapshotRecorder(
                snapshots, self.valuation, clock=self.clock, retention=retention
            )
        self.recorder = recorder
        self._live_quotes: dict[AssetClass, dict[str, MarketQuote]] = {
            asset_class: {} for asset_class in PRICED_CLASSES
        }
        # Scheduler jobs run on a worker thread; writes and refreshes take turns.
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------
    def _quotes(self) -> dict[QuoteKey, MarketQuote]:
        with self._lock:
            merged: dict[QuoteKey, MarketQuote] = {}
            for asset_class, quotes in self._live_quotes.items():
                merged.update(index_quotes(asset_class, quotes.values()))
            return merged

    def _fetch_quotes(self) -> tuple[dict[AssetClass, dict[str, MarketQuote]], bool]:
        """Ask the oracle for every priced class without holding the lock."""
        fetched: dict[AssetClass, dict[str, MarketQuote]] = {}
        fresh = True
        for asset_class in PRICED_CLASSES:
            try:
                quotes = self.oracle.fetch_prices(asset_class)
            except StaleDataError as exc:
                # Keep last known prices in play; the next tick retries.
                logger.warning(f"Price refresh for {asset_class.value} failed: {exc}")
                fetched[asset_class] = {}
                fresh = False
                continue
            fetched[asset_class] = {quote.id: quote for quote in quotes}
            fresh = fresh and not any(quote.stale for quote in quotes)
        return fetched, fresh

    def refresh_quotes(self) -> bool:
        """Pull fresh quotes for every priced class; return False if any were stale."""
        fetched, fresh = self._fetch_quotes()
        with self._lock:
            self._live_quotes.update(fetched)
        return fresh

    def quote(self, asset_class: AssetClass, asset_id: str) -> Optional[MarketQuote]:
        """Current quote for an asset, fetching its class when not yet cached."""
        if asset_class not in PRICED_CLASSES:
            return None
        with self._lock:
            cached = self._live_quotes[asset_class].get(asset_id)
        if cached is not None:
            return cached
        try:
            quotes = {q.id: q for q in self.oracle.fetch_prices(asset_class)}
        except StaleDataError as exc:
            logger.warning(f"Could not quote {asset_id}: {exc}")
            return None
        with self._lock:
            self._live_quotes[asset_class] = quotes
        return quotes.get(asset_id)

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------
    def holdings(self) -> PortfolioHoldings:
        """Recompute holdings from the ledger with the latest known prices."""
        last_known = last_known_quotes(self.holding_repo.list_all())
        return compute_positions(self.ledger.all(), self._quotes(), last_known)

    def valuation(self) -> ValuationTotals:
        return self.holdings().totals()

    def revalue(self) -> PortfolioHoldings:
        """Recompute, persist holdings and upsert today's snapshot."""
        with self._lock:
            holdings = self.holdings()
            self.holding_repo.replace_all(to_holding_rows(holdings, updated_at=utc_now(self.clock)))
            self.recorder.record_today(holdings.totals())
            if holdings.has_stale_prices:
                stale = [p.asset_id for p in holdings.positions() if p.stale]
                logger.warning(f"Valued with stale prices for: {', '.join(stale)}")
            return holdings

    def refresh_prices(self) -> PortfolioHoldings:
        """Fetch new quotes, then run a valuation pass.

        Only the cache swap and the valuation pass take the lock; trades keep
        flowing while the oracle is slow.
        """
        self.refresh_quotes()
        return self.revalue()

    def initialize(self) -> PortfolioHoldings:
        """Create the first snapshot if none exists, then refresh prices."""
        with self._lock:
            if not self.recorder.snapshots():
                self.revalue()
        return self.refresh_prices()

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------
    def _commit(self, tx: Transaction) -> Transaction:
        with self._lock:
            stored = self.ledger.record(tx)
            try:
                self.revalue()
            except PersistenceError:
                # The trade is committed; derived state catches up next pass.
                logger.error(f"Revaluation after {stored.id} failed", exc_info=True)
            return stored

    def _resolve_trade(
        self,
        asset_class: AssetClass,
        asset_id: str,
        unit_price: Optional[float],
        asset_name: Optional[str],
    ) -> tuple[float, str]:
        if not asset_class.is_tradable:
            raise ValidationError("Use purchase_policy/cancel_policy for insurance")
        if unit_price is not None and asset_name is not None:
            return unit_price, asset_name
        quote = self.quote(asset_class, asset_id)
        if unit_price is None:
            if quote is None:
                raise ValidationError(f"No price available for {asset_id!r}; pass unit_price")
            unit_price = quote.price
        if asset_name is None:
            held = self.holdings().find(asset_id)
            asset_name = quote.name if quote else (held.asset_name if held else asset_id)
        return unit_price, asset_name

    def buy(
        self,
        asset_class: AssetClass,
        asset_id: str,
        quantity: float,
        *,
        unit_price: Optional[float] = None,
        asset_name: Optional[str] = None,
    ) -> Transaction:
        """Buy ``quantity`` units, at the current quote unless ``unit_price`` is given."""
        price, name = self._resolve_trade(asset_class, asset_id, unit_price, asset_name)
        tx = self.ledger.new_transaction(
            asset_id=asset_id,
            asset_name=name,
            asset_class=asset_class,
            kind=TransactionKind.BUY,
            quantity=quantity,
            unit_price=price,
        )
        return self._commit(tx)

    def sell(
        self,
        asset_class: AssetClass,
        asset_id: str,
        quantity: float,
        *,
        unit_price: Optional[float] = None,
        asset_name: Optional[str] = None,
    ) -> Transaction:
        """Sell ``quantity`` units; raises ``InsufficientHoldingsError`` on oversell."""
        price, name = self._resolve_trade(asset_class, asset_id, unit_price, asset_name)
        tx = self.ledger.new_transaction(
            asset_id=asset_id,
            asset_name=name,
            asset_class=asset_class,
            kind=TransactionKind.SELL,
            quantity=quantity,
            unit_price=price,
        )
        return self._commit(tx)

    def purchase_policy(
        self,
        product_id: str,
        *,
        premium: Optional[float] = None,
        name: Optional[str] = None,
    ) -> Transaction:
        """Buy one insurance policy; each purchase is its own line item."""
        product = find_insurance_product(product_id)
        if premium is None:
            if product is None:
                raise ValidationError(f"Unknown insurance product {product_id!r}; pass premium")
            premium = float(product["premium"])
        if name is None:
            name = product["name"] if product else product_id
        tx = self.ledger.new_transaction(
            asset_id=product_id,
            asset_name=name,
            asset_class=AssetClass.INSURANCE,
            kind=TransactionKind.BUY,
            quantity=1.0,
            unit_price=premium,
        )
        return self._commit(tx)

    def cancel_policy(self, policy_id: str) -> Transaction:
        """Cancel one held policy by the id of the transaction that bought it."""
        policy: Optional[InsurancePolicy] = fold_transactions(self.ledger.all()).find_policy(
            policy_id
        )
        if policy is None:
            raise InsufficientHoldingsError(policy_id, 1, 0)
        tx = self.ledger.new_transaction(
            asset_id=policy.asset_id,
            asset_name=policy.asset_name,
            asset_class=AssetClass.INSURANCE,
            kind=TransactionKind.CANCEL,
            quantity=1.0,
            unit_price=0.0,
            policy_id=policy.policy_id,
        )
        return self._commit(tx)
