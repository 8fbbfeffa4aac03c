"""Position aggregation: fold the ledger into holdings and value them.

Holdings are never patched in place. Every valuation pass folds the full
transaction history from scratch:

* stock and crypto buys merge into one ``Position`` per asset using a
  weighted-average cost basis; sells reduce quantity without touching the
  average, and a position sold down to zero disappears;
* every insurance purchase is its own ``InsurancePolicy`` until a cancel
  names it.

Live prices are overlaid afterwards. An asset without a live quote keeps its
last known price and is flagged ``stale``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Iterator, Mapping, Optional, Union

from ..errors import InsufficientHoldingsError, ValidationError
from ..models.portfolio import Holding
from ..models.transaction import AssetClass, Transaction, TransactionKind
from .market_data import MarketQuote

# Float noise tolerated when comparing a sell against the held quantity
QUANTITY_EPSILON = 1e-9

# Stock symbols and coin ids are separate namespaces
QuoteKey = tuple[AssetClass, str]


def quote_key(asset_class: AssetClass, asset_id: str) -> QuoteKey:
    return AssetClass(asset_class), asset_id


def index_quotes(asset_class: AssetClass, quotes: Iterable[MarketQuote]) -> dict[QuoteKey, MarketQuote]:
    return {quote_key(asset_class, quote.id): quote for quote in quotes}


@dataclass(slots=True)
class Position:
    """Aggregate stock or crypto holding for one asset."""

    asset_id: str
    asset_name: str
    asset_class: AssetClass
    quantity: float
    avg_buy_price: float
    current_price: float = 0.0
    change_24h: float = 0.0
    stale: bool = False

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.avg_buy_price

    @property
    def total_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def profit(self) -> float:
        return self.total_value - self.cost_basis

    @property
    def profit_percentage(self) -> float:
        if self.avg_buy_price == 0:
            return 0.0
        return (self.current_price / self.avg_buy_price - 1) * 100


@dataclass(slots=True)
class InsurancePolicy:
    """One purchased policy, identified by the buy transaction that opened it."""

    asset_class: ClassVar[AssetClass] = AssetClass.INSURANCE

    policy_id: str
    asset_id: str
    asset_name: str
    premium: float
    purchased_at: int
    status: str = "Active"

    @property
    def total_value(self) -> float:
        return self.premium


HeldAsset = Union[Position, InsurancePolicy]


@dataclass(frozen=True, slots=True)
class ValuationTotals:
    """Portfolio value broken down by asset class."""

    stocks_value: float = 0.0
    crypto_value: float = 0.0
    insurance_value: float = 0.0

    @property
    def total_value(self) -> float:
        return self.stocks_value + self.crypto_value + self.insurance_value

    def value_for(self, asset_class: AssetClass) -> float:
        if asset_class == AssetClass.STOCK:
            return self.stocks_value
        if asset_class == AssetClass.CRYPTO:
            return self.crypto_value
        return self.insurance_value


@dataclass(slots=True)
class PortfolioHoldings:
    """Result of one valuation pass."""

    stocks: list[Position] = field(default_factory=list)
    crypto: list[Position] = field(default_factory=list)
    insurance: list[InsurancePolicy] = field(default_factory=list)

    def positions(self) -> list[Position]:
        return [*self.stocks, *self.crypto]

    def __iter__(self) -> Iterator[HeldAsset]:
        yield from self.stocks
        yield from self.crypto
        yield from self.insurance

    def __len__(self) -> int:
        return len(self.stocks) + len(self.crypto) + len(self.insurance)

    def find(self, asset_id: str) -> Optional[Position]:
        for position in self.positions():
            if position.asset_id == asset_id:
                return position
        return None

    def find_policy(self, policy_id: str) -> Optional[InsurancePolicy]:
        for policy in self.insurance:
            if policy.policy_id == policy_id:
                return policy
        return None

    @property
    def has_stale_prices(self) -> bool:
        return any(position.stale for position in self.positions())

    def totals(self) -> ValuationTotals:
        return ValuationTotals(
            stocks_value=sum(p.total_value for p in self.stocks),
            crypto_value=sum(p.total_value for p in self.crypto),
            insurance_value=sum(p.total_value for p in self.insurance),
        )


@dataclass(slots=True)
class _Fold:
    positions: dict[QuoteKey, Position] = field(default_factory=dict)
    policies: dict[str, InsurancePolicy] = field(default_factory=dict)


def _apply_buy(state: _Fold, tx: Transaction) -> None:
    if tx.asset_class == AssetClass.INSURANCE:
        state.policies[tx.id] = InsurancePolicy(
            policy_id=tx.id,
            asset_id=tx.asset_id,
            asset_name=tx.asset_name,
            premium=tx.unit_price,
            purchased_at=tx.timestamp,
        )
        return

    key = quote_key(tx.asset_class, tx.asset_id)
    existing = state.positions.get(key)
    if existing is None:
        state.positions[key] = Position(
            asset_id=tx.asset_id,
            asset_name=tx.asset_name,
            asset_class=tx.asset_class,
            quantity=tx.quantity,
            avg_buy_price=tx.unit_price,
            current_price=tx.unit_price,
        )
        return

    new_quantity = existing.quantity + tx.quantity
    new_cost_total = existing.quantity * existing.avg_buy_price + tx.quantity * tx.unit_price
    existing.quantity = new_quantity
    existing.avg_buy_price = new_cost_total / new_quantity
    existing.current_price = tx.unit_price


def _apply_sell(state: _Fold, tx: Transaction) -> None:
    if tx.asset_class == AssetClass.INSURANCE:
        raise ValidationError("Insurance policies are cancelled, not sold")

    key = quote_key(tx.asset_class, tx.asset_id)
    existing = state.positions.get(key)
    held = existing.quantity if existing else 0.0
    if existing is None or tx.quantity > held + QUANTITY_EPSILON:
        raise InsufficientHoldingsError(tx.asset_id, tx.quantity, held)

    remaining = held - tx.quantity
    if remaining <= QUANTITY_EPSILON:
        del state.positions[key]
        return
    existing.quantity = remaining
    existing.current_price = tx.unit_price


def _apply_cancel(state: _Fold, tx: Transaction) -> None:
    if tx.asset_class != AssetClass.INSURANCE:
        raise ValidationError("Only insurance policies can be cancelled")

    policy = state.policies.get(tx.policy_id or "")
    if policy is None or policy.asset_id != tx.asset_id:
        raise InsufficientHoldingsError(tx.policy_id or tx.asset_id, 1, 0)
    del state.policies[policy.policy_id]


_HANDLERS = {
    TransactionKind.BUY: _apply_buy,
    TransactionKind.SELL: _apply_sell,
    TransactionKind.CANCEL: _apply_cancel,
}


def fold_transactions(transactions: Iterable[Transaction]) -> PortfolioHoldings:
    """Replay the ledger oldest first and return unpriced holdings.

    Positions carry their last trade price as ``current_price``. Raises
    ``InsufficientHoldingsError`` at the first sell or cancel the history
    cannot cover.
    """
    # sorted() is stable: equal timestamps keep insertion order
    ordered = sorted(transactions, key=lambda tx: tx.timestamp)
    state = _Fold()
    for tx in ordered:
        handler = _HANDLERS.get(TransactionKind(tx.kind))
        if handler is None:  # pragma: no cover - TransactionKind is closed
            raise ValidationError(f"Unsupported transaction kind: {tx.kind!r}")
        handler(state, tx)

    holdings = PortfolioHoldings()
    for position in state.positions.values():
        if position.asset_class == AssetClass.STOCK:
            holdings.stocks.append(position)
        else:
            holdings.crypto.append(position)
    holdings.insurance.extend(state.policies.values())
    return holdings


def apply_quotes(
    holdings: PortfolioHoldings,
    quotes: Mapping[QuoteKey, MarketQuote],
    last_known: Mapping[QuoteKey, MarketQuote] | None = None,
) -> PortfolioHoldings:
    """Overlay prices on stock and crypto positions in place.

    Positions without a live quote take the ``last_known`` price when there is
    one and otherwise keep their last trade price; either way they are marked
    stale. Quotes flagged ``stale`` (catalog fallbacks) count as missing.
    """
    last_known = last_known or {}
    for position in holdings.positions():
        key = quote_key(position.asset_class, position.asset_id)
        quote = quotes.get(key)
        if quote is not None and not quote.stale:
            position.current_price = quote.price
            position.change_24h = quote.change_24h_pct
            position.stale = False
            continue
        previous = last_known.get(key)
        if previous is not None:
            position.current_price = previous.price
            position.change_24h = previous.change_24h_pct
        position.stale = True
    return holdings


def compute_positions(
    transactions: Iterable[Transaction],
    quotes: Mapping[QuoteKey, MarketQuote],
    last_known: Mapping[QuoteKey, MarketQuote] | None = None,
) -> PortfolioHoldings:
    """Pure valuation: ledger plus prices in, priced holdings out."""
    return apply_quotes(fold_transactions(transactions), quotes, last_known)


def best_performer(holdings: PortfolioHoldings) -> Optional[Position]:
    """Stock or crypto position with the highest positive profit percentage."""
    best: Optional[Position] = None
    for position in holdings.positions():
        if position.profit_percentage <= 0:
            continue
        if best is None or position.profit_percentage > best.profit_percentage:
            best = position
    return best


def to_holding_rows(holdings: PortfolioHoldings, *, updated_at=None) -> list[Holding]:
    """Flatten a valuation pass into persistable ``Holding`` rows."""
    rows = [
        Holding(
            holding_key=f"{AssetClass(position.asset_class).value}:{position.asset_id}",
            asset_id=position.asset_id,
            asset_name=position.asset_name,
            asset_class=position.asset_class,
            quantity=position.quantity,
            avg_buy_price=position.avg_buy_price,
            current_price=position.current_price,
            change_24h=position.change_24h,
            stale=position.stale,
            updated_at=updated_at,
        )
        for position in holdings.positions()
    ]
    rows.extend(
        Holding(
            holding_key=policy.policy_id,
            asset_id=policy.asset_id,
            asset_name=policy.asset_name,
            asset_class=AssetClass.INSURANCE,
            quantity=1.0,
            avg_buy_price=policy.premium,
            current_price=policy.premium,
            acquired_at=policy.purchased_at,
            updated_at=updated_at,
        )
        for policy in holdings.insurance
    )
    return rows


def last_known_quotes(rows: Iterable[Holding]) -> dict[QuoteKey, MarketQuote]:
    """Prices recorded by a previous valuation pass, keyed by class and asset id."""
    return {
        quote_key(row.asset_class, row.asset_id): MarketQuote(
            id=row.asset_id,
            name=row.asset_name,
            ticker=row.asset_id.upper(),
            price=row.current_price,
            change_24h_pct=row.change_24h,
        )
        for row in rows
        if AssetClass(row.asset_class).is_tradable
    }
