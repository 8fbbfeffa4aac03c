"""Price oracle implementations: live HTTP sources with a static fallback catalog.

Every oracle answers ``fetch_prices(asset_class)`` with the same
``MarketQuote`` shape, so the valuation code never knows whether a price came
from CoinGecko, Alpha Vantage or the bundled catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Optional, Protocol

import httpx

from ..config import BaseConfig
from ..constants import catalog
from ..errors import StaleDataError
from ..logging_config import get_logger
from ..models.transaction import AssetClass

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class MarketQuote:
    """Current price of one asset.

    ``stale`` marks a catalog price served in place of a failed live source.
    """

    id: str
    name: str
    ticker: str
    price: float
    change_24h_pct: float = 0.0
    stale: bool = False

    @classmethod
    def from_catalog(cls, entry: Mapping[str, Any], *, stale: bool = False) -> "MarketQuote":
        return cls(
            id=entry["id"],
            name=entry["name"],
            ticker=entry["ticker"],
            price=float(entry["price"]),
            change_24h_pct=float(entry.get("change", 0.0)),
            stale=stale,
        )


class PriceOracle(Protocol):
    """Anything that can quote current prices for an asset class."""

    def fetch_prices(self, asset_class: AssetClass) -> list[MarketQuote]:  # pragma: no cover
        """Return quotes for the class; raise ``StaleDataError`` when unavailable."""
        ...


class StaticPriceOracle:
    """Deterministic oracle backed by the bundled catalog.

    Used offline, in tests, and as the fallback when live sources fail.
    Prices can be overridden or withdrawn to simulate market moves.
    """

    def __init__(
        self,
        stocks: Iterable[Mapping[str, Any]] | None = None,
        crypto: Iterable[Mapping[str, Any]] | None = None,
    ) -> None:
        self._quotes: dict[AssetClass, dict[str, MarketQuote]] = {
            AssetClass.STOCK: self._index(catalog.STOCKS if stocks is None else stocks),
            AssetClass.CRYPTO: self._index(catalog.CRYPTO if crypto is None else crypto),
            AssetClass.INSURANCE: {},
        }

    @staticmethod
    def _index(entries: Iterable[Mapping[str, Any]]) -> dict[str, MarketQuote]:
        quotes = (MarketQuote.from_catalog(entry) for entry in entries)
        return {quote.id: quote for quote in quotes}

    def fetch_prices(self, asset_class: AssetClass) -> list[MarketQuote]:
        return list(self._quotes[asset_class].values())

    def set_price(
        self, asset_class: AssetClass, asset_id: str, price: float, change_24h_pct: float = 0.0
    ) -> MarketQuote:
        existing = self._quotes[asset_class].get(asset_id)
        quote = MarketQuote(
            id=asset_id,
            name=existing.name if existing else asset_id,
            ticker=existing.ticker if existing else asset_id.upper(),
            price=price,
            change_24h_pct=change_24h_pct,
        )
        self._quotes[asset_class][asset_id] = quote
        return quote

    def remove(self, asset_class: AssetClass, asset_id: str) -> None:
        self._quotes[asset_class].pop(asset_id, None)


class LivePriceOracle:
    """CoinGecko for crypto, Alpha Vantage GLOBAL_QUOTE for stocks."""

    def __init__(
        self,
        *,
        alpha_vantage_key: str = "demo",
        coingecko_key: Optional[str] = None,
        timeout: float = 10.0,
        stock_symbols: Iterable[str] | None = None,
        coingecko_base_url: str = BaseConfig.COINGECKO_BASE_URL,
        alpha_vantage_url: str = BaseConfig.ALPHA_VANTAGE_BASE_URL,
    ) -> None:
        headers: dict[str, str] = {}
        if coingecko_key:
            headers["x-cg-demo-api-key"] = coingecko_key
        self._crypto_client = httpx.Client(
            base_url=coingecko_base_url, headers=headers, timeout=timeout
        )
        self._stock_client = httpx.Client(timeout=timeout)
        self._alpha_vantage_url = alpha_vantage_url
        self._alpha_vantage_key = alpha_vantage_key
        self._stock_symbols = list(stock_symbols or catalog.STOCK_SYMBOLS)
        self._stock_fallback = {entry["id"]: entry for entry in catalog.STOCKS}

    def close(self) -> None:
        self._crypto_client.close()
        self._stock_client.close()

    def fetch_prices(self, asset_class: AssetClass) -> list[MarketQuote]:
        if asset_class is AssetClass.CRYPTO:
            return self._fetch_crypto()
        if asset_class is AssetClass.STOCK:
            return self._fetch_stocks()
        return []

    def _fetch_crypto(self) -> list[MarketQuote]:
        try:
            response = self._crypto_client.get(
                "/coins/markets",
                params={
                    "vs_currency": "inr",
                    "order": "market_cap_desc",
                    "per_page": 20,
                    "page": 1,
                    "sparkline": "false",
                    "price_change_percentage": "24h",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise StaleDataError(f"CoinGecko request failed: {exc}") from exc

        quotes = []
        for coin in payload:
            try:
                quotes.append(
                    MarketQuote(
                        id=coin["id"],
                        name=coin["name"],
                        ticker=str(coin["symbol"]).upper(),
                        price=float(coin["current_price"]),
                        change_24h_pct=float(coin.get("price_change_percentage_24h") or 0.0),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed CoinGecko entry: {coin!r}")
        logger.info(f"Fetched {len(quotes)} crypto quotes from CoinGecko")
        return quotes

    def _fetch_stocks(self) -> list[MarketQuote]:
        quotes: list[MarketQuote] = []
        live_count = 0
        for symbol in self._stock_symbols:
            try:
                quote = self._fetch_stock_quote(symbol)
            except httpx.HTTPError as exc:
                # A failing symbol falls back to its catalog entry, flagged stale.
                logger.warning(f"Alpha Vantage request for {symbol} failed: {exc}")
                entry = self._stock_fallback.get(symbol)
                if entry:
                    quotes.append(MarketQuote.from_catalog(entry, stale=True))
                continue
            if quote is not None:
                quotes.append(quote)
                live_count += 1

        if live_count == 0:
            raise StaleDataError("Alpha Vantage returned no usable stock quotes")
        logger.info(f"Fetched {live_count} stock quotes from Alpha Vantage")
        return quotes

    def _fetch_stock_quote(self, symbol: str) -> Optional[MarketQuote]:
        response = self._stock_client.get(
            self._alpha_vantage_url,
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self._alpha_vantage_key},
        )
        response.raise_for_status()
        try:
            quote = response.json().get("Global Quote") or {}
            price = float(quote["05. price"])
            change_pct = float(str(quote.get("10. change percent", "0")).rstrip("%") or 0)
        except (KeyError, TypeError, ValueError):
            # Rate-limit notes and unknown symbols come back without a quote body.
            return None

        ticker = symbol.split(".")[0]
        entry = self._stock_fallback.get(symbol)
        return MarketQuote(
            id=symbol,
            name=entry["name"] if entry else symbol,
            ticker=ticker,
            price=price,
            change_24h_pct=change_pct,
        )


class FallbackPriceOracle:
    """Serve quotes from ``primary``; on ``StaleDataError`` serve ``fallback``.

    Fallback quotes come back flagged ``stale``.
    """

    def __init__(self, primary: PriceOracle, fallback: PriceOracle) -> None:
        self.primary = primary
        self.fallback = fallback

    def fetch_prices(self, asset_class: AssetClass) -> list[MarketQuote]:
        try:
            return self.primary.fetch_prices(asset_class)
        except StaleDataError as exc:
            logger.warning(
                f"Live {asset_class.value} prices unavailable, using fallback catalog: {exc}"
            )
            return [replace(quote, stale=True) for quote in self.fallback.fetch_prices(asset_class)]


def build_price_oracle(config: BaseConfig) -> PriceOracle:
    """Return the oracle the configuration asks for."""
    if config.OFFLINE:
        return StaticPriceOracle()
    live = LivePriceOracle(
        alpha_vantage_key=config.ALPHA_VANTAGE_KEY,
        coingecko_key=config.COINGECKO_KEY,
        timeout=config.HTTP_TIMEOUT,
    )
    return FallbackPriceOracle(live, StaticPriceOracle())


def insurance_products() -> list[dict[str, Any]]:
    """Insurance products offered for purchase."""
    return [dict(entry) for entry in catalog.INSURANCE]


def find_insurance_product(product_id: str) -> Optional[dict[str, Any]]:
    for entry in catalog.INSURANCE:
        if entry["id"] == product_id:
            return dict(entry)
    return None
