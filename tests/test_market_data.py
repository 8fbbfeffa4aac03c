"""Tests for the price oracles."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from pocketfolio.config import TestConfig
from pocketfolio.errors import StaleDataError
from pocketfolio.models import AssetClass
from pocketfolio.services.market_data import (
    FallbackPriceOracle,
    LivePriceOracle,
    StaticPriceOracle,
    build_price_oracle,
    find_insurance_product,
    insurance_products,
)


def _response(payload, status_code: int = 200, url: str = "https://example.test") -> httpx.Response:
    return httpx.Response(status_code, json=payload, request=httpx.Request("GET", url))


def _global_quote(price: str, change: str = "1.2500%") -> dict:
    return {"Global Quote": {"01. symbol": "X", "05. price": price, "10. change percent": change}}


@pytest.fixture
def live_oracle():
    oracle = LivePriceOracle(stock_symbols=["RELIANCE.BSE", "INFY.BSE"])
    yield oracle
    oracle.close()


def test_static_oracle_serves_catalog():
    oracle = StaticPriceOracle()

    crypto = {q.id: q for q in oracle.fetch_prices(AssetClass.CRYPTO)}
    stocks = {q.id: q for q in oracle.fetch_prices(AssetClass.STOCK)}

    assert crypto["bitcoin"].price == 3_500_000
    assert crypto["bitcoin"].ticker == "BTC"
    assert stocks["RELIANCE.BSE"].name == "Reliance Industries"
    assert oracle.fetch_prices(AssetClass.INSURANCE) == []


def test_static_oracle_overrides_and_removals():
    oracle = StaticPriceOracle()

    quote = oracle.set_price(AssetClass.CRYPTO, "bitcoin", 4_000_000, 5.0)
    oracle.remove(AssetClass.STOCK, "TCS.BSE")

    assert quote.name == "Bitcoin"
    assert {q.id: q.price for q in oracle.fetch_prices(AssetClass.CRYPTO)}["bitcoin"] == 4_000_000
    assert "TCS.BSE" not in {q.id for q in oracle.fetch_prices(AssetClass.STOCK)}


def test_live_crypto_quotes_parse_coingecko_markets(live_oracle):
    payload = [
        {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "current_price": 3_612_000,
            "price_change_percentage_24h": 1.9,
        },
        {"id": "broken", "symbol": "brk", "name": "Broken", "current_price": None},
    ]
    with patch.object(live_oracle._crypto_client, "get", return_value=_response(payload)) as mock_get:
        quotes = live_oracle.fetch_prices(AssetClass.CRYPTO)

    assert [q.id for q in quotes] == ["bitcoin"]
    assert quotes[0].ticker == "BTC"
    assert quotes[0].price == 3_612_000
    assert quotes[0].change_24h_pct == 1.9
    params = mock_get.call_args.kwargs["params"]
    assert params["vs_currency"] == "inr"
    assert params["per_page"] == 20


def test_live_crypto_failure_raises_stale(live_oracle):
    with patch.object(
        live_oracle._crypto_client, "get", side_effect=httpx.ConnectError("offline")
    ):
        with pytest.raises(StaleDataError):
            live_oracle.fetch_prices(AssetClass.CRYPTO)


def test_live_crypto_http_error_raises_stale(live_oracle):
    with patch.object(
        live_oracle._crypto_client, "get", return_value=_response({"error": "rate"}, 429)
    ):
        with pytest.raises(StaleDataError):
            live_oracle.fetch_prices(AssetClass.CRYPTO)


def test_live_stock_quotes_parse_global_quote(live_oracle):
    responses = [_response(_global_quote("2901.10")), _response(_global_quote("1490.00", "-0.5%"))]
    with patch.object(live_oracle._stock_client, "get", side_effect=responses) as mock_get:
        quotes = live_oracle.fetch_prices(AssetClass.STOCK)

    assert [(q.id, q.price) for q in quotes] == [("RELIANCE.BSE", 2901.10), ("INFY.BSE", 1490.00)]
    assert quotes[0].ticker == "RELIANCE"
    assert quotes[0].name == "Reliance Industries"
    assert quotes[1].change_24h_pct == -0.5
    assert mock_get.call_args.kwargs["params"]["function"] == "GLOBAL_QUOTE"


def test_live_stock_symbol_failure_uses_catalog_entry(live_oracle):
    responses = [httpx.ReadTimeout("slow"), _response(_global_quote("1490.00"))]
    with patch.object(live_oracle._stock_client, "get", side_effect=responses):
        quotes = {q.id: q for q in live_oracle.fetch_prices(AssetClass.STOCK)}

    assert quotes["RELIANCE.BSE"].price == 2876.45
    assert quotes["RELIANCE.BSE"].stale is True
    assert quotes["INFY.BSE"].price == 1490.00
    assert quotes["INFY.BSE"].stale is False


def test_live_stocks_rate_limited_everywhere_raises_stale(live_oracle):
    note = {"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."}
    with patch.object(live_oracle._stock_client, "get", return_value=_response(note)):
        with pytest.raises(StaleDataError):
            live_oracle.fetch_prices(AssetClass.STOCK)


def test_fallback_oracle_uses_catalog_when_primary_is_stale(live_oracle):
    oracle = FallbackPriceOracle(live_oracle, StaticPriceOracle())

    with patch.object(
        live_oracle._crypto_client, "get", side_effect=httpx.ConnectError("offline")
    ):
        quotes = {q.id: q for q in oracle.fetch_prices(AssetClass.CRYPTO)}

    assert quotes["bitcoin"].price == 3_500_000
    assert all(quote.stale for quote in quotes.values())


def test_build_price_oracle_offline_is_static():
    assert isinstance(build_price_oracle(TestConfig()), StaticPriceOracle)


def test_build_price_oracle_online_wraps_live_with_fallback():
    config = TestConfig()
    config.OFFLINE = False

    oracle = build_price_oracle(config)

    assert isinstance(oracle, FallbackPriceOracle)
    assert isinstance(oracle.primary, LivePriceOracle)
    assert isinstance(oracle.fallback, StaticPriceOracle)
    oracle.primary.close()


def test_insurance_catalog_lookup():
    products = insurance_products()

    assert {p["id"] for p in products} >= {"term-life-1cr", "health-family"}
    assert find_insurance_product("term-life-1cr")["premium"] == 12500
    assert find_insurance_product("unknown") is None
