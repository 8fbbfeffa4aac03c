"""
Static market catalog used when live price APIs are unreachable or disabled.
Identifiers match the live sources: Alpha Vantage ``SYMBOL.BSE`` ids for
stocks and CoinGecko coin ids for crypto. Prices are in INR.
"""

# Stocks - id, name, ticker, price, 24h change %
STOCKS = [
    {"id": "RELIANCE.BSE", "name": "Reliance Industries", "ticker": "RELIANCE", "price": 2876.45, "change": 1.24},
    {"id": "HDFCBANK.BSE", "name": "HDFC Bank", "ticker": "HDFCBANK", "price": 1678.30, "change": -0.45},
    {"id": "INFY.BSE", "name": "Infosys", "ticker": "INFY", "price": 1456.75, "change": 0.87},
    {"id": "TCS.BSE", "name": "Tata Consultancy Services", "ticker": "TCS", "price": 3789.60, "change": -0.32},
    {"id": "ICICIBANK.BSE", "name": "ICICI Bank", "ticker": "ICICIBANK", "price": 1023.15, "change": 1.56},
]

# Crypto - CoinGecko ids
CRYPTO = [
    {"id": "bitcoin", "name": "Bitcoin", "ticker": "BTC", "price": 3500000.00, "change": 2.35},
    {"id": "ethereum", "name": "Ethereum", "ticker": "ETH", "price": 185000.00, "change": 1.87},
    {"id": "solana", "name": "Solana", "ticker": "SOL", "price": 8200.00, "change": 4.12},
    {"id": "ripple", "name": "XRP", "ticker": "XRP", "price": 42.50, "change": -1.05},
    {"id": "cardano", "name": "Cardano", "ticker": "ADA", "price": 38.20, "change": -0.76},
    {"id": "dogecoin", "name": "Dogecoin", "ticker": "DOGE", "price": 12.85, "change": 3.40},
]

# Alpha Vantage symbols polled for live stock quotes
STOCK_SYMBOLS = [entry["id"] for entry in STOCKS]

# Insurance products - premium is the yearly price of one policy
INSURANCE = [
    {"id": "term-life-1cr", "name": "Term Life Cover", "provider": "LIC", "premium": 12500.00, "coverage": "1 Cr"},
    {"id": "health-family", "name": "Family Health Shield", "provider": "Star Health", "premium": 18000.00, "coverage": "10 Lakh"},
    {"id": "motor-comprehensive", "name": "Comprehensive Motor", "provider": "ICICI Lombard", "premium": 9200.00, "coverage": "IDV 6 Lakh"},
    {"id": "home-secure", "name": "Home Secure", "provider": "HDFC Ergo", "premium": 4500.00, "coverage": "50 Lakh"},
]
