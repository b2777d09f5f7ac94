"""
symbols.py – instrument catalog and per-symbol metadata
=======================================================
Pure lookups only; no I/O.
"""

from __future__ import annotations

from typing import Any, Dict, List

FOREX_SYMBOLS = [
    "EURUSD", "GBPUSD", "USDJPY", "USDCHF", "AUDUSD", "NZDUSD", "USDCAD",
    "EURGBP", "EURJPY", "GBPJPY", "EURCHF", "EURAUD", "EURCAD", "AUDCAD",
    "AUDJPY", "CADJPY", "CHFJPY", "NZDJPY", "AUDNZD", "CADCHF", "GBPCHF",
    "GBPNZD", "EURNZD", "NZDCAD", "NZDCHF", "AUDCHF", "GBPAUD", "GBPCAD",
]

CRYPTO_SYMBOLS = [
    "BTCUSD", "ETHUSD", "BNBUSD", "SOLUSD", "XRPUSD", "ADAUSD", "DOGEUSD",
    "TRXUSD", "LINKUSD", "MATICUSD", "DOTUSD", "SHIBUSD", "LTCUSD", "BCHUSD",
    "AVAXUSD", "XLMUSD", "UNIUSD", "ATOMUSD", "ETCUSD", "FILUSD",
]

METAL_SYMBOLS  = ["XAUUSD", "XAGUSD", "XPTUSD", "XPDUSD"]
ENERGY_SYMBOLS = ["USOIL", "UKOIL", "NGAS"]

STOCK_SYMBOLS = [
    "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA",
    "JPM", "V", "JNJ", "WMT", "PG", "MA", "UNH", "HD",
]

ALL_SYMBOLS: List[str] = (
    FOREX_SYMBOLS + CRYPTO_SYMBOLS + METAL_SYMBOLS + ENERGY_SYMBOLS + STOCK_SYMBOLS
)

# fetched first, before the rotation starts
PRIORITY_SYMBOLS = [
    "EURUSD", "GBPUSD", "USDJPY", "XAUUSD", "XAGUSD", "BTCUSD", "ETHUSD",
    "USDCHF", "AUDUSD", "USDCAD", "EURGBP", "EURJPY", "GBPJPY", "USOIL",
]

CATEGORIES = ("Forex", "Metals", "Energy", "Crypto", "Stocks", "Other")

_EXACT = (
    ("Forex", set(FOREX_SYMBOLS)),
    ("Metals", set(METAL_SYMBOLS)),
    ("Energy", set(ENERGY_SYMBOLS)),
    ("Crypto", set(CRYPTO_SYMBOLS)),
    ("Stocks", set(STOCK_SYMBOLS)),
)

# shown by default in the instrument picker
POPULAR: Dict[str, set] = {
    "Forex": {"EURUSD", "GBPUSD", "USDJPY", "USDCHF", "AUDUSD", "NZDUSD", "USDCAD", "EURGBP",
              "EURJPY", "GBPJPY", "EURCHF", "EURAUD", "AUDCAD", "AUDJPY", "CADJPY"},
    "Metals": {"XAUUSD", "XAGUSD", "XPTUSD", "XPDUSD", "XAUEUR", "XAUAUD", "XAUGBP",
               "XAUCHF", "XAUJPY", "XAGEUR"},
    "Energy": {"USOIL", "UKOIL", "NGAS", "BRENT", "WTI", "GASOLINE", "HEATING"},
    "Crypto": {"BTCUSD", "ETHUSD", "BNBUSD", "SOLUSD", "XRPUSD", "ADAUSD", "DOGEUSD", "DOTUSD",
               "MATICUSD", "LTCUSD", "AVAXUSD", "LINKUSD", "SHIBUSD", "UNIUSD", "ATOMUSD"},
    "Stocks": set(STOCK_SYMBOLS),
}

NAMES: Dict[str, str] = {
    "XAUUSD": "Gold", "XAGUSD": "Silver", "XPTUSD": "Platinum", "XPDUSD": "Palladium",
    "USOIL": "US Oil", "UKOIL": "UK Oil", "NGAS": "Natural Gas",
    "BTCUSD": "Bitcoin", "ETHUSD": "Ethereum", "BNBUSD": "BNB", "SOLUSD": "Solana",
    "XRPUSD": "XRP", "ADAUSD": "Cardano", "DOGEUSD": "Dogecoin", "TRXUSD": "TRON",
    "LINKUSD": "Chainlink", "MATICUSD": "Polygon", "DOTUSD": "Polkadot",
    "SHIBUSD": "Shiba Inu", "LTCUSD": "Litecoin", "BCHUSD": "Bitcoin Cash",
    "AVAXUSD": "Avalanche", "XLMUSD": "Stellar", "UNIUSD": "Uniswap", "ATOMUSD": "Cosmos",
    "ETCUSD": "Ethereum Classic", "FILUSD": "Filecoin",
    "AAPL": "Apple Inc", "MSFT": "Microsoft", "GOOGL": "Alphabet", "AMZN": "Amazon",
    "NVDA": "NVIDIA", "META": "Meta", "TSLA": "Tesla", "JPM": "JPMorgan", "V": "Visa",
    "JNJ": "Johnson & Johnson", "WMT": "Walmart", "PG": "Procter & Gamble",
    "MA": "Mastercard", "UNH": "UnitedHealth", "HD": "Home Depot",
}


def categorize(symbol: str) -> str:
    for category, members in _EXACT:
        if symbol in members:
            return category

    if symbol.startswith(("XAU", "XAG", "XPT", "XPD")):
        return "Metals"
    if "OIL" in symbol or "NGAS" in symbol:
        return "Energy"
    if symbol.endswith("USD"):
        return "Forex" if len(symbol) <= 6 else "Crypto"
    return "Other"


def display_name(symbol: str) -> str:
    if symbol in NAMES:
        return NAMES[symbol]
    if categorize(symbol) == "Forex" and len(symbol) == 6:
        return f"{symbol[:3]}/{symbol[3:]}"
    return symbol


def digits(symbol: str) -> int:
    if "JPY" in symbol:
        return 3
    if symbol == "XAUUSD":
        return 2
    if symbol == "XAGUSD":
        return 3
    if categorize(symbol) in ("Crypto", "Stocks"):
        return 2
    return 5


def contract_size(symbol: str) -> int:
    return {"Crypto": 1, "Stocks": 1, "Metals": 100, "Energy": 1000}.get(categorize(symbol), 100000)


def instrument(symbol: str) -> Dict[str, Any]:
    category = categorize(symbol)
    return {
        "symbol": symbol,
        "name": display_name(symbol),
        "category": category,
        "digits": digits(symbol),
        "contract_size": contract_size(symbol),
        "min_volume": 0.01,
        "max_volume": 100,
        "volume_step": 0.01,
        "popular": symbol in POPULAR.get(category, ()),
    }


def default_instruments() -> List[Dict[str, Any]]:
    """Catalog served when no live quote has arrived yet."""
    return [instrument(s) for s in ALL_SYMBOLS]
