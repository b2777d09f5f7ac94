"""
simulator.py – synthetic quotes when no live upstream is available
==================================================================
Every tick perturbs each base price by at most ±0.005 % and adds a
class-specific spread.  Needs no credentials and never fails.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional

import numpy as np

from shared.logging import get_logger
from shared.utils import pip_size

from .quotes import Quote, QuoteCache
from .symbols import categorize

log = get_logger("price_feed.simulator")

BASE_PRICES: Dict[str, float] = {
    "EURUSD": 1.0850, "GBPUSD": 1.2650, "USDJPY": 149.50, "USDCHF": 0.8850,
    "AUDUSD": 0.6550, "NZDUSD": 0.6150, "USDCAD": 1.3550, "EURGBP": 0.8580,
    "EURJPY": 162.20, "GBPJPY": 189.10, "XAUUSD": 2025.50, "XAGUSD": 23.15,
    "BTCUSD": 43500, "ETHUSD": 2280, "USOIL": 78.50, "UKOIL": 82.30,
    "XRPUSD": 0.62, "SOLUSD": 98.50, "BNBUSD": 310, "ADAUSD": 0.55,
    "DOGEUSD": 0.085, "NGAS": 2.85,
}

VARIATION   = 0.0001          # full band → ±0.005 % of base
FX_SPREAD_PIPS = 3
METAL_SPREAD = {"XAUUSD": 0.50, "XAGUSD": 0.03}
CRYPTO_SPREAD_PCT = 0.0005
ENERGY_SPREAD = 0.03


def spread_for(symbol: str, base: float) -> float:
    """Absolute spread: pips for FX, fixed for metals/energy, % for crypto."""
    category = categorize(symbol)
    if category == "Metals":
        return METAL_SPREAD.get(symbol, 0.10)
    if category == "Crypto":
        return base * CRYPTO_SPREAD_PCT
    if category == "Energy":
        return ENERGY_SPREAD if base > 10 else 0.005
    return FX_SPREAD_PIPS * pip_size(symbol)


class SimulatedFeed:
    def __init__(
        self,
        cache: QuoteCache,
        interval: float = 0.5,
        base_prices: Optional[Dict[str, float]] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.interval = interval
        self.base_prices = dict(base_prices or BASE_PRICES)
        self._rng = np.random.default_rng(seed)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> Dict[str, Quote]:
        """Generate and cache one quote per catalog symbol."""
        out: Dict[str, Quote] = {}
        for symbol, base in self.base_prices.items():
            bid = base + (self._rng.random() - 0.5) * base * VARIATION
            quote = Quote(symbol, float(bid), float(bid + spread_for(symbol, base)))
            self.cache.put(quote)
            out[symbol] = quote
        return out

    def start(self) -> None:
        self._stop.clear()
        self.tick()
        self._thread = threading.Thread(target=self._run, name="price-simulator", daemon=True)
        self._thread.start()
        log.info("simulated prices active (%d symbols every %.1f s)",
                 len(self.base_prices), self.interval)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.tick()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
