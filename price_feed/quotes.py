"""
quotes.py – immutable quotes and the process-wide quote cache
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.logging import get_logger

log = get_logger("price_feed.quotes")

PriceListener = Callable[[str, "Quote"], None]


@dataclass(frozen=True)
class Quote:
    symbol: str
    bid: float
    ask: float
    observed_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.bid is None or self.ask is None:
            raise ValueError(f"{self.symbol}: bid and ask are required")
        if self.bid < 0 or self.ask < 0:
            raise ValueError(f"{self.symbol}: negative price ({self.bid}/{self.ask})")

    @property
    def mid(self) -> float:
        return (self.bid + self.ask) / 2

    @classmethod
    def from_payload(cls, symbol: str, data: Dict[str, Any]) -> Optional["Quote"]:
        """Quote from an upstream `{bid, ask}` payload; None if unusable."""
        try:
            return cls(symbol, float(data["bid"]), float(data["ask"]))
        except (KeyError, TypeError, ValueError):
            return None

    def to_dict(self) -> Dict[str, Any]:
        return {"bid": self.bid, "ask": self.ask, "mid": self.mid, "time": self.observed_at}


class QuoteCache:
    """
    symbol → latest Quote, guarded by a lock.  Listeners fire only when a
    symbol’s bid or ask actually changed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._quotes: Dict[str, Quote] = {}
        self._listeners: List[PriceListener] = []

    def add_listener(self, fn: PriceListener) -> None:
        self._listeners.append(fn)

    def put(self, quote: Quote) -> bool:
        """Store `quote`; returns True when it differs from the previous one."""
        with self._lock:
            old = self._quotes.get(quote.symbol)
            self._quotes[quote.symbol] = quote
        changed = old is None or old.bid != quote.bid or old.ask != quote.ask
        if changed:
            for fn in self._listeners:
                try:
                    fn(quote.symbol, quote)
                except Exception:  # noqa: BLE001
                    log.exception("price listener failed", extra={"symbol": quote.symbol})
        return changed

    def get(self, symbol: str) -> Optional[Quote]:
        with self._lock:
            return self._quotes.get(symbol)

    def get_many(self, symbols: Iterable[str]) -> Dict[str, Quote]:
        with self._lock:
            return {s: self._quotes[s] for s in symbols if s in self._quotes}

    def snapshot(self) -> Dict[str, Quote]:
        with self._lock:
            return dict(self._quotes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)
