"""
poller.py – REST polling ingestion
==================================
• start(): test-fetch the first priority symbol, then fetch the whole
  priority list once; any failure here propagates so the service can
  fall back to simulated prices.
• background loop: every `interval` s fetch the next `batch_size`
  symbols of the universe (window wraps to 0 at the end).
• per request: 404 → no data, 429 → pause `backoff` s and carry on,
  `request_delay` s between requests regardless.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional, Sequence, Tuple

from shared.credentials import Credentials
from shared.logging import get_logger
from trade_executor.metaapi_client import MetaApiClient, MetaApiError, RateLimitedError

from .quotes import Quote, QuoteCache
from .symbols import ALL_SYMBOLS, PRIORITY_SYMBOLS

log = get_logger("price_feed.poller")


class PollingFeed:
    def __init__(
        self,
        cache: QuoteCache,
        client: MetaApiClient,
        creds: Credentials,
        on_connection: Optional[Callable[[bool], None]] = None,
        symbols: Sequence[str] = ALL_SYMBOLS,
        priority: Sequence[str] = PRIORITY_SYMBOLS,
        batch_size: int = 10,
        interval: float = 2.0,
        request_delay: float = 0.1,
        backoff: float = 2.0,
    ) -> None:
        self.cache = cache
        self.client = client
        self.creds = creds
        self.on_connection = on_connection
        self.symbols = list(symbols)
        self.priority = list(priority)
        self.batch_size = batch_size
        self.interval = interval
        self.request_delay = request_delay
        self.backoff = backoff
        self._index = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ───── single fetches ─────────────────────────────────────────
    def fetch(self, symbol: str) -> Optional[Quote]:
        data = self.client.current_price(self.creds.token, self.creds.account_id,
                                         self.creds.region, symbol)
        return Quote.from_payload(symbol, data) if data else None

    def fetch_batch(self, symbols: Sequence[str]) -> Tuple[int, int]:
        """Fetch sequentially; returns (fetched, errors)."""
        fetched = errors = 0
        for symbol in symbols:
            if self._stop.is_set():
                break
            try:
                quote = self.fetch(symbol)
                if quote is not None:
                    self.cache.put(quote)
                    fetched += 1
            except RateLimitedError:
                errors += 1
                log.warning("rate limited – pausing %.1f s", self.backoff, extra={"symbol": symbol})
                self._stop.wait(self.backoff)
            except MetaApiError as exc:
                errors += 1
                log.debug("price fetch failed – %s", exc.message, extra={"symbol": symbol})
            self._stop.wait(self.request_delay)
        return fetched, errors

    def next_window(self) -> List[str]:
        batch = self.symbols[self._index:self._index + self.batch_size]
        self._index += self.batch_size
        if self._index >= len(self.symbols):
            self._index = 0
        return batch

    # ───── life-cycle ─────────────────────────────────────────────
    def start(self) -> None:
        self._stop.clear()
        probe = self.priority[0] if self.priority else self.symbols[0]
        quote = self.fetch(probe)
        if quote is None:
            raise MetaApiError(None, f"{probe} test price returned nothing")
        self.cache.put(quote)
        log.info("connected – %s bid %s ask %s", probe, quote.bid, quote.ask)
        if self.on_connection:
            self.on_connection(True)

        fetched, _ = self.fetch_batch(self.priority)
        log.info("got %d/%d priority prices", fetched, len(self.priority))

        self._thread = threading.Thread(target=self._run, name="price-poller", daemon=True)
        self._thread.start()
        log.info("polling %d symbols (%d every %.1f s)",
                 len(self.symbols), self.batch_size, self.interval)

    def _run(self) -> None:
        wait = self.interval
        while not self._stop.wait(wait):
            t0 = time.monotonic()
            try:
                self.fetch_batch(self.next_window())
            except Exception:  # noqa: BLE001
                log.exception("poll error")
            wait = max(0.0, self.interval - (time.monotonic() - t0))

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
