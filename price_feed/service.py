#!/usr/bin/env python3
"""
service.py – price feed state machine
=====================================

    DISCONNECTED ─► CONNECTING ─► POLLING | STREAMING
                        │
                        └─(no credentials / setup failure)─► SIMULATED

The live path is tried once per `connect()`; after a fallback only an
explicit `reconnect()` tries it again.  Reads (`get_quote`,
`get_all_quotes`, `get_quotes`) are pure cache lookups and keep working,
frozen, after `disconnect()`.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.config import BridgeSettings, settings
from shared.credentials import CredentialStore, Credentials
from shared.logging import get_logger
from trade_executor.metaapi_client import MetaApiClient

from .poller import PollingFeed
from .quotes import PriceListener, Quote, QuoteCache
from .simulator import SimulatedFeed
from .streamer import StreamingFeed

log = get_logger("price_feed")


class FeedState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING   = "CONNECTING"
    POLLING      = "POLLING"
    STREAMING    = "STREAMING"
    SIMULATED    = "SIMULATED"


class PriceFeedService:
    def __init__(
        self,
        credentials: CredentialStore,
        client: Optional[MetaApiClient] = None,
        cfg: Optional[BridgeSettings] = None,
        mode: Optional[str] = None,
        cache: Optional[QuoteCache] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.cfg = cfg or settings()
        self.credentials = credentials
        self.client = client or MetaApiClient(self.cfg.api_url, self.cfg.http_timeout,
                                              self.cfg.rate_limit_backoff)
        self.mode = (mode or self.cfg.feed_mode).lower()
        self.cache = cache if cache is not None else QuoteCache()
        self.seed = seed
        self.state = FeedState.DISCONNECTED
        self._feed: Any = None
        self._lifecycle = threading.Lock()
        self._conn_lock = threading.Lock()
        self._connected = False
        self._conn_listeners: List[Callable[[bool], None]] = []

    # ───── observers ──────────────────────────────────────────────
    def on_price_update(self, fn: PriceListener) -> None:
        self.cache.add_listener(fn)

    def on_connection_change(self, fn: Callable[[bool], None]) -> None:
        self._conn_listeners.append(fn)

    def _set_connected(self, flag: bool) -> None:
        with self._conn_lock:
            if flag == self._connected:
                return
            self._connected = flag
        log.info("feed %s", "connected" if flag else "disconnected",
                 extra={"state": self.state.value})
        for fn in self._conn_listeners:
            try:
                fn(flag)
            except Exception:  # noqa: BLE001
                log.exception("connection listener failed")

    @property
    def connected(self) -> bool:
        return self._connected

    # ───── life-cycle ─────────────────────────────────────────────
    def connect(self) -> FeedState:
        with self._lifecycle:
            if self.state is not FeedState.DISCONNECTED:
                return self.state

            creds = self.credentials.get()
            if not creds.configured:
                log.warning("no MetaApi credentials – using simulated prices")
                self._start_simulator()
                return self.state

            self.state = FeedState.CONNECTING
            feed = self._build_feed(creds)
            log.info("connecting (%s, region %s)", self.mode, creds.region,
                     extra={"source": creds.source.value})
            try:
                feed.start()
            except Exception as exc:  # noqa: BLE001
                log.error("live connection failed – %s; falling back to simulated prices", exc)
                feed.stop()
                self._start_simulator()
                return self.state

            self._feed = feed
            self.state = FeedState.STREAMING if self.mode == "stream" else FeedState.POLLING
            log.info("live prices active", extra={"state": self.state.value})
            return self.state

    def disconnect(self) -> None:
        with self._lifecycle:
            if self._feed is not None:
                self._feed.stop()
                self._feed = None
            self.state = FeedState.DISCONNECTED
        self._set_connected(False)
        log.info("disconnected")

    def reconnect(self) -> FeedState:
        self.disconnect()
        return self.connect()

    def _build_feed(self, creds: Credentials) -> Any:
        if self.mode == "stream":
            return StreamingFeed(
                self.cache, creds, self.cfg.stream_url,
                on_connection=self._set_connected,
                request_delay=self.cfg.request_delay,
                open_timeout=self.cfg.http_timeout,
            )
        return PollingFeed(
            self.cache, self.client, creds,
            on_connection=self._set_connected,
            batch_size=self.cfg.poll_batch_size,
            interval=self.cfg.poll_interval,
            request_delay=self.cfg.request_delay,
            backoff=self.cfg.rate_limit_backoff,
        )

    def _start_simulator(self) -> None:
        sim = SimulatedFeed(self.cache, self.cfg.sim_interval, seed=self.seed)
        sim.start()
        self._feed = sim
        self.state = FeedState.SIMULATED
        self._set_connected(True)

    # ───── reads ──────────────────────────────────────────────────
    def get_quote(self, symbol: str) -> Optional[Quote]:
        return self.cache.get(symbol)

    def get_all_quotes(self) -> Dict[str, Quote]:
        return self.cache.snapshot()

    def get_quotes(self, symbols: Iterable[str]) -> Dict[str, Quote]:
        return self.cache.get_many(symbols)

    def feed_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "connected": self._connected,
            "price_count": len(self.cache),
        }
