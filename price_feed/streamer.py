"""
streamer.py – websocket streaming ingestion
===========================================
Wire protocol (JSON text frames)
--------------------------------
→ {"type": "subscribeToMarketData", "symbol": "EURUSD"}
← {"type": "prices", "prices": [{"symbol": "EURUSD", "bid": 1.08, "ask": 1.0801}, …]}
← {"type": "status", "connected": true|false}
← {"type": "disconnected"}

The priority symbols are subscribed on the caller’s thread before
`start()` returns; the rest of the universe is subscribed by a
background thread so startup never waits on it.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlencode

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

from shared.credentials import Credentials
from shared.logging import get_logger

from .quotes import Quote, QuoteCache
from .symbols import ALL_SYMBOLS, PRIORITY_SYMBOLS

log = get_logger("price_feed.streamer")

DEFAULT_STREAM_URL = "wss://mt-client-api-v1.{region}.agiliumtrade.ai/ws"


class StreamingFeed:
    def __init__(
        self,
        cache: QuoteCache,
        creds: Credentials,
        url: str = DEFAULT_STREAM_URL,
        on_connection: Optional[Callable[[bool], None]] = None,
        symbols: Sequence[str] = ALL_SYMBOLS,
        priority: Sequence[str] = PRIORITY_SYMBOLS,
        request_delay: float = 0.1,
        open_timeout: float = 10.0,
        connector: Callable[..., Any] = connect,
    ) -> None:
        self.cache = cache
        self.creds = creds
        self.url = url
        self.on_connection = on_connection
        self.symbols = list(symbols)
        self.priority = list(priority)
        self.request_delay = request_delay
        self.open_timeout = open_timeout
        self._connect = connector
        self._ws: Any = None
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    def stream_url(self) -> str:
        base = self.url.format(region=self.creds.region)
        return f"{base}?{urlencode({'accountId': self.creds.account_id})}"

    # ───── life-cycle ─────────────────────────────────────────────
    def start(self) -> None:
        self._stop.clear()
        self._ws = self._connect(
            self.stream_url(),
            additional_headers={"auth-token": self.creds.token},
            open_timeout=self.open_timeout,
        )
        for symbol in self.priority:
            self.subscribe(symbol)
        log.info("stream open – %d priority symbols subscribed", len(self.priority))

        self._spawn(self._read, "price-stream-reader")
        if self.on_connection:
            self.on_connection(True)

        rest = [s for s in self.symbols if s not in set(self.priority)]
        self._spawn(lambda: self._subscribe_all(rest), "price-stream-subscriber")

    def stop(self) -> None:
        self._stop.set()
        if self._ws is not None:
            try:
                self._ws.close()
            except (ConnectionClosed, OSError):
                pass
        for th in self._threads:
            th.join(timeout=5)
        self._threads.clear()

    def _spawn(self, target: Callable[[], None], name: str) -> None:
        th = threading.Thread(target=target, name=name, daemon=True)
        th.start()
        self._threads.append(th)

    # ───── outbound ───────────────────────────────────────────────
    def subscribe(self, symbol: str) -> None:
        self._ws.send(json.dumps({"type": "subscribeToMarketData", "symbol": symbol}))

    def _subscribe_all(self, symbols: Sequence[str]) -> None:
        for symbol in symbols:
            if self._stop.wait(self.request_delay):
                return
            try:
                self.subscribe(symbol)
            except (ConnectionClosed, OSError) as exc:
                log.warning("background subscribe stopped – %s", exc, extra={"symbol": symbol})
                return
        log.info("subscribed remaining %d symbols", len(symbols))

    # ───── inbound ────────────────────────────────────────────────
    def handle_message(self, raw: str | bytes) -> None:
        try:
            packet: Dict[str, Any] = json.loads(raw)
        except ValueError:
            log.warning("non-JSON frame ignored")
            return
        if not isinstance(packet, dict):
            log.warning("non-object frame ignored")
            return

        kind = packet.get("type")
        if kind == "prices":
            items = packet.get("prices")
            for item in items if isinstance(items, list) else []:
                if not isinstance(item, dict):
                    log.warning("malformed price item ignored")
                    continue
                symbol = item.get("symbol")
                quote = Quote.from_payload(symbol, item) if symbol else None
                if quote is not None:
                    self.cache.put(quote)
        elif kind == "status" and self.on_connection:
            self.on_connection(bool(packet.get("connected")))
        elif kind == "disconnected" and self.on_connection:
            self.on_connection(False)

    def _read(self) -> None:
        try:
            for raw in self._ws:
                self.handle_message(raw)
        except (ConnectionClosed, OSError) as exc:
            if not self._stop.is_set():
                log.error("price stream lost – %s", exc)
        finally:
            if self.on_connection:
                self.on_connection(False)
