#!/usr/bin/env python3
"""
manager.py – admin REST API for A/B book management
---------------------------------------------------
Environment
-----------
REDIS_URL        redis://host:port/db        (default: redis://redis:6379/0)
API_PORT         REST API port               (default: 8000)
PRICE_FEED_MODE  poll | stream               (default: poll)
CRED_CACHE_TTL   credential cache, seconds   (default: 30)
STATUS_CACHE_TTL account status cache, s     (default: 60)

The price feed runs in-process so price reads are plain memory lookups.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException
from pydantic import BaseModel

from price_feed.service import FeedState, PriceFeedService
from price_feed.symbols import default_instruments, instrument
from shared.config import BridgeSettings, settings
from shared.constants import BOOK_A, BOOK_B, DEFAULT_REGION, REGIONS
from shared.credentials import CredentialStore
from shared.logging import get_logger
from shared.redis_client import heartbeat, heartbeats
from shared.stores import SettingsStore, TradeStore, UserStore
from shared.utils import mask_token
from trade_executor.executor import TradePusher
from trade_executor.metaapi_client import MetaApiClient
from trade_executor.status import ConnectionStatusCache

log = get_logger("trade_manager")

HEARTBEAT_SEC = 15


# ───── WIRING ─────────────────────────────────────────────────────────
@dataclass
class Services:
    settings: SettingsStore
    users: UserStore
    trades: TradeStore
    credentials: CredentialStore
    pusher: TradePusher
    status: ConnectionStatusCache
    feed: PriceFeedService


def build_services(client: Any = None, cfg: Optional[BridgeSettings] = None) -> Services:
    """Wire stores, caches and pipelines around one Redis client."""
    cfg = cfg or settings()
    settings_store = SettingsStore(client)
    users, trades = UserStore(client), TradeStore(client)
    api = MetaApiClient(cfg.api_url, cfg.http_timeout, cfg.rate_limit_backoff)

    credentials = CredentialStore(settings_store, ttl=cfg.cred_cache_ttl)
    status = ConnectionStatusCache(credentials, api, ttl=cfg.status_cache_ttl)
    credentials.add_listener(status.invalidate)

    return Services(
        settings=settings_store,
        users=users,
        trades=trades,
        credentials=credentials,
        pusher=TradePusher(credentials, trades, users, api),
        status=status,
        feed=PriceFeedService(credentials, api, cfg),
    )


# ───── REQUEST BODIES ─────────────────────────────────────────────────
class AssignBody(BaseModel):
    user_id: str
    book_type: str


class BulkAssignBody(BaseModel):
    user_ids: List[str]
    book_type: str


class SettingsBody(BaseModel):
    token: Optional[str] = None
    account_id: Optional[str] = None
    region: Optional[str] = None
    label: Optional[str] = None
    is_active: Optional[bool] = None


class TestBody(BaseModel):
    token: str = ""
    account_id: str = ""
    region: str = DEFAULT_REGION


class BatchBody(BaseModel):
    symbols: List[str]


def _check_book(book_type: str) -> None:
    if book_type not in (BOOK_A, BOOK_B):
        raise HTTPException(400, "Book type must be A or B")


def _public_settings(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "token": mask_token(doc.get("token", "")),
        "account_id": doc.get("account_id", ""),
        "region": doc.get("region") or DEFAULT_REGION,
        "label": doc.get("label", ""),
        "is_active": bool(doc.get("is_active")),
        "last_connected_at": doc.get("last_connected_at"),
        "has_token": bool(doc.get("token")),
    }


# ───── REST API ───────────────────────────────────────────────────────
def create_app(svc: Services) -> FastAPI:
    app = FastAPI(title="Book Manager", docs_url=None, redoc_url=None)

    # ── users & books ─────────────────────────────────────────────
    @app.get("/api/book-management/users")
    def list_users(book_type: Optional[str] = None, search: Optional[str] = None):
        users = svc.users.all()
        total = len(users)
        total_a = sum(1 for u in users if u.get("book_type") == BOOK_A)
        if book_type in (BOOK_A, BOOK_B):
            users = [u for u in users if (u.get("book_type") or BOOK_B) == book_type]
        if search:
            needle = search.lower()
            users = [u for u in users
                     if any(needle in str(u.get(f) or "").lower()
                            for f in ("first_name", "email", "phone"))]
        users.sort(key=lambda u: u.get("created_at") or "", reverse=True)
        return {
            "success": True,
            "users": users,
            "stats": {"total_a_book": total_a, "total_b_book": total - total_a, "total": total},
        }

    @app.put("/api/book-management/assign")
    def assign(body: AssignBody):
        _check_book(body.book_type)
        if not svc.users.assign_book([body.user_id], body.book_type):
            raise HTTPException(404, "User not found")
        user = svc.users.get(body.user_id)
        return {
            "success": True,
            "message": f"User {user.get('first_name', '')} assigned to {body.book_type} Book",
            "user": user,
        }

    @app.put("/api/book-management/bulk-assign")
    def bulk_assign(body: BulkAssignBody):
        if not body.user_ids:
            raise HTTPException(400, "User IDs array is required")
        _check_book(body.book_type)
        updated = svc.users.assign_book(body.user_ids, body.book_type)
        return {"success": True, "message": f"{updated} users assigned to {body.book_type} Book"}

    @app.get("/api/book-management/user/{user_id}")
    def user_detail(user_id: str):
        user = svc.users.get(user_id)
        if user is None:
            raise HTTPException(404, "User not found")
        return {"success": True, "user": user, "trade_stats": svc.trades.stats_for_user(user_id)}

    @app.get("/api/book-management/check-editable/{trade_id}")
    def check_editable(trade_id: str):
        owner = svc.trades.find_trade_owner(trade_id)
        if owner is None:
            raise HTTPException(404, "Trade not found")
        book = svc.users.get_book_type(owner)
        if book is None:
            raise HTTPException(404, "User not found")
        editable = book != BOOK_A
        return {
            "success": True,
            "is_editable": editable,
            "book_type": book,
            "message": "This trade can be edited" if editable
            else "This trade belongs to an A Book user and cannot be edited",
        }

    # ── MetaApi settings / status ─────────────────────────────────
    @app.get("/api/book-management/mt5-status")
    def mt5_status():
        return {"success": True, "mt5": svc.status.get_status(),
                "push_stats": svc.trades.push_stats()}

    @app.get("/api/book-management/mt5-settings")
    def get_settings():
        return {"success": True, "settings": _public_settings(svc.settings.load_active_settings())}

    @app.put("/api/book-management/mt5-settings")
    def put_settings(body: SettingsBody):
        if body.region is not None and body.region not in REGIONS:
            raise HTTPException(400, f"Region must be one of {', '.join(REGIONS)}")
        doc = svc.settings.save_settings(**body.model_dump())
        svc.credentials.invalidate()
        log.info("MetaApi settings saved (active=%s)", doc["is_active"])
        return {"success": True, "message": "MT5 settings saved successfully",
                "settings": _public_settings(doc)}

    @app.delete("/api/book-management/mt5-settings")
    def delete_settings():
        svc.settings.clear_settings()
        svc.credentials.invalidate()
        log.info("MetaApi settings removed")
        return {"success": True, "message": "MT5 connection removed"}

    @app.post("/api/book-management/mt5-test")
    def mt5_test(body: TestBody):
        if not body.token or not body.account_id:
            raise HTTPException(400, "Token and Account ID are required")
        result = svc.pusher.test_connection(body.token, body.account_id, body.region)
        return {"success": result["connected"], **result}

    @app.get("/api/book-management/mt5-positions")
    def mt5_positions():
        return {"success": True, "positions": svc.pusher.get_positions()}

    # ── trade lifecycle hooks ─────────────────────────────────────
    @app.post("/api/book-management/trades/{trade_id}/push", status_code=202)
    def push_trade(trade_id: str, tasks: BackgroundTasks):
        if svc.trades.get(trade_id) is None:
            raise HTTPException(404, "Trade not found")
        tasks.add_task(svc.pusher.push_trade_by_id, trade_id)
        return {"success": True, "queued": True}

    @app.post("/api/book-management/trades/{trade_id}/close", status_code=202)
    def close_trade(trade_id: str, tasks: BackgroundTasks):
        if svc.trades.get(trade_id) is None:
            raise HTTPException(404, "Trade not found")
        tasks.add_task(svc.pusher.close_trade_by_id, trade_id)
        return {"success": True, "queued": True}

    # ── prices ────────────────────────────────────────────────────
    @app.get("/api/prices/instruments")
    def instruments():
        live = sorted(svc.feed.get_all_quotes())
        if not live:
            return {"success": True, "instruments": default_instruments()}
        return {"success": True, "instruments": [instrument(s) for s in live]}

    @app.get("/api/prices/feed/status")
    def feed_status():
        return {"success": True, "feed": svc.feed.feed_status()}

    @app.post("/api/prices/feed/reconnect")
    def feed_reconnect():
        state = svc.feed.reconnect()
        return {"success": True, "state": state.value}

    @app.post("/api/prices/batch")
    def batch_prices(body: BatchBody):
        quotes = svc.feed.get_quotes(body.symbols)
        return {"success": True,
                "prices": {s: {"bid": q.bid, "ask": q.ask} for s, q in quotes.items()}}

    @app.get("/api/prices/{symbol}")
    def price(symbol: str):
        quote = svc.feed.get_quote(symbol)
        if quote is None:
            raise HTTPException(404, "Price not available")
        return {"success": True, "price": {"bid": quote.bid, "ask": quote.ask}}

    # ── ops ───────────────────────────────────────────────────────
    @app.get("/health")
    def health():
        return {"success": True, "heartbeats": heartbeats(svc.settings.rds),
                "feed": svc.feed.feed_status()}

    return app


# ───── HEARTBEAT LOOP ─────────────────────────────────────────────────
def heartbeat_loop(svc: Services, stop: threading.Event) -> None:
    while not stop.is_set():
        heartbeat("trade_manager", svc.settings.rds)
        if svc.feed.state is not FeedState.DISCONNECTED:
            heartbeat("price_feed", svc.settings.rds)
        stop.wait(HEARTBEAT_SEC)


def main() -> None:
    cfg = settings()
    svc = build_services(cfg=cfg)
    app = create_app(svc)

    state = svc.feed.connect()
    log.info("trade_manager up – price feed %s, API on :%d", state.value, cfg.api_port)

    stop = threading.Event()
    th = threading.Thread(target=heartbeat_loop, args=(svc, stop), daemon=True)
    th.start()
    try:
        uvicorn.run(app, host="0.0.0.0", port=cfg.api_port, log_level="warning")
    finally:
        stop.set()
        svc.feed.disconnect()


if __name__ == "__main__":
    main()
