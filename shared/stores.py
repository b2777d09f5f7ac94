"""
stores.py – Redis-backed collaborators of the bridge
====================================================

Redis schema
------------
book:mt5_settings     STRING  JSON   singleton settings document
book:users            HASH    user_id  → JSON
book:trades           HASH    trade_id → JSON

Every store takes the Redis client in its constructor (default: the lazy
`rds` singleton) so tests can hand in an in-memory double.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

from .constants import (
    BOOK_A, BOOK_B, DEFAULT_REGION, KEY_SETTINGS, KEY_TRADES, KEY_USERS,
    PushStatus,
)
from .logging import get_logger
from .redis_client import rds
from .utils import now_iso

log = get_logger("shared.stores")

SETTINGS_DEFAULTS: Dict[str, Any] = {
    "token": "",
    "account_id": "",
    "region": DEFAULT_REGION,
    "label": "Default MT5 Account",
    "is_active": False,
    "last_connected_at": None,
}


# ───── SETTINGS ───────────────────────────────────────────────────────
class SettingsStore:
    """The single MetaApi settings document."""

    def __init__(self, client: Any = None) -> None:
        self.rds = client or rds

    def load_active_settings(self) -> Dict[str, Any]:
        raw = self.rds.get(KEY_SETTINGS)
        doc = dict(SETTINGS_DEFAULTS)
        if raw:
            doc.update(json.loads(raw))
        return doc

    def save_settings(self, **fields: Any) -> Dict[str, Any]:
        """Merge non-None `fields` into the document and persist it."""
        doc = self.load_active_settings()
        doc.update({k: v for k, v in fields.items() if v is not None and k in SETTINGS_DEFAULTS})
        if doc["is_active"] and doc["token"] and doc["account_id"]:
            doc["last_connected_at"] = now_iso()
        self.rds.set(KEY_SETTINGS, json.dumps(doc))
        return doc

    def clear_settings(self) -> Dict[str, Any]:
        doc = self.load_active_settings()
        doc.update(token="", account_id="", is_active=False, last_connected_at=None)
        self.rds.set(KEY_SETTINGS, json.dumps(doc))
        return doc


# ───── USERS ──────────────────────────────────────────────────────────
class UserStore:
    def __init__(self, client: Any = None) -> None:
        self.rds = client or rds

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        raw = self.rds.hget(KEY_USERS, user_id)
        return json.loads(raw) if raw else None

    def all(self) -> List[Dict[str, Any]]:
        return [json.loads(v) for v in self.rds.hgetall(KEY_USERS).values()]

    def save(self, user: Dict[str, Any]) -> None:
        self.rds.hset(KEY_USERS, user["id"], json.dumps(user))

    def get_book_type(self, user_id: str) -> Optional[str]:
        """'A' or 'B' (unset counts as B); None when the user is unknown."""
        user = self.get(user_id)
        if user is None:
            return None
        return BOOK_A if user.get("book_type") == BOOK_A else BOOK_B

    def assign_book(self, user_ids: Iterable[str], book_type: str) -> int:
        """Set `book_type` on every known user; returns how many were updated."""
        updated = 0
        for uid in user_ids:
            user = self.get(uid)
            if user is None:
                continue
            user["book_type"] = book_type
            self.save(user)
            updated += 1
        return updated


# ───── TRADES ─────────────────────────────────────────────────────────
class TradeStore:
    def __init__(self, client: Any = None) -> None:
        self.rds = client or rds

    def get(self, trade_id: str) -> Optional[Dict[str, Any]]:
        raw = self.rds.hget(KEY_TRADES, trade_id)
        return json.loads(raw) if raw else None

    def all(self) -> List[Dict[str, Any]]:
        return [json.loads(v) for v in self.rds.hgetall(KEY_TRADES).values()]

    def save(self, trade: Dict[str, Any]) -> None:
        self.rds.hset(KEY_TRADES, trade["id"], json.dumps(trade))

    def find_trade_owner(self, trade_id: str) -> Optional[str]:
        trade = self.get(trade_id)
        return trade.get("user_id") if trade else None

    def update_push_status(
        self,
        trade_id: str,
        status: PushStatus,
        position_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Write the push fields onto a trade record.

        `pushed_at` is stamped only on PUSHED; `position_id` is written only
        when given so an existing one is never cleared.  Store failures are
        logged, never raised into the pipeline.
        """
        try:
            trade = self.get(trade_id)
            if trade is None:
                log.warning("push status %s for unknown trade", status.value,
                            extra={"trade_id": trade_id})
                return
            trade["push_status"] = PushStatus(status).value
            trade["push_error"] = error
            if position_id is not None:
                trade["position_id"] = position_id
            if status is PushStatus.PUSHED:
                trade["pushed_at"] = now_iso()
            self.save(trade)
        except Exception as exc:  # noqa: BLE001
            log.error("trade status update failed – %s", exc, extra={"trade_id": trade_id})

    def push_stats(self) -> Dict[str, int]:
        counts = {"pushed": 0, "failed": 0, "pending": 0}
        for trade in self.all():
            key = str(trade.get("push_status") or "").lower()
            if key in counts:
                counts[key] += 1
        return counts

    def stats_for_user(self, user_id: str) -> Dict[str, int]:
        mine = [t for t in self.all() if t.get("user_id") == user_id]
        return {
            "open_trades": sum(1 for t in mine if t.get("status") == "OPEN"),
            "total_trades": len(mine),
        }
