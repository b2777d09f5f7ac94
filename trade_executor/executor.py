"""
executor.py – mirror A-book trades onto the MetaApi account
-----------------------------------------------------------
* A-book trade opened on the platform   →  market order upstream.
* A-book trade closed on the platform   →  close upstream position by id.
* Every outcome is written back to the trade record (`push_status`,
  `position_id`, `push_error`, `pushed_at`) so operators can see why a
  trade was or wasn’t mirrored.

Push status life-cycle
----------------------
    (none) ─► PENDING ─► PUSHED ─► CLOSED
                 │          └────► CLOSE_FAILED
                 └─► FAILED
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from shared.config import normalise_region
from shared.constants import BOOK_A, DEFAULT_REGION, NOT_CONFIGURED, PushStatus
from shared.credentials import CredentialStore
from shared.logging import get_logger
from shared.stores import TradeStore, UserStore

from .metaapi_client import MetaApiClient, MetaApiError

log = get_logger("trade_executor")

CLOSE_BY_POSITION = "POSITION_CLOSE_ID"


def order_request(trade: Dict[str, Any]) -> Dict[str, Any]:
    """MetaApi market-order body for a platform trade."""
    req: Dict[str, Any] = {
        "actionType": "ORDER_TYPE_BUY" if str(trade["side"]).upper() == "BUY" else "ORDER_TYPE_SELL",
        "symbol": trade["symbol"],
        "volume": float(trade["quantity"]),
    }
    if trade.get("stop_loss"):
        req["stopLoss"] = float(trade["stop_loss"])
    if trade.get("take_profit"):
        req["takeProfit"] = float(trade["take_profit"])
    req["comment"] = f"AB-{trade.get('trade_id') or trade['id']}"
    return req


def account_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalise an account-information payload into a connected status."""
    return {
        "connected": True,
        "platform": data.get("platform") or "mt5",
        "broker": data.get("broker") or "Unknown",
        "server": data.get("server") or "Unknown",
        "login": data.get("login") or "Unknown",
        "name": data.get("name") or "Unknown",
        "balance": data.get("balance") or 0,
        "equity": data.get("equity") or 0,
        "currency": data.get("currency") or "USD",
    }


class TradePusher:
    def __init__(
        self,
        credentials: CredentialStore,
        trades: TradeStore,
        users: UserStore,
        client: Optional[MetaApiClient] = None,
    ) -> None:
        self.credentials = credentials
        self.trades = trades
        self.users = users
        self.client = client or MetaApiClient()

    # ───── push ───────────────────────────────────────────────────
    def push_trade(self, trade: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Mirror one newly opened trade.  Returns `{position_id, response}`
        on success, None otherwise (the reason is on the trade record).
        """
        tid = trade["id"]
        owner = trade.get("user_id") or self.trades.find_trade_owner(tid)
        if owner is None or self.users.get_book_type(owner) != BOOK_A:
            return None
        if trade.get("push_status") in (PushStatus.PUSHED.value, PushStatus.PENDING.value):
            log.info("already %s – not resubmitting", trade["push_status"], extra={"trade_id": tid})
            return None

        creds = self.credentials.get()
        if not creds.configured:
            log.info("skipping push – %s", NOT_CONFIGURED, extra={"trade_id": tid})
            self.trades.update_push_status(tid, PushStatus.FAILED, error=NOT_CONFIGURED)
            return None

        log.info("pushing %s %s %s", trade.get("side"), trade.get("quantity"),
                 trade.get("symbol"), extra={"trade_id": tid})
        self.trades.update_push_status(tid, PushStatus.PENDING)

        try:
            data = self.client.trade(creds.token, creds.account_id, creds.region,
                                     order_request(trade))
        except MetaApiError as exc:
            log.error("push failed – %s", exc.message, extra={"trade_id": tid})
            self.trades.update_push_status(tid, PushStatus.FAILED, error=exc.message)
            return None
        except Exception as exc:  # noqa: BLE001
            log.exception("push error", extra={"trade_id": tid})
            self.trades.update_push_status(tid, PushStatus.FAILED, error=str(exc))
            return None

        position_id = data.get("positionId") or data.get("orderId")
        position_id = str(position_id) if position_id else None
        log.info("pushed – position %s (%s)", position_id, data.get("stringCode"),
                 extra={"trade_id": tid})
        self.trades.update_push_status(tid, PushStatus.PUSHED, position_id=position_id)
        return {"position_id": position_id, "response": data}

    # ───── close ──────────────────────────────────────────────────
    def close_trade(self, trade: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        tid = trade["id"]
        creds = self.credentials.get()
        if not creds.configured:
            log.info("skipping close – %s", NOT_CONFIGURED, extra={"trade_id": tid})
            return None

        position_id = trade.get("position_id")
        if not position_id:
            log.info("no upstream position – nothing to close", extra={"trade_id": tid})
            return None

        log.info("closing position %s", position_id, extra={"trade_id": tid})
        try:
            data = self.client.trade(creds.token, creds.account_id, creds.region,
                                     {"actionType": CLOSE_BY_POSITION, "positionId": position_id})
        except MetaApiError as exc:
            log.error("close failed – %s", exc.message, extra={"trade_id": tid})
            self.trades.update_push_status(tid, PushStatus.CLOSE_FAILED,
                                           position_id=position_id, error=exc.message)
            return None
        except Exception as exc:  # noqa: BLE001
            log.exception("close error", extra={"trade_id": tid})
            self.trades.update_push_status(tid, PushStatus.CLOSE_FAILED,
                                           position_id=position_id, error=str(exc))
            return None

        log.info("position %s closed (%s)", position_id, data.get("stringCode"),
                 extra={"trade_id": tid})
        self.trades.update_push_status(tid, PushStatus.CLOSED, position_id=position_id)
        return data

    # ───── lifecycle hooks (by id) ────────────────────────────────
    def push_trade_by_id(self, trade_id: str) -> Optional[Dict[str, Any]]:
        trade = self.trades.get(trade_id)
        if trade is None:
            log.warning("push requested for unknown trade", extra={"trade_id": trade_id})
            return None
        return self.push_trade(trade)

    def close_trade_by_id(self, trade_id: str) -> Optional[Dict[str, Any]]:
        trade = self.trades.get(trade_id)
        if trade is None:
            log.warning("close requested for unknown trade", extra={"trade_id": trade_id})
            return None
        return self.close_trade(trade)

    # ───── broker queries ─────────────────────────────────────────
    def test_connection(self, token: str, account_id: str,
                        region: str = DEFAULT_REGION) -> Dict[str, Any]:
        """Probe explicit credentials; touches no cached state."""
        if not token or not account_id:
            return {"connected": False, "error": "Token and Account ID are required"}
        try:
            data = self.client.account_information(token, account_id, normalise_region(region))
        except MetaApiError as exc:
            return {"connected": False, "error": exc.message}
        return account_summary(data)

    def get_positions(self) -> List[Dict[str, Any]]:
        """Open upstream positions, [] when unconfigured or on any error."""
        creds = self.credentials.get()
        if not creds.configured:
            return []
        try:
            positions = self.client.positions(creds.token, creds.account_id, creds.region)
        except MetaApiError as exc:
            log.error("failed to fetch positions – %s", exc.message)
            return []
        return positions if isinstance(positions, list) else []
