from unittest.mock import MagicMock

import pytest

from shared.constants import NOT_CONFIGURED, PushStatus
from tests.conftest import make_response
from trade_executor.executor import TradePusher, account_summary, order_request
from trade_executor.metaapi_client import MetaApiError


@pytest.fixture
def pusher(credentials, trades, users, api):
    return TradePusher(credentials, trades, users, api)


# ------------------------- order building ------------------------- #

def test_order_request_buy_with_stops(trades):
    req = order_request(trades.get("t-a"))

    assert req == {
        "actionType": "ORDER_TYPE_BUY",
        "symbol": "EURUSD",
        "volume": 0.1,
        "stopLoss": 1.08,
        "takeProfit": 1.1,
        "comment": "AB-TRD-1",
    }


def test_order_request_sell_without_stops():
    req = order_request({"id": "x1", "side": "sell", "symbol": "BTCUSD", "quantity": "2"})

    assert req["actionType"] == "ORDER_TYPE_SELL"
    assert req["volume"] == 2.0
    assert "stopLoss" not in req and "takeProfit" not in req
    assert req["comment"] == "AB-x1"


def test_account_summary_defaults():
    assert account_summary({"broker": "ICM", "balance": 100}) == {
        "connected": True, "platform": "mt5", "broker": "ICM", "server": "Unknown",
        "login": "Unknown", "name": "Unknown", "balance": 100, "equity": 0, "currency": "USD",
    }


# ------------------------- push ------------------------- #

def test_push_book_b_is_silent_noop(pusher, trades, session, configure):
    configure()
    before = trades.get("t-b")

    assert pusher.push_trade(before) is None
    assert trades.get("t-b") == before
    session.request.assert_not_called()


def test_push_book_b_unconfigured_is_still_noop(pusher, trades):
    before = trades.get("t-b")
    pusher.push_trade(before)
    assert trades.get("t-b") == before


def test_push_unconfigured_book_a_fails(pusher, trades, session):
    assert pusher.push_trade(trades.get("t-a")) is None

    trade = trades.get("t-a")
    assert trade["push_status"] == "FAILED"
    assert "not configured" in trade["push_error"]
    assert trade["push_error"] == NOT_CONFIGURED
    session.request.assert_not_called()


def test_push_success(pusher, trades, session, configure):
    configure()
    session.request.return_value = make_response(200, {"positionId": "P1", "stringCode": "OK"})

    result = pusher.push_trade(trades.get("t-a"))

    trade = trades.get("t-a")
    assert result["position_id"] == "P1"
    assert trade["push_status"] == "PUSHED"
    assert trade["position_id"] == "P1"
    assert trade["pushed_at"]
    assert trade["push_error"] is None
    assert session.request.call_args[1]["json"]["comment"] == "AB-TRD-1"


def test_push_uses_order_id_when_no_position(pusher, trades, session, configure):
    configure()
    session.request.return_value = make_response(200, {"orderId": 4711, "stringCode": "OK"})

    pusher.push_trade(trades.get("t-a"))

    assert trades.get("t-a")["position_id"] == "4711"


def test_push_upstream_error_fails_with_message(pusher, trades, session, configure):
    configure()
    session.request.return_value = make_response(400, {"message": "Market closed"})

    assert pusher.push_trade(trades.get("t-a")) is None

    trade = trades.get("t-a")
    assert trade["push_status"] == "FAILED"
    assert trade["push_error"] == "Market closed"
    assert "pushed_at" not in trade


def test_push_writes_pending_before_submitting(credentials, trades, users, configure):
    configure()
    seen = {}
    client = MagicMock()

    def trade(*_):
        seen["status"] = trades.get("t-a")["push_status"]
        return {"positionId": "P9"}

    client.trade.side_effect = trade
    TradePusher(credentials, trades, users, client).push_trade(trades.get("t-a"))

    assert seen["status"] == "PENDING"


def test_push_by_id_unknown_trade(pusher):
    assert pusher.push_trade_by_id("missing") is None


# ------------------------- close ------------------------- #

def test_close_without_position_is_noop(pusher, trades, session, configure):
    configure()
    before = trades.get("t-a")

    assert pusher.close_trade(before) is None
    assert trades.get("t-a") == before
    session.request.assert_not_called()


def test_close_unconfigured_is_noop(pusher, trades, session):
    trade = trades.get("t-a")
    trade["position_id"] = "P1"
    trades.save(trade)

    assert pusher.close_trade(trade) is None
    assert "push_status" not in trades.get("t-a")


def test_close_success(pusher, trades, session, configure):
    configure()
    trades.update_push_status("t-a", PushStatus.PUSHED, position_id="P1")
    session.request.return_value = make_response(200, {"stringCode": "OK"})

    pusher.close_trade_by_id("t-a")

    trade = trades.get("t-a")
    assert trade["push_status"] == "CLOSED"
    assert trade["position_id"] == "P1"
    assert session.request.call_args[1]["json"] == {
        "actionType": "POSITION_CLOSE_ID", "positionId": "P1"}


def test_close_failure_keeps_position(pusher, trades, session, configure):
    configure()
    trades.update_push_status("t-a", PushStatus.PUSHED, position_id="P1")
    session.request.return_value = make_response(404, {"message": "Position not found"})

    pusher.close_trade(trades.get("t-a"))

    trade = trades.get("t-a")
    assert trade["push_status"] == "CLOSE_FAILED"
    assert trade["position_id"] == "P1"
    assert trade["push_error"] == "Position not found"


# ------------------------- broker queries ------------------------- #

def test_test_connection_single_retry_succeeds(pusher, session, sleep, credentials):
    session.request.side_effect = [
        make_response(429, {"message": "slow down"}),
        make_response(200, {"broker": "ICM", "server": "ICM-Live", "login": 42, "name": "Ops",
                            "balance": 1000, "equity": 990, "currency": "EUR"}),
    ]
    credentials.get = MagicMock(side_effect=AssertionError("cache must not be used"))

    result = pusher.test_connection("cand-token", "cand-acc", "singapore")

    assert result["connected"] is True
    assert result["broker"] == "ICM"
    assert result["equity"] == 990
    sleep.assert_called_once()
    assert "singapore" in session.request.call_args[0][1]
    assert session.request.call_args[1]["headers"]["auth-token"] == "cand-token"


def test_test_connection_failure(pusher, session):
    session.request.return_value = make_response(401, {"message": "Invalid token"})

    assert pusher.test_connection("t", "a") == {"connected": False, "error": "Invalid token"}


def test_test_connection_requires_both_values(pusher, session):
    assert pusher.test_connection("", "a")["connected"] is False
    session.request.assert_not_called()


def test_get_positions(pusher, session, configure):
    assert pusher.get_positions() == []

    configure()
    session.request.return_value = make_response(200, [{"id": "P1"}])
    assert pusher.get_positions() == [{"id": "P1"}]

    session.request.return_value = make_response(500, {"message": "boom"})
    assert pusher.get_positions() == []


def test_get_positions_swallows_transport_errors(credentials, trades, users, configure):
    configure()
    client = MagicMock()
    client.positions.side_effect = MetaApiError(None, "timeout")

    assert TradePusher(credentials, trades, users, client).get_positions() == []


def test_test_connection_non_object_payload(pusher, session):
    session.request.return_value = make_response(200, [])

    assert pusher.test_connection("tok", "acc") == {
        "connected": False, "error": "unexpected account payload"}


def test_push_is_not_resubmitted(pusher, trades, session, configure):
    configure()
    session.request.return_value = make_response(200, {"positionId": "P1", "stringCode": "OK"})

    pusher.push_trade(trades.get("t-a"))
    assert pusher.push_trade(trades.get("t-a")) is None

    assert session.request.call_count == 1
    assert trades.get("t-a")["position_id"] == "P1"


def test_push_skips_in_flight_trade(pusher, trades, session, configure):
    configure()
    trades.update_push_status("t-a", PushStatus.PENDING)

    assert pusher.push_trade(trades.get("t-a")) is None
    session.request.assert_not_called()
