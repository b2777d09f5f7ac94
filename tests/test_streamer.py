import json
import threading
from unittest.mock import MagicMock

from price_feed.quotes import QuoteCache
from price_feed.streamer import StreamingFeed
from shared.constants import CredentialSource
from shared.credentials import Credentials

CREDS = Credentials("tok", "acc-9", "singapore", CredentialSource.ENVIRONMENT_DEFAULT)


class FakeSocket:
    """Yields queued frames, then blocks until closed."""

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.sent = []
        self.closed = threading.Event()

    def send(self, data):
        self.sent.append(json.loads(data))

    def close(self):
        self.closed.set()

    def __iter__(self):
        yield from self.frames
        self.closed.wait(5)


def make_feed(ws, **kwargs):
    connector = MagicMock(return_value=ws)
    feed = StreamingFeed(QuoteCache(), CREDS, url="wss://stream.{region}.test/ws",
                         request_delay=0, connector=connector, **kwargs)
    return feed, connector


def test_stream_url_carries_region_and_account():
    feed, _ = make_feed(FakeSocket())
    assert feed.stream_url() == "wss://stream.singapore.test/ws?accountId=acc-9"


def test_handle_prices_and_status():
    on_connection = MagicMock()
    feed, _ = make_feed(FakeSocket(), on_connection=on_connection)

    feed.handle_message(json.dumps({"type": "prices", "prices": [
        {"symbol": "EURUSD", "bid": 1.1, "ask": 1.2},
        {"symbol": "GBPUSD", "bid": None, "ask": 1.3},
        {"bid": 1.0, "ask": 1.0},
    ]}))
    feed.handle_message(json.dumps({"type": "status", "connected": False}))
    feed.handle_message(json.dumps({"type": "disconnected"}))
    feed.handle_message("not json")

    assert feed.cache.get("EURUSD").mid == (1.1 + 1.2) / 2
    assert feed.cache.get("GBPUSD") is None
    assert on_connection.call_args_list[0][0] == (False,)
    assert on_connection.call_count == 2


def test_start_subscribes_priority_then_rest():
    ws = FakeSocket([json.dumps({"type": "prices", "prices": [
        {"symbol": "EURUSD", "bid": 1.1, "ask": 1.2}]})])
    on_connection = MagicMock()
    feed, connector = make_feed(ws, on_connection=on_connection,
                                symbols=["EURUSD", "GBPUSD", "USDJPY"], priority=["EURUSD"])

    feed.start()
    # the background subscriber sends the remainder
    feed._threads[1].join(timeout=5)
    feed.stop()

    url = connector.call_args[0][0]
    assert url.endswith("accountId=acc-9")
    assert connector.call_args[1]["additional_headers"] == {"auth-token": "tok"}
    assert [m["symbol"] for m in ws.sent] == ["EURUSD", "GBPUSD", "USDJPY"]
    assert ws.sent[0]["type"] == "subscribeToMarketData"
    assert feed.cache.get("EURUSD") is not None
    assert on_connection.call_args_list[0][0] == (True,)
    assert on_connection.call_args_list[-1][0] == (False,)


def test_wrong_shape_frames_are_skipped():
    feed, _ = make_feed(FakeSocket())

    feed.handle_message(json.dumps([1, 2]))
    feed.handle_message(json.dumps({"type": "prices", "prices": {"symbol": "EURUSD"}}))
    feed.handle_message(json.dumps({"type": "prices", "prices": [
        1, "EURUSD", {"symbol": "GBPUSD", "bid": 1.26, "ask": 1.27}]}))

    assert feed.cache.get("EURUSD") is None
    assert feed.cache.get("GBPUSD").bid == 1.26


def test_reader_survives_wrong_shape_frame():
    ws = FakeSocket([
        json.dumps(["not", "an", "object"]),
        json.dumps({"type": "prices", "prices": [{"symbol": "EURUSD", "bid": 1.1, "ask": 1.2}]}),
    ])
    feed, _ = make_feed(ws, symbols=["EURUSD"], priority=["EURUSD"])

    feed.start()
    ws.closed.set()
    feed._threads[0].join(timeout=5)
    feed.stop()

    assert feed.cache.get("EURUSD") is not None
