# -------------------------------------------------------------------
#  tests/conftest.py – shared fixtures: in-memory Redis, stores,
#  credentials and a MetaApi client whose HTTP session is a MagicMock.
# -------------------------------------------------------------------
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest

from shared.credentials import CredentialStore
from shared.stores import SettingsStore, TradeStore, UserStore
from trade_executor.metaapi_client import MetaApiClient

ENV_KEYS = (
    "MT5_TRADE_TOKEN", "METAAPI_TOKEN",
    "MT5_TRADE_ACCOUNT_ID", "METAAPI_ACCOUNT_ID",
    "METAAPI_REGION", "PRICE_FEED_MODE",
)


class FakeRedis:
    """The handful of redis-py calls the stores use, kept in dicts."""

    def __init__(self) -> None:
        self.strings: Dict[str, Any] = {}
        self.hashes: Dict[str, Dict[str, Any]] = {}

    def get(self, key):
        return self.strings.get(key)

    def set(self, key, value):
        self.strings[key] = value
        return True

    def delete(self, *keys):
        for key in keys:
            self.strings.pop(key, None)
            self.hashes.pop(key, None)

    def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value
        return 1

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_response(status: int = 200, payload: Optional[Any] = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    if payload is None:
        resp.json.side_effect = ValueError("no body")
    else:
        resp.json.return_value = payload
    return resp


# ------------------------- Fixtures ------------------------- #

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def settings_store(fake_redis):
    return SettingsStore(fake_redis)


@pytest.fixture
def users(fake_redis):
    store = UserStore(fake_redis)
    store.save({"id": "u-a", "first_name": "Alice", "email": "alice@example.com",
                "phone": "111", "book_type": "A", "created_at": "2024-01-02"})
    store.save({"id": "u-b", "first_name": "Bob", "email": "bob@example.com",
                "phone": "222", "book_type": "B", "created_at": "2024-01-03"})
    store.save({"id": "u-x", "first_name": "Xavier", "email": "x@example.com",
                "phone": "333", "created_at": "2024-01-01"})
    return store


@pytest.fixture
def trades(fake_redis):
    store = TradeStore(fake_redis)
    store.save({"id": "t-a", "trade_id": "TRD-1", "user_id": "u-a", "symbol": "EURUSD",
                "side": "BUY", "quantity": 0.1, "stop_loss": 1.08, "take_profit": 1.1,
                "status": "OPEN"})
    store.save({"id": "t-b", "trade_id": "TRD-2", "user_id": "u-b", "symbol": "GBPUSD",
                "side": "SELL", "quantity": 0.5, "status": "OPEN"})
    return store


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def credentials(settings_store, clock):
    return CredentialStore(settings_store, ttl=30.0, clock=clock)


@pytest.fixture
def configure(settings_store, credentials):
    """Persist an active MetaApi account and drop the credential cache."""
    def _configure(token="tok-123456789", account_id="acc-1", region="london"):
        settings_store.save_settings(token=token, account_id=account_id,
                                     region=region, is_active=True)
        credentials.invalidate()
    return _configure


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def api(session, sleep):
    return MetaApiClient(timeout=1.0, backoff=2.0, session=session, sleep=sleep)
