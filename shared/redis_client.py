"""
redis_client.py – singleton Redis connection + helpers
======================================================

• 100 % lazy: first call triggers connect; retries until Redis is up.
• `heartbeat(service)` once per loop; the admin API reports these keys.
"""

from __future__ import annotations

import os
import time
from typing import Any, Callable, Dict, Optional

import redis

from .constants import KEY_HEARTBEAT, SERVICES
from .logging import get_logger

# ───── CONFIG ──────────────────────────────────────────────────────────
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
log = get_logger("shared.redis")


# ───── LAZY SINGLETON ─────────────────────────────────────────────────
class _LazyRedis:
    """Proxy object that connects on first attribute access (auto-retry)."""
    _client: Optional[redis.Redis] = None

    def __getattr__(self, name: str) -> Callable[..., Any]:  # noqa: D401
        if self._client is None:
            self._connect()
        return getattr(self._client, name)

    def _connect(self) -> None:
        while True:
            try:
                self._client = redis.Redis.from_url(
                    REDIS_URL,
                    decode_responses=True,
                    socket_timeout=2,
                )
                self._client.ping()
                log.info("Connected to Redis at %s", REDIS_URL)
                break
            except redis.RedisError as exc:
                log.warning("Redis unavailable – retrying in 2 s (%s)", exc)
                time.sleep(2)


# Exposed singleton used by all services
rds: redis.Redis = _LazyRedis()  # type: ignore[assignment]


# ───── HELPER FUNCTIONS ───────────────────────────────────────────────
def heartbeat(service: str, client: Any = None) -> None:
    """Store current epoch-seconds in `heartbeat:<service>`."""
    try:
        (client or rds).set(KEY_HEARTBEAT.format(service), time.time())
    except redis.RedisError as exc:
        log.error("heartbeat failed – %s", exc)


def heartbeats(client: Any = None) -> Dict[str, float]:
    """Last heartbeat per known service (0.0 = never seen)."""
    client = client or rds
    return {svc: float(client.get(KEY_HEARTBEAT.format(svc)) or 0) for svc in SERVICES}
