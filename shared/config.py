"""
config.py – centralised env-var handling
=======================================

• Loads the first `.env` file it finds (cwd or /app) exactly **once**.
• Exposes `ENV` – a dict-like object that also supports attribute access.
• `env(key, default=None, cast=None)` helper for one-off lookups
  with automatic type-casting (int, float, bool).
• `settings()` snapshots every knob the bridge reads into a frozen
  `BridgeSettings` so services never re-parse env vars in hot loops.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .constants import DEFAULT_REGION, REGIONS

# ───── locate & load .env (first one wins) ────────────────────────────
for candidate in (Path.cwd() / ".env", Path("/app/.env")):
    if candidate.is_file():
        load_dotenv(dotenv_path=candidate, override=False)
        break


# ───── ENV proxy object ───────────────────────────────────────────────
class _Env(dict):
    """Attr-style access to `os.environ` while staying dict-compatible."""

    def __getattr__(self, item: str) -> str | None:  # noqa: D401
        return os.getenv(item)

    def __getitem__(self, key: str) -> str:
        return os.environ[key]

    def get(self, key: str, default: Any = None, cast: Optional[type] = None) -> Any:  # noqa: D401
        val = os.getenv(key, default)
        if cast is not None and val is not None:
            try:
                if cast is bool:
                    return str(val).lower() in ("1", "true", "yes", "y")
                return cast(val)
            except (ValueError, TypeError):
                return default
        return val


ENV: _Env = _Env(os.environ)  # public alias


def env(key: str, default: Any = None, cast: Optional[type] = None) -> Any:
    """Shortcut for `ENV.get(key, default, cast)`."""
    return ENV.get(key, default, cast)


def first_env(*keys: str, default: str = "") -> str:
    """Value of the first non-empty variable among `keys`."""
    for key in keys:
        val = os.getenv(key)
        if val:
            return val
    return default


def normalise_region(region: str | None) -> str:
    """Known datacenter region or the default one."""
    region = (region or "").strip().lower()
    return region if region in REGIONS else DEFAULT_REGION


# ───── typed snapshot ────────────────────────────────────────────────
@dataclass(frozen=True)
class BridgeSettings:
    api_url: str
    stream_url: str
    feed_mode: str
    cred_cache_ttl: float
    status_cache_ttl: float
    rate_limit_backoff: float
    poll_interval: float
    poll_batch_size: int
    request_delay: float
    sim_interval: float
    http_timeout: float
    api_port: int


def settings() -> BridgeSettings:
    """Read every bridge knob from the environment (defaults applied)."""
    return BridgeSettings(
        api_url=env("METAAPI_API_URL", "https://mt-client-api-v1.{region}.agiliumtrade.ai"),
        stream_url=env("METAAPI_STREAM_URL", "wss://mt-client-api-v1.{region}.agiliumtrade.ai/ws"),
        feed_mode=str(env("PRICE_FEED_MODE", "poll")).lower(),
        cred_cache_ttl=env("CRED_CACHE_TTL", 30.0, float),
        status_cache_ttl=env("STATUS_CACHE_TTL", 60.0, float),
        rate_limit_backoff=env("RATE_LIMIT_BACKOFF", 2.0, float),
        poll_interval=env("POLL_INTERVAL", 2.0, float),
        poll_batch_size=env("POLL_BATCH_SIZE", 10, int),
        request_delay=env("REQUEST_DELAY", 0.1, float),
        sim_interval=env("SIM_INTERVAL", 0.5, float),
        http_timeout=env("HTTP_TIMEOUT", 10.0, float),
        api_port=env("API_PORT", 8000, int),
    )


__all__ = ["ENV", "env", "first_env", "normalise_region", "BridgeSettings", "settings"]
