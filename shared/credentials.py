"""
credentials.py – active MetaApi credentials with a short-lived cache
====================================================================

Resolution order
----------------
1. persisted settings (`SettingsStore`) when active *and* fully populated
   → tagged `CredentialSource.PERSISTED`
2. environment defaults (`MT5_TRADE_*` / `METAAPI_*`)
   → tagged `CredentialSource.ENVIRONMENT_DEFAULT`; never fails, empty
   strings simply mean "not configured".

The resolved value is cached for `ttl` seconds.  `invalidate()` drops it
and notifies listeners (e.g. the connection-status cache) so a settings
change is visible on the very next call.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .config import first_env, normalise_region
from .constants import CredentialSource
from .logging import get_logger

log = get_logger("shared.credentials")


@dataclass(frozen=True)
class Credentials:
    token: str
    account_id: str
    region: str
    source: CredentialSource

    @property
    def configured(self) -> bool:
        return bool(self.token and self.account_id)


def env_credentials() -> Credentials:
    return Credentials(
        token=first_env("MT5_TRADE_TOKEN", "METAAPI_TOKEN"),
        account_id=first_env("MT5_TRADE_ACCOUNT_ID", "METAAPI_ACCOUNT_ID"),
        region=normalise_region(first_env("METAAPI_REGION")),
        source=CredentialSource.ENVIRONMENT_DEFAULT,
    )


class CredentialStore:
    def __init__(
        self,
        settings_store: Any,
        ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings_store = settings_store
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[Credentials] = None
        self._cached_at = 0.0
        self._listeners: List[Callable[[], None]] = []

    def get(self) -> Credentials:
        with self._lock:
            if self._cached is not None and self._clock() - self._cached_at < self.ttl:
                return self._cached
            self._cached = self._resolve()
            self._cached_at = self._clock()
            return self._cached

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
            self._cached_at = 0.0
            listeners = list(self._listeners)
        for fn in listeners:
            fn()

    def add_listener(self, fn: Callable[[], None]) -> None:
        """Call `fn` after every `invalidate()`."""
        self._listeners.append(fn)

    def _resolve(self) -> Credentials:
        try:
            doc = self.settings_store.load_active_settings()
            if doc.get("is_active") and doc.get("token") and doc.get("account_id"):
                log.debug("credentials resolved", extra={"source": CredentialSource.PERSISTED.value})
                return Credentials(
                    token=doc["token"],
                    account_id=doc["account_id"],
                    region=normalise_region(doc.get("region")),
                    source=CredentialSource.PERSISTED,
                )
        except Exception as exc:  # noqa: BLE001
            log.error("error loading persisted credentials – %s", exc)

        creds = env_credentials()
        log.debug("credentials resolved", extra={"source": creds.source.value})
        return creds
