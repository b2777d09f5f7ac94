"""
status.py – cached MetaApi account / connection status
------------------------------------------------------
Account-information is rate-limited upstream, so the admin panel reads
it through this cache: fresh for `ttl` seconds, and on any upstream
failure the last good status is served instead of an error.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional

from shared.constants import NOT_CONFIGURED
from shared.credentials import CredentialStore
from shared.logging import get_logger

from .executor import account_summary
from .metaapi_client import MetaApiClient, MetaApiError

log = get_logger("trade_executor.status")


class ConnectionStatusCache:
    def __init__(
        self,
        credentials: CredentialStore,
        client: Optional[MetaApiClient] = None,
        ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.credentials = credentials
        self.client = client or MetaApiClient()
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[Dict[str, Any]] = None
        self._cached_at = 0.0
        self._generation = 0

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            generation = self._generation
        creds = self.credentials.get()
        if not creds.configured:
            return {"connected": False, "error": NOT_CONFIGURED, "source": creds.source.value}

        with self._lock:
            if self._cached is not None and self._clock() - self._cached_at < self.ttl:
                return self._cached
            stale = self._cached

        # fetch outside the lock: a 429 backoff must not block readers
        try:
            data = self.client.account_information(creds.token, creds.account_id, creds.region)
        except MetaApiError as exc:
            if stale is not None:
                log.warning("status refresh failed – serving cached (%s)", exc.message)
                return stale
            log.error("status refresh failed – %s", exc.message)
            return {"connected": False, "error": exc.message, "source": creds.source.value}

        status = account_summary(data)
        status["source"] = creds.source.value
        with self._lock:
            # an invalidate() during the fetch wins over this result
            if generation == self._generation:
                self._cached = status
                self._cached_at = self._clock()
        return status

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._cached = None
            self._cached_at = 0.0
