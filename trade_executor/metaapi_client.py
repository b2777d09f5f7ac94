"""
metaapi_client.py – light wrapper around the MetaApi REST API
-------------------------------------------------------------
Keeps the pipeline logic clean and testable.  The client is
credential-agnostic: every call takes the token / account / region it
should use, so the same instance serves cached credentials and
operator-supplied test credentials alike.

Endpoints (relative to `/users/current/accounts/<account_id>`)
    GET  /symbols/<symbol>/current-price
    POST /trade
    GET  /account-information
    GET  /positions
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import requests

from shared.logging import get_logger

log = get_logger("trade_executor.metaapi")

DEFAULT_API_URL = "https://mt-client-api-v1.{region}.agiliumtrade.ai"


class MetaApiError(Exception):
    """Non-2xx response or transport failure (`status` is None for the latter)."""

    def __init__(self, status: Optional[int], message: str, body: Any = None):
        self.status = status
        self.message = message
        self.body = body
        super().__init__(message)


class RateLimitedError(MetaApiError):
    """HTTP 429 – still rate-limited after the allowed retry."""


def api_base(region: str, template: str = DEFAULT_API_URL) -> str:
    return template.format(region=region).rstrip("/")


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        msg = data.get("message") or data.get("error")
        if msg:
            return str(msg)
    return f"HTTP {resp.status_code}"


class MetaApiClient:
    """
    Thin OO façade so the pipeline doesn’t build URLs or parse errors.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        backoff: float = 2.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.backoff = backoff
        self.session = session or requests.Session()
        self._sleep = sleep

    # ───── plumbing ───────────────────────────────────────────────
    def _url(self, account_id: str, region: str, path: str) -> str:
        return f"{api_base(region, self.api_url)}/users/current/accounts/{account_id}{path}"

    def _send(self, method: str, url: str, token: str,
              body: Optional[Dict[str, Any]] = None) -> requests.Response:
        headers = {"Accept": "application/json", "auth-token": token}
        if body is not None:
            headers["Content-Type"] = "application/json"
        try:
            return self.session.request(method, url, headers=headers, json=body,
                                        timeout=self.timeout)
        except requests.RequestException as exc:
            raise MetaApiError(None, str(exc)) from exc

    def _call(self, method: str, url: str, token: str,
              body: Optional[Dict[str, Any]] = None, retry: bool = True) -> requests.Response:
        """One request; a 429 is retried once after `backoff` when `retry`."""
        resp = self._send(method, url, token, body)
        if resp.status_code == 429 and retry:
            log.warning("rate limited on %s %s – retrying in %.1f s", method, url, self.backoff)
            self._sleep(self.backoff)
            resp = self._send(method, url, token, body)
        if resp.status_code == 429:
            raise RateLimitedError(429, _error_message(resp))
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        if not resp.ok:
            raise MetaApiError(resp.status_code, _error_message(resp))
        try:
            return resp.json()
        except ValueError as exc:
            raise MetaApiError(resp.status_code, "invalid JSON from upstream") from exc

    # ───── market data ────────────────────────────────────────────
    def current_price(self, token: str, account_id: str, region: str,
                      symbol: str) -> Optional[Dict[str, Any]]:
        """
        `{bid, ask, ...}` for one symbol, None when the broker doesn’t
        carry it (404).  429 raises `RateLimitedError` without retrying –
        the poller owns the backoff for price requests.
        """
        url = self._url(account_id, region, f"/symbols/{symbol}/current-price")
        resp = self._call("GET", url, token, retry=False)
        if resp.status_code == 404:
            return None
        return self._json(resp)

    # ───── trading ────────────────────────────────────────────────
    def trade(self, token: str, account_id: str, region: str,
              request: Dict[str, Any]) -> Dict[str, Any]:
        url = self._url(account_id, region, "/trade")
        return self._json(self._call("POST", url, token, request))

    # ───── account ────────────────────────────────────────────────
    def account_information(self, token: str, account_id: str, region: str) -> Dict[str, Any]:
        url = self._url(account_id, region, "/account-information")
        resp = self._call("GET", url, token)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise MetaApiError(resp.status_code, "unexpected account payload", data)
        return data

    def positions(self, token: str, account_id: str, region: str) -> List[Dict[str, Any]]:
        url = self._url(account_id, region, "/positions")
        return self._json(self._call("GET", url, token))
