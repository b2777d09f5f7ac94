"""
utils.py – small generic helpers reused in multiple services
"""

from __future__ import annotations
from datetime import datetime, timezone

PIP_CACHE: dict[str, float] = {}


def pip_size(pair: str) -> float:
    """0.01 for JPY pairs, else 0.0001."""
    if pair not in PIP_CACHE:
        PIP_CACHE[pair] = 0.01 if pair.endswith("JPY") else 0.0001
    return PIP_CACHE[pair]


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def now_iso() -> str:
    return now_utc().isoformat(timespec="seconds")


def mask_token(token: str) -> str:
    """Show only the last 8 characters of a secret."""
    return "••••" + token[-8:] if token else ""
