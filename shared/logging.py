"""
logging.py – JSON/std-out logger for every service
"""

from __future__ import annotations
import json, logging, os, sys
from datetime import datetime, timezone
from typing import Any, Dict

_log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=_log_level, handlers=[])

# context fields services pass through `extra=`
_CONTEXT = ("symbol", "trade_id", "state", "source")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:          # noqa: D401
        msg: Dict[str, Any] = {
            "ts":  datetime.now(tz=timezone.utc).isoformat(timespec="seconds"),
            "lvl": record.levelname,
            "src": record.name,
            "msg": record.getMessage(),
        }
        for field in _CONTEXT:
            val = getattr(record, field, None)
            if val is not None:
                msg[field] = str(val)
        if record.exc_info:
            msg["exc"] = self.formatException(record.exc_info)
        return json.dumps(msg, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:                       # only add once / logger
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(JsonFormatter())
        logger.addHandler(h)
        logger.setLevel(_log_level)
    return logger
