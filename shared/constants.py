"""
constants.py – single source of hard-coded names
"""

from enum import Enum

# Redis keys / templates
KEY_SETTINGS   = "book:mt5_settings"      # STRING  JSON (singleton doc)
KEY_USERS      = "book:users"             # HASH    user_id  → JSON
KEY_TRADES     = "book:trades"            # HASH    trade_id → JSON
KEY_HEARTBEAT  = "heartbeat:{}"           # service-specific

SERVICES = ["price_feed", "trade_manager"]

# MetaApi datacenters
REGIONS        = ("new-york", "london", "singapore")
DEFAULT_REGION = "new-york"

BOOK_A = "A"
BOOK_B = "B"

NOT_CONFIGURED = "MetaApi not configured"


class PushStatus(str, Enum):
    PENDING      = "PENDING"
    PUSHED       = "PUSHED"
    FAILED       = "FAILED"
    CLOSED       = "CLOSED"
    CLOSE_FAILED = "CLOSE_FAILED"


class CredentialSource(str, Enum):
    PERSISTED           = "database"
    ENVIRONMENT_DEFAULT = "env"
