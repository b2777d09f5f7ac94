"""
shared – tiny helpers imported by every service
-----------------------------------------------
Modules
-------
config.py         → loads `.env` once per process, typed settings snapshot
logging.py        → consistent JSON/stdout logger
constants.py      → key names, regions, push statuses
redis_client.py   → singleton Redis + heartbeat helpers
stores.py         → Redis-backed settings / users / trades
credentials.py    → active MetaApi credentials with TTL cache
utils.py          → misc one-liners that don’t belong elsewhere
"""
