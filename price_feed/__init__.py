"""
price_feed
==========

Keeps an in-memory symbol → quote cache fresh for the admin panel and
the trading front-end.

Modules
-------
symbols.py    – instrument catalog, categorisation, display metadata
quotes.py     – immutable `Quote` + thread-safe `QuoteCache`
poller.py     – REST polling ingestion (rotating symbol window)
streamer.py   – websocket streaming ingestion
simulator.py  – synthetic quotes when no upstream is usable
service.py    – state machine choosing between the above
"""
