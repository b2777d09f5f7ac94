"""
trade_executor
==============

Bridges the platform's A-book trades with a MetaApi (MT5) account.

* A trade opened by an A-book user is mirrored as a market order; the
  upstream position id is written back onto the trade record.
* Closing the trade on the platform closes the upstream position by id.
* Failures never disappear: the trade record carries `push_status` and
  `push_error` so operators can see what happened.
* Account information (balance, equity, broker) is served through a
  TTL cache that prefers stale data over upstream rate-limit errors.
"""
