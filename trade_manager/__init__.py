"""
trade_manager
=============

Operator-facing process:

• FastAPI admin API for A/B book assignment, MetaApi settings, account
  status, positions and live prices.
• Hosts the price feed in-process and writes service heartbeats.
"""
