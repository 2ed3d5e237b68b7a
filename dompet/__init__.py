"""
Dompet - Source Package

A chat-driven family expense tracker. Members record transactions
through a Telegram bot, the ledger lives in Google Sheets, and the
bot sends daily, weekly and monthly recaps on a schedule.

DESIGN PRINCIPLES:
1. The ledger is append-only - entries are never edited
2. Aggregates are recomputed from scratch on every call
3. One run per notification kind at a time
4. A failure for one member never stops the batch
5. Storage and transport are swappable
"""

__version__ = "1.0.0"
__author__ = "Dompet Team"
