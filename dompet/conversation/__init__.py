"""Chat-side helpers: text parsing and pending confirmations."""

from dompet.conversation.parsing import (
    ParsedTransaction,
    TransactionParseError,
    detect_kind,
    parse_transaction_text,
)
from dompet.conversation.pending import PendingActionExpired, PendingActionStore

__all__ = [
    "ParsedTransaction",
    "PendingActionExpired",
    "PendingActionStore",
    "TransactionParseError",
    "detect_kind",
    "parse_transaction_text",
]
