"""
Free-text transaction parser.

Turns chat messages such as "makan siang 50000", "bayar parkir 5rb",
"gaji 5 juta" or "+ bonus 500rb kemarin" into a ParsedTransaction.
Parsing is deterministic and never guesses an amount: a message
without a recognisable amount is rejected.

Rules:
- A leading "+" or an income keyword marks the message as income;
  everything else is an expense.
- Amount suffixes rb/ribu/k, jt/juta, m/miliar/milyar multiply the
  number. "5.000" and "5,000" are thousands; "1,5 juta" is 1.5 million.
- If several numbers appear, one with a suffix wins, then the largest.
- "kemarin" dates the transaction one day back.
"""

import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, Field

from dompet.models.categories import INCOME_CATEGORIES, classify
from dompet.models.ledger import TransactionKind


class TransactionParseError(ValueError):
    """The message does not describe a transaction we can record."""
    pass


_MULTIPLIERS = {
    "rb": 1_000, "rbu": 1_000, "ribu": 1_000, "k": 1_000,
    "jt": 1_000_000, "juta": 1_000_000,
    "m": 1_000_000, "miliar": 1_000_000_000, "milyar": 1_000_000_000,
}

_NUMBER_WORDS = {
    "satu": 1, "dua": 2, "tiga": 3, "empat": 4, "lima": 5,
    "enam": 6, "tujuh": 7, "delapan": 8, "sembilan": 9,
    "sepuluh": 10, "sebelas": 11, "seratus": 100, "seribu": 1000,
}

_AMOUNT_RE = re.compile(
    r"(?<![\w.,])(?:rp\.?\s*)?(?P<num>\d+(?:[.,]\d+)*)\s*"
    r"(?P<mult>rbu|rb|ribu|k|jt|juta|miliar|milyar|m)?(?![\w])",
    re.IGNORECASE,
)

_INCOME_WORDS = frozenset(
    {"dapat", "terima", "diterima", "pemasukan", "income"}
    | {kw for info in INCOME_CATEGORIES.values() for kw in info.keywords}
)

_YESTERDAY_RE = re.compile(r"\bkemarin\b", re.IGNORECASE)


class ParsedTransaction(BaseModel):
    kind: TransactionKind
    amount: Decimal = Field(..., gt=0)
    category: str
    description: Optional[str] = None
    occurred_date: date


def _to_decimal(raw: str, has_multiplier: bool) -> Decimal:
    groups = re.split(r"[.,]", raw)
    if len(groups) == 1:
        return Decimal(raw)

    # Every group after the first has 3 digits: thousands separators
    if all(len(g) == 3 for g in groups[1:]) and not (has_multiplier and len(groups) == 2):
        return Decimal("".join(groups))

    if len(groups) == 2:
        return Decimal(f"{groups[0]}.{groups[1]}")
    raise InvalidOperation(raw)


def _find_amount(text: str) -> Optional[tuple[Decimal, tuple[int, int]]]:
    candidates = []
    for match in _AMOUNT_RE.finditer(text):
        mult = (match.group("mult") or "").lower()
        try:
            value = _to_decimal(match.group("num"), bool(mult)) * _MULTIPLIERS.get(mult, 1)
        except InvalidOperation:
            continue
        if value == value.to_integral_value():
            value = value.quantize(Decimal("1"))
        if value > 0:
            candidates.append((bool(mult), value, match.span()))

    if candidates:
        _, value, span = max(candidates, key=lambda c: (c[0], c[1]))
        return value, span
    return _find_word_amount(text)


def _find_word_amount(text: str) -> Optional[tuple[Decimal, tuple[int, int]]]:
    """Spelled-out amounts such as "lima ribu" or "dua juta"."""
    total = 0
    current = 0
    first = last = None
    for match in re.finditer(r"[a-z]+", text.lower()):
        word = match.group()
        if word in _NUMBER_WORDS:
            current += _NUMBER_WORDS[word]
        elif word in _MULTIPLIERS and word != "m" and (current or total):
            total += (current or 1) * _MULTIPLIERS[word]
            current = 0
        else:
            if total or current:
                break
            continue
        first = match.start() if first is None else first
        last = match.end()

    total += current
    if total <= 0:
        return None
    return Decimal(total), (first, last)


def detect_kind(text: str) -> TransactionKind:
    stripped = text.strip()
    if stripped.startswith("+"):
        return TransactionKind.INCOME
    words = set(re.findall(r"[a-z]+", stripped.lower()))
    if words & _INCOME_WORDS:
        return TransactionKind.INCOME
    return TransactionKind.EXPENSE


def parse_transaction_text(
    text: str,
    today: Optional[date] = None,
    max_amount: Optional[Decimal] = None,
    kind: Optional[TransactionKind] = None,
) -> ParsedTransaction:
    """
    Parse a chat message into a transaction.

    `kind` forces expense or income, as /expense and /income do;
    otherwise it is detected from the text.

    Raises:
        TransactionParseError: If no positive amount is found, or the
            amount exceeds `max_amount`
    """
    if not text or not text.strip():
        raise TransactionParseError("Empty message")
    if text.strip().startswith("/"):
        raise TransactionParseError("Commands are not transactions")

    today = today or date.today()
    kind = kind or detect_kind(text)

    found = _find_amount(text)
    if found is None:
        raise TransactionParseError(f"No amount found in {text!r}")
    amount, (start, end) = found
    if max_amount is not None and amount > max_amount:
        raise TransactionParseError(f"Amount {amount} exceeds the limit of {max_amount}")

    occurred = today
    remainder = text[:start] + " " + text[end:]
    if _YESTERDAY_RE.search(remainder):
        occurred = today - timedelta(days=1)
        remainder = _YESTERDAY_RE.sub(" ", remainder)

    description = " ".join(remainder.replace("+", " ").split()) or None

    return ParsedTransaction(
        kind=kind,
        amount=amount,
        category=classify(text, kind),
        description=description,
        occurred_date=occurred,
    )
