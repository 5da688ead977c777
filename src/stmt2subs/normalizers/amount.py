"""Monetary token parsing.

Statements mix ``1.234,56`` and ``1,234.56`` conventions and encode debits
with either sign, so every amount is returned as an unsigned float with the
last separator taken as the decimal point.
"""
from __future__ import annotations

import math
import re

# ASCII hyphen plus en/em dashes, which PDF text runs often carry.
_DASHES = "-–—"

_MONEY = rf"[{_DASHES}]?(?:\d{{1,3}}(?:[.,]\d{{3}})+|\d+)[.,]\d{{2}}"
# Digits directly on either side would make the token part of a longer number.
MONEY_TOKEN = re.compile(rf"(?<![\d.,]){_MONEY}(?![.,]?\d)")

_CURRENCY = r"(?:EUR|USD|GBP|CHF|€|\$|£)"
_MONEY_THEN_CURRENCY = re.compile(
    rf"(?<![\d.,])({_MONEY})\s*{_CURRENCY}(?![A-Za-z])", re.IGNORECASE
)
_CURRENCY_THEN_MONEY = re.compile(
    rf"(?:€|\$|£)\s*({_MONEY})(?![.,]?\d)", re.IGNORECASE
)

FULL_DATE = re.compile(r"\b\d{1,2}[./-]\d{1,2}[./-]\d{2,4}\b")
ISO_DATE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
_WHOLE_DATE = re.compile(r"^\d{1,2}[./-]\d{1,2}[./-]\d{2,4}$")
_SHORT_DOTTED = re.compile(r"^[" + _DASHES + r"]?(\d{1,2})\.(\d{1,2})$")


def _looks_like_short_date(token: str) -> bool:
    match = _SHORT_DOTTED.match(token.strip())
    if not match:
        return False
    day, month = int(match.group(1)), int(match.group(2))
    return 1 <= day <= 31 and 1 <= month <= 12


def parse_amount(token: str | None) -> float | None:
    """Parse one isolated monetary token into an unsigned two-decimal float."""
    if not token:
        return None
    trimmed = token.strip()
    if _WHOLE_DATE.match(trimmed):
        return None

    kept = re.sub(r"[^0-9.,]", "", trimmed)
    if not re.search(r"\d", kept):
        return None

    separators = [i for i, ch in enumerate(kept) if ch in ".,"]
    if separators:
        last = separators[-1]
        integer = kept[:last].replace(".", "").replace(",", "")
        fraction = kept[last + 1 :]
        number = f"{integer or '0'}.{fraction or '0'}"
    else:
        number = kept

    try:
        value = float(number)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return round(abs(value), 2)


def mask_dates(text: str) -> str:
    """Blank out date tokens so they are never read as amounts."""
    text = ISO_DATE.sub(" ", text)
    return FULL_DATE.sub(" ", text)


def find_amount_token(text: str | None) -> str | None:
    """Return the monetary substring extraction would use, if any."""
    if not text:
        return None
    masked = mask_dates(text)

    for pattern in (_MONEY_THEN_CURRENCY, _CURRENCY_THEN_MONEY):
        match = pattern.search(masked)
        if match:
            return match.group(1)

    for match in MONEY_TOKEN.finditer(masked):
        token = match.group(0)
        if _looks_like_short_date(token):
            continue
        return token
    return None


def normalize_amount(text: str | None) -> float | None:
    """Extract and parse the amount a statement line most plausibly carries.

    A token next to a currency marker wins over a bare monetary-shaped token,
    which keeps reference numbers from being read as amounts.
    """
    token = find_amount_token(text)
    if token is None:
        return None
    value = parse_amount(token)
    if value is None or value <= 0:
        return None
    return value
