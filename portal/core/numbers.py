"""Locale-aware number, money and date helpers shared by the extractors and
the facts layer.

Statements come from Spanish brokerages, so amounts arrive as ``1.234,56``
as often as ``1,234.56``.  The parsing rule is deliberately simple: when both
separators are present the one that appears last is the decimal mark,
otherwise dots are grouping and a comma is the decimal mark.
"""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime
from typing import Any

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$"}

_CURRENCY_STRIP = re.compile(r"(US\$|[$€£]|EUR|USD)", re.IGNORECASE)
_PERCENT_NUMBER = re.compile(r"-?\d+(?:[.,]\d+)?")


def parse_money(raw: Any) -> float:
    """Parse a money string in either European or US notation.

    Returns ``0.0`` for anything that does not leave a usable number.
    """

    text = str(raw if raw is not None else "").strip()
    if "." in text and "," in text:
        if text.rfind(".") > text.rfind(","):
            clean = text.replace(",", "")
        else:
            clean = text.replace(".", "").replace(",", ".", 1)
    else:
        clean = text.replace(".", "").replace(",", ".", 1)
    clean = re.sub(r"[^\d.-]", "", clean)
    if not clean:
        return 0.0
    try:
        value = float(clean)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def clean_num(value: Any) -> float:
    """Coerce a spreadsheet cell into a float, ``0.0`` when empty."""

    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if value is None:
        return 0.0
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return 0.0
    return parse_money(_CURRENCY_STRIP.sub("", text))


def normalise_currency(raw: str | None) -> str:
    code = (raw or "").upper().strip()
    if code == "€":
        return "EUR"
    if code in {"$", "US$"}:
        return "USD"
    return code


def parse_percentage(value: Any) -> float | None:
    """Read the numeric part of a ``"3.40%"`` style string."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(float(value)) else None
    if value is None:
        return None
    match = _PERCENT_NUMBER.search(str(value))
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", "."))
    except ValueError:  # pragma: no cover - regex guarantees digits
        return None


def format_number_es(value: float, decimals: int = 2) -> str:
    """Format ``1234.5`` as ``1.234,50``."""

    formatted = f"{value:,.{decimals}f}"
    return formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value: float | None, currency: str = "EUR") -> str:
    amount = float(value or 0)
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), currency.upper())
    return f"{format_number_es(amount)} {symbol}"


def format_percentage(value: float) -> str:
    return f"{value:.2f}%"


def format_date(value: date | datetime | None) -> str:
    if value is None:
        return "—"
    return value.strftime("%d/%m/%Y")


def to_ascii(text: str) -> str:
    """Drop diacritics so regexes can be written against plain ASCII."""

    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalise_key(text: str) -> str:
    """Lower-case alphanumeric key used for fuzzy bank-name comparisons."""

    return re.sub(r"[^a-z0-9]", "", to_ascii(text).lower())
