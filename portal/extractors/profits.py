"""Dividend detection over the text of a PDF bank statement.

Rules run in a fixed order and each one is a pure ``text -> items``
function: the REIT result block first, then the ``En <banco>:`` sections,
and only when both found nothing a permissive global scan.  The combined
output goes through :func:`dedupe_profits`, where the first occurrence of an
event wins, so the rule order decides which mention survives.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from portal.core.numbers import format_number_es, normalise_currency, parse_money
from portal.core.schema import ProfitExtraction, ProfitItem
from portal.core.text import normalise_statement_text, prepare_statement_text

logger = logging.getLogger(__name__)

ProfitRule = Callable[[str], list[ProfitItem]]

_AMOUNT = r"(?P<amount>[\d.,]+)\s*(?P<currency>EUR|USD|€|\$|US\$)"

REIT_HEADING = re.compile(r"RESULTADO\s+DE\s+LA\s+INVERSION.*REIT", re.IGNORECASE)
REIT_BLOCK_LENGTH = 1500
REIT_PATTERNS = (
    re.compile(r"DIVIDENDOS?\s+COBRADOS?.*?:\s*" + _AMOUNT, re.IGNORECASE),
    re.compile(r"DIVIDENDOS?.{0,40}?" + _AMOUNT, re.IGNORECASE),
)

SECTION_HEADER = re.compile(r"^En\s+(?P<bank>[A-Za-z0-9 .&-]+):", re.MULTILINE)
SECTION_PATTERNS = (
    re.compile(r"dividendos?.{0,60}?" + _AMOUNT, re.IGNORECASE),
    re.compile(r"rendimiento.{0,60}?(?:recibido|cobrado)?.{0,20}?" + _AMOUNT, re.IGNORECASE),
)
CONTEXT_BEFORE = 60
CONTEXT_AFTER = 140

GLOBAL_PATTERN = re.compile(r"DIVIDENDOS?.{0,80}?" + _AMOUNT, re.IGNORECASE)

# "inversion" is left out on purpose: real dividend lines mention it.
INVESTMENT_CUE = re.compile(
    r"\b(suscrib|transferenc|ingres|traspas|aportar|apertura|compra|venta|fondeo|deposito)\w*",
    re.IGNORECASE,
)
REIT_CUE = re.compile(r"\bREIT\b|RESULTADO\s+DE\s+LA\s+INVERSION", re.IGNORECASE)


@dataclass
class Section:
    bank: str | None
    body: str


def find_block(text: str, heading: re.Pattern[str], length: int) -> str:
    match = heading.search(text)
    if not match:
        return ""
    return text[match.start() : match.start() + length]


def split_sections(text: str) -> list[Section]:
    """Split ``text`` at ``En <banco>:`` headers.

    The body of a section starts right after the header colon, so a payout
    written on the header line itself belongs to that bank.
    """

    headers = list(SECTION_HEADER.finditer(text))
    if not headers:
        return [Section(bank=None, body=text)]
    sections: list[Section] = []
    for index, header in enumerate(headers):
        end = headers[index + 1].start() if index + 1 < len(headers) else len(text)
        sections.append(Section(bank=header.group("bank").strip() or None, body=text[header.end() : end]))
    return sections


def has_investment_cue(text: str) -> bool:
    return bool(INVESTMENT_CUE.search(text))


def has_reit_cue(text: str) -> bool:
    return bool(REIT_CUE.search(text))


def reit_block_rule(text: str) -> list[ProfitItem]:
    block = find_block(text, REIT_HEADING, REIT_BLOCK_LENGTH)
    if not block:
        return []
    for pattern in REIT_PATTERNS:
        match = pattern.search(block)
        if match:
            break
    else:
        return []
    amount = parse_money(match.group("amount"))
    if not amount:
        return []
    return [
        ProfitItem(
            label="Dividendos REIT",
            amount=amount,
            currency=normalise_currency(match.group("currency")),
            source="REIT USA",
            confidence=0.9,
        )
    ]


def bank_section_rule(text: str) -> list[ProfitItem]:
    items: list[ProfitItem] = []
    for section in split_sections(text):
        body = section.body
        for pattern in SECTION_PATTERNS:
            for match in pattern.finditer(body):
                start = match.start()
                window = body[max(0, start - CONTEXT_BEFORE) : start + CONTEXT_AFTER]
                if has_reit_cue(window) or has_investment_cue(window):
                    continue
                amount = parse_money(match.group("amount"))
                if not amount:
                    continue
                items.append(
                    ProfitItem(
                        label="Dividendos",
                        amount=amount,
                        currency=normalise_currency(match.group("currency")),
                        source=section.bank,
                        confidence=0.75,
                    )
                )
    return items


def global_dividend_rule(text: str) -> list[ProfitItem]:
    items: list[ProfitItem] = []
    for match in GLOBAL_PATTERN.finditer(text):
        amount = parse_money(match.group("amount"))
        if not amount:
            continue
        items.append(
            ProfitItem(
                label="Dividendos",
                amount=amount,
                currency=normalise_currency(match.group("currency")),
                confidence=0.6,
            )
        )
    return items


PRIMARY_RULES: tuple[ProfitRule, ...] = (reit_block_rule, bank_section_rule)
FALLBACK_RULES: tuple[ProfitRule, ...] = (global_dividend_rule,)


def _run_rules(rules: Iterable[ProfitRule], text: str) -> list[ProfitItem]:
    collected: list[ProfitItem] = []
    for rule in rules:
        collected.extend(rule(text))
    return collected


def _cents(amount: float | None) -> int:
    # Half-cent amounts round up, never to even.
    return int(Decimal(str((amount or 0) * 100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def dedupe_profits(items: Iterable[ProfitItem]) -> list[ProfitItem]:
    """Drop repeated mentions of the same payout.

    Exact repeats by (label, currency, cents, source) always go.  A new
    item whose (currency, cents) was already kept is dropped only when it is
    REIT-labelled or has no source; a sourced item is never dropped in
    favour of an earlier weak one.
    """

    seen_strict: set[tuple[str, str, int, str]] = set()
    seen_numeric: dict[tuple[str, int], ProfitItem] = {}
    kept: list[ProfitItem] = []

    for item in items:
        cents = _cents(item.amount)
        currency = (item.currency or "").upper()
        label = " ".join((item.label or "").lower().split())
        source = (item.source or "").lower().strip()

        strict_key = (label, currency, cents, source)
        if strict_key in seen_strict:
            continue

        numeric_key = (currency, cents)
        previous = seen_numeric.get(numeric_key)
        is_reit = re.search(r"\breit\b", label) is not None
        if previous is not None and (is_reit or not source):
            continue

        seen_strict.add(strict_key)
        if previous is None:
            seen_numeric[numeric_key] = item
        kept.append(item)
    return kept


def extract_profits(text: str) -> list[ProfitItem]:
    """Run the rule pipeline over already prepared (ASCII) text."""

    items = _run_rules(PRIMARY_RULES, text)
    if not items:
        items = _run_rules(FALLBACK_RULES, text)
    return dedupe_profits(items)


def build_summary(items: list[ProfitItem]) -> str:
    if not items:
        return "No se detectaron beneficios."
    totals: dict[str, float] = {}
    for item in items:
        totals[item.currency] = totals.get(item.currency, 0.0) + (item.amount or 0)
    return " · ".join(f"Total aprox.: {format_number_es(total)} {currency}" for currency, total in totals.items())


class TextProfitExtractor:
    """Turns raw statement text into a :class:`ProfitExtraction`."""

    def extract(self, raw_text: str, document_id: int, owner_id: int | None = None) -> ProfitExtraction:
        started = time.perf_counter()
        normalised = normalise_statement_text(raw_text or "")
        profits = extract_profits(prepare_statement_text(raw_text or ""))
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        logger.info("Statement %s: items=%s (%sms)", document_id, len(profits), elapsed_ms)
        return ProfitExtraction(
            document_id=document_id,
            owner_id=owner_id,
            summary=build_summary(profits),
            profits=profits,
            raw_text_chars=len(normalised),
            elapsed_ms=elapsed_ms,
        )
