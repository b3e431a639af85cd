from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from portal.core.schema import ProfitItem
from portal.extractors.profits import (
    TextProfitExtractor,
    bank_section_rule,
    build_summary,
    dedupe_profits,
    extract_profits,
    split_sections,
)
from portal.core.text import prepare_statement_text

REIT_AND_SANTANDER = """
RESULTADO DE LA INVERSIÓN EN REIT USA
Rentabilidad del periodo positiva.
DIVIDENDOS COBRADOS: 1.200,50 EUR
En Santander: dividendos de 1.200,50 EUR
"""


def test_reit_item_and_sourced_bank_item_both_survive():
    items = extract_profits(prepare_statement_text(REIT_AND_SANTANDER))

    assert [(item.label, item.source) for item in items] == [
        ("Dividendos REIT", "REIT USA"),
        ("Dividendos", "Santander"),
    ]
    assert all(item.amount == pytest.approx(1200.50) for item in items)
    assert all(item.currency == "EUR" for item in items)
    assert items[0].confidence == 0.9
    assert items[1].confidence == 0.75


def test_dedupe_keeps_sourced_item_after_sourceless_one():
    sourceless = ProfitItem(label="Dividendos", amount=100, currency="EUR")
    sourced = ProfitItem(label="Dividendos", amount=100, currency="EUR", source="BBVA")

    assert dedupe_profits([sourceless, sourced]) == [sourceless, sourced]


def test_dedupe_drops_sourceless_item_after_sourced_one():
    sourceless = ProfitItem(label="Dividendos", amount=100, currency="EUR")
    sourced = ProfitItem(label="Dividendos", amount=100, currency="EUR", source="BBVA")

    assert dedupe_profits([sourced, sourceless]) == [sourced]


def test_dedupe_drops_later_reit_item_and_exact_repeats():
    sourced = ProfitItem(label="Dividendos", amount=100, currency="EUR", source="BBVA")
    reit = ProfitItem(label="Dividendos REIT", amount=100, currency="EUR", source="REIT USA")
    other_currency = ProfitItem(label="Dividendos REIT", amount=100, currency="USD", source="REIT USA")

    assert dedupe_profits([sourced, sourced, reit, other_currency]) == [sourced, other_currency]


def test_dedupe_rounds_half_cents_up():
    sourced = ProfitItem(label="Dividendos", amount=0.125, currency="EUR", source="BBVA")
    sourceless = ProfitItem(label="Dividendos", amount=0.13, currency="EUR")

    assert dedupe_profits([sourced, sourceless]) == [sourced]


def test_investment_cue_discards_section_match():
    text = prepare_statement_text("En BBVA: compra de acciones con dividendos de 500,00 EUR\n")

    assert bank_section_rule(text) == []
    items = extract_profits(text)
    assert [item.source for item in items] == [None]
    assert items[0].confidence == 0.6


def test_global_fallback_only_runs_when_rules_find_nothing():
    text = prepare_statement_text(
        "DIVIDENDOS percibidos durante el ejercicio segun el detalle adjunto de la cartera: 75,00 USD"
    )

    items = extract_profits(text)

    assert len(items) == 1
    assert items[0].amount == pytest.approx(75.0)
    assert items[0].currency == "USD"
    assert items[0].source is None
    assert items[0].confidence == 0.6


def test_rendimiento_lines_inside_bank_section():
    text = prepare_statement_text("En Bankinter:\nRendimiento cobrado del fondo 320,10 €\n")

    items = extract_profits(text)

    assert [(item.source, item.amount, item.currency) for item in items] == [("Bankinter", pytest.approx(320.10), "EUR")]


def test_sections_split_on_bank_headers():
    sections = split_sections("Cabecera\nEn BBVA: uno\nEn Sabadell:\ndos")

    assert [(section.bank, section.body.strip()) for section in sections] == [("BBVA", "uno"), ("Sabadell", "dos")]


def test_summary_totals_per_currency():
    items = [
        ProfitItem(label="Dividendos", amount=1000, currency="EUR", source="BBVA"),
        ProfitItem(label="Dividendos", amount=234.5, currency="EUR", source="Sabadell"),
        ProfitItem(label="Dividendos", amount=10, currency="USD"),
    ]

    assert build_summary(items) == "Total aprox.: 1.234,50 EUR · Total aprox.: 10,00 USD"
    assert build_summary([]) == "No se detectaron beneficios."


def test_text_extractor_reports_metadata():
    extraction = TextProfitExtractor().extract(REIT_AND_SANTANDER, document_id=3, owner_id=9)

    assert extraction.document_id == 3
    assert extraction.owner_id == 9
    assert len(extraction.profits) == 2
    assert extraction.raw_text_chars > 0
    assert extraction.elapsed_ms >= 0
    assert extraction.summary.startswith("Total aprox.: 2.401,00 EUR")


def test_empty_text_detects_nothing():
    extraction = TextProfitExtractor().extract("", document_id=1)

    assert extraction.profits == []
    assert extraction.summary == "No se detectaron beneficios."
