from __future__ import annotations

import math
import sys
from datetime import datetime
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from portal.core.numbers import (
    clean_num,
    format_currency,
    format_date,
    normalise_currency,
    normalise_key,
    parse_money,
    parse_percentage,
)
from portal.core.text import prepare_statement_text, sanitize


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1.200,50", 1200.50),
        ("1,200.50", 1200.50),
        ("1.200", 1200.0),
        ("350,75", 350.75),
        ("12.345.678,9", 12345678.9),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
    ],
)
def test_parse_money_last_separator_is_decimal(raw, expected):
    assert parse_money(raw) == pytest.approx(expected)


def test_clean_num_handles_cells():
    assert clean_num(100000) == 100000.0
    assert clean_num(float("nan")) == 0.0
    assert clean_num(None) == 0.0
    assert clean_num("NaN") == 0.0
    assert clean_num("  ") == 0.0
    assert clean_num("€ 1.234,56") == pytest.approx(1234.56)
    assert clean_num("US$ 2,500.00") == pytest.approx(2500.0)
    assert not math.isnan(clean_num("nan"))


def test_currency_and_percentage_helpers():
    assert normalise_currency("€") == "EUR"
    assert normalise_currency("US$") == "USD"
    assert normalise_currency("$") == "USD"
    assert normalise_currency("eur") == "EUR"
    assert parse_percentage("3.40%") == pytest.approx(3.4)
    assert parse_percentage("-1,25 %") == pytest.approx(-1.25)
    assert parse_percentage("n/a") is None


def test_spanish_formatting():
    assert format_currency(1234.5) == "1.234,50 €"
    assert format_currency(-20000, "USD") == "-20.000,00 $"
    assert format_date(datetime(2025, 3, 31)) == "31/03/2025"
    assert format_date(None) == "—"
    assert normalise_key("Banca March, S.A.") == "bancamarchsa"


def test_sanitize_collapses_model_echoes():
    assert sanitize("Tu patrimonio patrimonio es alto!!!") == "Tu patrimonio es alto!"
    assert sanitize("muy bien hecho muy bien hecho") == "muy bien hecho"
    assert sanitize("  hola    mundo  ") == "hola mundo"


def test_prepare_statement_text_strips_accents_and_blank_lines():
    raw = "RESULTADO DE LA INVERSIÓN\r\n\n\nEn Santander: dividendos"
    assert prepare_statement_text(raw) == "RESULTADO DE LA INVERSION\nEn Santander: dividendos"
