from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from portal.application import IntentRouter
from portal.domain import ClientRanking, Facts, GlobalMetrics, InvoiceRecord, ReportFact


def _report(**overrides) -> ReportFact:
    values = dict(
        client_id=1,
        client_name="Ana García",
        report_date=datetime(2025, 3, 31),
        total_patrimony=85000,
        total_debt=-20000,
        ytd_return="3.40%",
        monthly_return=1.2,
        bank_breakdown=["Santander: 55.000,00 €", "Banca March: 30.000,00 €"],
        invoices=[
            InvoiceRecord(
                invoice_id=1,
                client_id=1,
                invoice_date=datetime(2025, 4, 1),
                amount=212.5,
                description="Management Fee - Quarterly (2025)",
            )
        ],
    )
    values.update(overrides)
    return ReportFact(**values)


def _client_facts() -> Facts:
    report = _report()
    return Facts(role="client", user_profile=None, reports=[report], latest_report=report)


def _admin_facts() -> Facts:
    report = _report()
    metrics = GlobalMetrics(
        total_aum=170000,
        total_debt=-21000,
        active_clients=2,
        average_ytd="2.70%",
        top_clients=[ClientRanking("Ana García", 85000)],
    )
    return Facts(role="admin", user_profile=None, reports=[report], latest_report=report, global_metrics=metrics)


def test_first_matching_intent_wins():
    answer = IntentRouter().route("¿Cuál es mi patrimonio total y mi deuda total?", _client_facts())

    assert answer == "Tu patrimonio neto según el informe del 31/03/2025 es de 85.000,00 €."


def test_admin_sees_global_aggregates():
    router = IntentRouter()
    facts = _admin_facts()

    assert "170.000,00 €" in router.route("patrimonio total", facts)
    assert "2 clientes activos" in router.route("patrimonio total", facts)
    assert router.route("¿Y la deuda total?", facts) == "La deuda total agregada de los clientes es de -21.000,00 €."
    assert "2.70%" in router.route("rentabilidad media", facts)


def test_client_performance_and_invoice():
    router = IntentRouter()
    facts = _client_facts()

    assert router.route("¿Qué rendimiento llevo?", facts) == (
        "Tu rendimiento en lo que va de año (YTD) es 3.40% y el último rendimiento mensual fue 1.20%."
    )
    assert router.route("Enséñame mi última factura", facts) == (
        "Tu factura más reciente es del 01/04/2025: Management Fee - Quarterly (2025) por 212,50 €."
    )


def test_bank_lookup_matches_breakdown_line():
    router = IntentRouter()

    answer = router.route("¿Qué posición tengo en el banco March este mes?", _client_facts())

    assert answer == "Posición en Banca March: 30.000,00 € (el informe del 31/03/2025)."


def test_unknown_bank_falls_through():
    router = IntentRouter()

    assert router.route("¿Qué posición tengo en el banco Deutsche?", _client_facts()) is None
    assert router.route("Dime el último informe del banco Deutsche", _client_facts()).startswith(
        "El informe más reciente es el informe del 31/03/2025"
    )


def test_no_reports_answer_and_no_match():
    router = IntentRouter()
    empty = Facts(role="client", user_profile=None)

    assert router.route("¿Cuál es mi deuda?", empty).startswith("Todavía no tengo informes tuyos")
    assert router.route("¿Qué opinas del mercado?", _client_facts()) is None
