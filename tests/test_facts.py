from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from portal.application import FactsBuilder, facts_to_prompt_text
from portal.core.schema import AllocationRow, ExecutiveSummary, HistoryPoint, Totals
from portal.core.settings import Settings
from portal.domain import HistoryRecord, InvoiceRecord, ReportRecord, UserProfile, UserRecord
from portal.domain.facts import SUMMARY_PLACEHOLDER
from portal.infrastructure import InMemoryHistoryStore, InMemoryReportStore, InMemoryUserStore

ADMIN = UserRecord(user_id=9900, email="admin@firma.es", role="admin")
ANA = UserRecord(
    user_id=9001,
    email="ana@example.com",
    profile=UserProfile(first_name="Ana", last_name="García", fee_percentage=0.01, fee_interval="quarterly"),
)
LUIS = UserRecord(user_id=9002, email="luis@example.com", profile=UserProfile(first_name="Luis", last_name="Pérez"))


def _report(report_id: int, client_id: int, when: datetime, net_worth: float, **extra) -> ReportRecord:
    return ReportRecord(
        report_id=report_id,
        client_id=client_id,
        report_date=when,
        executive_summary=ExecutiveSummary(
            bank_breakdown={"Santander": Totals(net_worth=net_worth * 0.6), "BBVA": Totals(net_worth=net_worth * 0.4)},
            total_net_worth=net_worth,
            total_debt=-1000,
            ytd_return="1.00%",
        ),
        snapshot=Totals(net_worth=net_worth, debt=-1000),
        distribution=[
            AllocationRow(category="RV USA", value=net_worth * 0.5, percentage=50),
            AllocationRow(category="Liquidez", value=net_worth * 0.5, percentage=50),
            AllocationRow(category="Total", value=net_worth, percentage=100),
        ],
        **extra,
    )


@pytest.fixture()
def stores():
    users = InMemoryUserStore()
    for user in (ADMIN, ANA, LUIS):
        users.add_user(user)
    reports = InMemoryReportStore(users)
    history = InMemoryHistoryStore()

    reports.add_report(_report(7001, ANA.user_id, datetime(2025, 1, 31), 100000))
    reports.add_report(_report(7002, ANA.user_id, datetime(2025, 2, 28), 110000))
    reports.add_report(
        _report(
            7003,
            ANA.user_id,
            datetime(2025, 3, 31),
            120000,
            history=[HistoryPoint(date=datetime(2025, 3, 31), net_value=120000, monthly_return_pct=1.5, ytd_return_pct=4.25)],
            summary_tailored="Trimestre sólido con buena diversificación.",
            invoice=InvoiceRecord(
                invoice_id=7777,
                client_id=ANA.user_id,
                invoice_date=datetime(2025, 4, 1),
                amount=300,
                description="Management Fee - Quarterly (2025)",
                report_id=7003,
            ),
        )
    )
    reports.add_report(_report(7004, LUIS.user_id, datetime(2025, 2, 28), 50000, summary_global="ok"))

    history.save_history(
        ANA.user_id,
        [
            HistoryRecord(ANA.user_id, datetime(2025, 2, 28), 110000, 0.8, 2.7),
            HistoryRecord(ANA.user_id, datetime(2025, 3, 31), 120000, 1.5, 4.25),
        ],
    )
    return users, reports, history


def _builder(stores) -> FactsBuilder:
    users, reports, history = stores
    return FactsBuilder(users, reports, history, Settings(), clock=lambda: datetime(2025, 12, 31))


def test_global_metrics_use_latest_report_per_client(stores):
    facts = _builder(stores).build_facts(ADMIN)

    metrics = facts.global_metrics
    assert metrics is not None
    assert metrics.active_clients == 2
    assert metrics.total_aum == 120000 + 50000
    assert metrics.total_debt == -2000
    assert [client.client_name for client in metrics.top_clients] == ["Ana García", "Luis Pérez"]
    assert [(row.category, row.value) for row in metrics.allocation] == [("RV USA", 85000), ("Liquidez", 85000)]


def test_latest_report_is_the_newest(stores):
    facts = _builder(stores).build_facts(ADMIN)

    assert [fact.report_date for fact in facts.reports] == sorted(
        (fact.report_date for fact in facts.reports), reverse=True
    )
    assert facts.latest_report is facts.reports[0]
    assert facts.latest_report.report_date == datetime(2025, 3, 31)


def test_client_facts_are_scoped_to_own_reports(stores):
    facts = _builder(stores).build_facts(ANA)

    assert facts.global_metrics is None
    assert {fact.client_id for fact in facts.reports} == {ANA.user_id}
    latest = facts.latest_report
    assert latest.total_patrimony == 120000
    assert latest.ytd_return == "4.25%"
    assert latest.monthly_return == 1.5
    assert latest.bank_breakdown == ["Santander: 72.000,00 €", "BBVA: 48.000,00 €"]
    assert latest.summary == "Trimestre sólido con buena diversificación."
    assert [row.date for row in latest.history] == [datetime(2025, 2, 28), datetime(2025, 3, 31)]


def test_short_summary_is_replaced_by_placeholder(stores):
    facts = _builder(stores).build_facts(LUIS)

    assert facts.latest_report.summary == SUMMARY_PLACEHOLDER
    assert facts.latest_report.ytd_return == "1.00%"
    assert facts.latest_report.monthly_return == 0.0


def test_client_without_reports_gets_empty_facts(stores):
    users, reports, history = stores
    newcomer = users.add_user(UserRecord(user_id=9003, email="nuevo@example.com"))

    facts = _builder(stores).build_facts(newcomer)

    assert facts.reports == []
    assert facts.latest_report is None
    assert "Sin informes disponibles." in facts_to_prompt_text(facts)


def test_prompt_text_never_contains_internal_ids(stores):
    admin_text = facts_to_prompt_text(_builder(stores).build_facts(ADMIN))
    client_text = facts_to_prompt_text(_builder(stores).build_facts(ANA))

    for text in (admin_text, client_text):
        for identifier in ("9001", "9002", "9900", "7001", "7003", "7777"):
            assert identifier not in text


def test_admin_prompt_groups_reports_by_client(stores):
    text = facts_to_prompt_text(_builder(stores).build_facts(ADMIN))

    assert text.startswith("HECHOS DISPONIBLES")
    assert "RESUMEN GLOBAL:" in text
    assert "• Clientes activos: 2" in text
    assert text.index("Cliente: Ana García") < text.index("Cliente: Luis Pérez")
    assert "• Rol: administrador" in text


def test_client_prompt_lists_profile_invoices_and_history(stores):
    text = facts_to_prompt_text(_builder(stores).build_facts(ANA))

    assert "RESUMEN GLOBAL:" not in text
    assert "• Nombre: Ana García" in text
    assert "• Comisión de gestión: 1.00% (trimestral)" in text
    assert "01/04/2025 — Management Fee - Quarterly (2025): 300,00 €" in text
    assert "31/03/2025 — valor neto 120.000,00 €" in text
    assert text.count("• Informe ") == 3


def test_client_prompt_caps_report_listing(stores):
    users, reports, history = stores
    for month in range(4, 10):
        reports.add_report(_report(7100 + month, ANA.user_id, datetime(2025, month, 28), 130000))

    text = facts_to_prompt_text(_builder(stores).build_facts(ANA))

    assert text.count("• Informe ") == 5
    assert "• Informe 28/09/2025" in text


def test_admin_facts_carry_firm_history_up_to_now(stores):
    users, reports, history = stores
    history.save_history(
        LUIS.user_id,
        [
            HistoryRecord(LUIS.user_id, datetime(2025, 2, 28), 50000, 0.5, 1.0),
            HistoryRecord(LUIS.user_id, datetime(2026, 1, 31), 51000, 0.4, 0.4),
        ],
    )

    facts = _builder(stores).build_facts(ADMIN)

    for fact in facts.reports:
        assert {row.client_id for row in fact.history} == {ANA.user_id, LUIS.user_id}
        assert datetime(2026, 1, 31) not in [row.date for row in fact.history]

    text = facts_to_prompt_text(facts)
    assert "• Luis Pérez · 28/02/2025 — valor neto 50.000,00 €" in text
    assert "• Ana García · 31/03/2025 — valor neto 120.000,00 €" in text


def test_client_without_name_is_shown_by_id_text(stores):
    users, reports, history = stores
    users.add_user(UserRecord(user_id=9004, email="sin.nombre@example.com"))
    reports.add_report(_report(7200, 9004, datetime(2025, 3, 15), 10000))

    facts = _builder(stores).build_facts(ADMIN)

    fact = next(fact for fact in facts.reports if fact.client_id == 9004)
    assert fact.client_name == "9004"
    assert "Cliente: 9004" in facts_to_prompt_text(facts)
