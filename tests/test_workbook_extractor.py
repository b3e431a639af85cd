from __future__ import annotations

import io
import sys
from datetime import datetime
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest
from openpyxl import Workbook

from portal.extractors.workbook import WorkbookExtractor, WorkbookWorkspace, load_workbook_workspace


def _build_workbook(totals_title: str = "Totals") -> bytes:
    workbook = Workbook()
    totals = workbook.active
    totals.title = totals_title
    totals.append(["Banco", "Custodia", "Fuera custodia", "Deuda", "Patrimonio", None, None, None, "Fecha", "Valor", "Mensual", "YTD"])
    totals.append(["Santander", 60000, 5000, -10000, 55000, None, None, None, datetime(2025, 1, 31), 80000, 0.01, 0.01])
    totals.append(["BBVA", 40000, 0, -10000, 30000, None, None, None, datetime(2025, 2, 28), 82000, 0.012, 0.022])
    totals.append(["Total", 100000, 5000, -20000, 85000, None, None, None, datetime(2025, 3, 31), 85000, 0.012, 0.034])

    distribution = workbook.create_sheet("Distribución")
    distribution.append(["TOTAL CARTERA", "Valor", "Peso"])
    distribution.append(["RV USA", 30000, 0.35])
    distribution.append(["Liquidez", 5000, 0.06])
    distribution.append(["Cripto", 1000, 0.01])
    distribution.append(["Total", 85000, 1])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_extract_totals_from_uploaded_workbook():
    extractor = WorkbookExtractor.from_source(_build_workbook())

    totals = extractor.extract_totals()

    assert totals.custody == 100000
    assert totals.off_custody == 5000
    assert totals.debt == -20000
    assert totals.net_worth == 85000


def test_spanish_sheet_names_are_accepted(tmp_path):
    path = tmp_path / "consolidado.xlsx"
    path.write_bytes(_build_workbook(totals_title="Totales"))

    extractor = WorkbookExtractor.from_source(path)

    assert extractor.extract_totals().net_worth == 85000
    assert [row.category for row in extractor.extract_asset_allocation()] == ["RV USA", "Liquidez", "Total"]


def test_bank_breakdown_sits_between_header_and_total_rows():
    extractor = WorkbookExtractor.from_source(_build_workbook())

    breakdown = extractor.extract_bank_breakdown()

    assert list(breakdown) == ["Santander", "BBVA"]
    assert breakdown["Santander"].net_worth == 55000
    assert breakdown["BBVA"].debt == -10000


def test_monthly_history_scales_fractions_to_percentages():
    extractor = WorkbookExtractor.from_source(_build_workbook())

    history = extractor.extract_monthly_history()

    assert [point.date for point in history] == [
        datetime(2025, 1, 31),
        datetime(2025, 2, 28),
        datetime(2025, 3, 31),
    ]
    assert history[-1].net_value == 85000
    assert history[-1].monthly_return_pct == pytest.approx(1.2)
    assert history[-1].ytd_return_pct == pytest.approx(3.4)


def test_report_draft_combines_sections():
    extractor = WorkbookExtractor.from_source(_build_workbook())

    draft = extractor.build_report_draft(client_id=7, report_date=datetime(2025, 3, 31))

    summary = draft.executive_summary
    assert draft.client_id == 7
    assert summary.total_net_worth == 85000
    assert summary.total_debt == -20000
    assert summary.debt_to_worth == "23.53%"
    assert summary.ytd_return == "3.40%"
    assert draft.snapshot.custody == 100000
    assert draft.distribution[0].percentage == pytest.approx(35.0)
    assert draft.child_distribution == []


def test_history_skips_rows_without_date_or_value():
    workspace = WorkbookWorkspace(
        sheets={
            "Totals": [
                [None] * 8 + ["Fecha", "Valor", None, None],
                [None] * 8 + ["2025-01-31", 0, 0.01, 0.01],
                [None] * 8 + ["enero", 1000, 0.01, 0.01],
                [None] * 8 + ["2025-02-28", "1.500,00", 0.02, 0.03],
            ]
        }
    )

    history = WorkbookExtractor(workspace).extract_monthly_history()

    assert len(history) == 1
    assert history[0].net_value == 1500
    assert history[0].date == datetime(2025, 2, 28)


def test_unknown_bank_name_and_missing_total_row():
    rows = [
        ["Banco", "Custodia", "Fuera", "Deuda", "Neto"],
        [None, 10, 0, 0, 10],
        ["Total", 10, 0, 0, 10],
    ]
    extractor = WorkbookExtractor(WorkbookWorkspace(sheets={"Totals": rows}))
    assert list(extractor.extract_bank_breakdown()) == ["Unknown"]

    without_total = WorkbookExtractor(WorkbookWorkspace(sheets={"Totals": rows[:2]}))
    assert without_total.extract_bank_breakdown() == {}
    assert without_total.extract_totals().net_worth == 0


def test_empty_workbook_yields_zeroed_draft():
    extractor = WorkbookExtractor(WorkbookWorkspace())

    draft = extractor.build_report_draft(client_id=1)

    assert draft.snapshot.net_worth == 0
    assert draft.executive_summary.debt_to_worth == "0.00%"
    assert draft.executive_summary.ytd_return == "0.00%"
    assert draft.history == []
    assert draft.distribution == []


def test_unreadable_upload_returns_empty_workspace():
    workspace = load_workbook_workspace(b"not an excel file")
    assert workspace.sheets == {}


def test_allocation_follows_category_enumeration_from_any_column():
    workbook = Workbook()
    workbook.active.title = "Totals"
    distribution = workbook.create_sheet("Distribución")
    distribution.append(["Distribución de cartera"])
    for row, values in enumerate(
        [("TOTAL CARTERA", "Valor", "Peso"), ("Liquidez", 5000, 0.1), ("RV USA", 45000, 0.9), ("Total", 50000, 1)],
        start=2,
    ):
        for offset, value in enumerate(values):
            distribution.cell(row=row, column=8 + offset, value=value)
    buffer = io.BytesIO()
    workbook.save(buffer)

    allocation = WorkbookExtractor.from_source(buffer.getvalue()).extract_asset_allocation()

    assert [(row.category, row.value) for row in allocation] == [
        ("RV USA", 45000),
        ("Liquidez", 5000),
        ("Total", 50000),
    ]
    assert allocation[0].percentage == pytest.approx(90)
