"""Extractor for the brokerage consolidation workbook.

The workbook follows a fixed template: a ``Totales`` sheet holding the
per-bank positions, the consolidated ``total`` row and the monthly history
block, plus ``Distribución`` / ``Distribución Hijos`` sheets with the asset
allocation tables.  Extraction is best effort: a missing sheet or header
simply yields empty or zeroed sections so that the upload flow never aborts.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from portal.core.numbers import clean_num, format_percentage
from portal.core.schema import (
    WALLET_CATEGORIES,
    AllocationRow,
    ExecutiveSummary,
    HistoryPoint,
    ReportDraft,
    Totals,
)

logger = logging.getLogger(__name__)

SHEET_TOTALS = "Totals"
SHEET_DISTRIBUTION = "Distribution"
SHEET_DISTRIBUTION_CHILDREN = "Distribution-Children"

SHEET_ALIASES: dict[str, tuple[str, ...]] = {
    SHEET_TOTALS: ("Totals", "Totales"),
    SHEET_DISTRIBUTION: ("Distribution", "Distribución", "Distribucion"),
    SHEET_DISTRIBUTION_CHILDREN: (
        "Distribution-Children",
        "Distribución Hijos",
        "Distribucion Hijos",
    ),
}

# Column positions inside the ``Totales`` sheet.
TOTALS_COLUMNS = (1, 2, 3, 4)
HISTORY_DATE_COL = 8
HISTORY_VALUE_COL = 9
HISTORY_MONTHLY_COL = 10
HISTORY_YTD_COL = 11

UNKNOWN_BANK = "Unknown"

_YEAR_PREFIX = re.compile(r"^\d{4}")

Grid = list[list[Any]]


@dataclass
class WorkbookWorkspace:
    sheets: dict[str, Grid] = field(default_factory=dict)

    def rows(self, sheet: str) -> Grid:
        return self.sheets.get(sheet, [])


def _cell(row: list[Any] | None, index: int) -> Any:
    if not row or index < 0 or index >= len(row):
        return None
    return row[index]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return _text(value).strip() == ""


def _frame_to_grid(frame: pd.DataFrame) -> Grid:
    grid: Grid = []
    for row in frame.itertuples(index=False, name=None):
        cells: list[Any] = []
        for value in row:
            if isinstance(value, pd.Timestamp):
                cells.append(value.to_pydatetime())
            elif value is None or (not isinstance(value, str) and pd.isna(value)):
                cells.append(None)
            else:
                cells.append(value)
        grid.append(cells)
    return grid


def load_workbook_workspace(source: Path | bytes) -> WorkbookWorkspace:
    """Read the known sheets of ``source`` into raw cell grids."""

    handle = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        frames = pd.read_excel(handle, sheet_name=None, header=None)
    except Exception as exc:  # pandas/openpyxl raise a wide range of errors
        logger.info("Workbook could not be read: %s", exc)
        return WorkbookWorkspace()

    sheets: dict[str, Grid] = {}
    for canonical, aliases in SHEET_ALIASES.items():
        for alias in aliases:
            if alias in frames:
                sheets[canonical] = _frame_to_grid(frames[alias])
                break
        else:
            logger.info("Workbook has no %s sheet", canonical)
    return WorkbookWorkspace(sheets=sheets)


def _totals_from_row(row: list[Any]) -> Totals:
    custody, off_custody, debt, net_worth = (clean_num(_cell(row, index)) for index in TOTALS_COLUMNS)
    return Totals(custody=custody, off_custody=off_custody, debt=debt, net_worth=net_worth)


def _as_history_date(value: Any) -> datetime | str:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = _text(value).strip()
    try:
        return pd.Timestamp(text).to_pydatetime()
    except (ValueError, TypeError):
        return text


def _is_date_like(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return True
    if _is_blank(value):
        return False
    return bool(_YEAR_PREFIX.match(_text(value)))


class WorkbookExtractor:
    """Produces the quantitative sections of a :class:`ReportDraft`."""

    def __init__(self, workspace: WorkbookWorkspace) -> None:
        self._workspace = workspace

    @classmethod
    def from_source(cls, source: Path | bytes) -> "WorkbookExtractor":
        return cls(load_workbook_workspace(source))

    def extract_totals(self) -> Totals:
        for row in self._workspace.rows(SHEET_TOTALS):
            if not row:
                continue
            if any(_text(cell).strip().lower() == "total" for cell in row if cell is not None):
                return _totals_from_row(row)
        return Totals()

    def extract_bank_breakdown(self) -> dict[str, Totals]:
        rows = self._workspace.rows(SHEET_TOTALS)

        def contains(row: list[Any], needle: str) -> bool:
            return any(not _is_blank(cell) and needle in _text(cell).lower() for cell in row or [])

        bank_idx = next((idx for idx, row in enumerate(rows) if contains(row, "banco")), -1)
        if bank_idx == -1:
            return {}
        total_idx = next(
            (idx for idx, row in enumerate(rows) if idx > bank_idx and contains(row, "total")),
            -1,
        )
        if total_idx == -1:
            return {}

        breakdown: dict[str, Totals] = {}
        for row in rows[bank_idx + 1 : total_idx]:
            first = _cell(row, 0)
            name = UNKNOWN_BANK if _is_blank(first) else _text(first).strip()
            breakdown[name] = _totals_from_row(row)
        return breakdown

    def extract_monthly_history(self) -> list[HistoryPoint]:
        history: list[HistoryPoint] = []
        for row in self._workspace.rows(SHEET_TOTALS):
            raw_date = _cell(row, HISTORY_DATE_COL)
            if not _is_date_like(raw_date):
                continue
            net_value = clean_num(_cell(row, HISTORY_VALUE_COL))
            if net_value == 0:
                continue
            history.append(
                HistoryPoint(
                    date=_as_history_date(raw_date),
                    net_value=net_value,
                    monthly_return_pct=clean_num(_cell(row, HISTORY_MONTHLY_COL)) * 100,
                    ytd_return_pct=clean_num(_cell(row, HISTORY_YTD_COL)) * 100,
                )
            )
        return history

    def extract_asset_allocation(self, is_child_table: bool = False) -> list[AllocationRow]:
        sheet = SHEET_DISTRIBUTION_CHILDREN if is_child_table else SHEET_DISTRIBUTION
        rows = self._workspace.rows(sheet)

        start_idx = -1
        category_col = -1
        for idx, row in enumerate(rows):
            for col, cell in enumerate(row or []):
                if not _is_blank(cell) and "TOTAL CARTERA" in _text(cell).upper():
                    start_idx, category_col = idx, col
                    break
            if start_idx != -1:
                break
        if start_idx == -1:
            logger.debug("No TOTAL CARTERA header in %s", sheet)
            return []

        table_rows = rows[start_idx + 1 :]
        allocation: list[AllocationRow] = []
        for category in WALLET_CATEGORIES:
            wanted = category.lower()
            match = next(
                (
                    row
                    for row in table_rows
                    if not _is_blank(_cell(row, category_col))
                    and _text(_cell(row, category_col)).strip().lower() == wanted
                ),
                None,
            )
            if match is None:
                continue
            allocation.append(
                AllocationRow(
                    category=category,
                    value=clean_num(_cell(match, category_col + 1)),
                    percentage=clean_num(_cell(match, category_col + 2)) * 100,
                )
            )
        return allocation

    def build_report_draft(self, client_id: int, report_date: datetime | None = None) -> ReportDraft:
        totals = self.extract_totals()
        banks = self.extract_bank_breakdown()
        history = self.extract_monthly_history()

        if totals.net_worth > 0:
            debt_ratio = format_percentage(abs(totals.debt) / totals.net_worth * 100)
        else:
            debt_ratio = "0.00%"
        ytd = format_percentage(history[-1].ytd_return_pct) if history else "0.00%"

        summary = ExecutiveSummary(
            bank_breakdown=banks,
            total_net_worth=totals.net_worth,
            total_debt=totals.debt,
            debt_to_worth=debt_ratio,
            ytd_return=ytd,
        )
        return ReportDraft(
            client_id=client_id,
            report_date=report_date or datetime.now(),
            executive_summary=summary,
            snapshot=totals,
            history=history,
            distribution=self.extract_asset_allocation(),
            child_distribution=self.extract_asset_allocation(is_child_table=True),
        )
