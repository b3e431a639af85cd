"""Per-turn snapshot used to ground the assistant."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from portal.core.schema import AllocationRow
from portal.domain.records import HistoryRecord, InvoiceRecord, UserProfile

SUMMARY_PLACEHOLDER = "Sin resumen disponible para este informe."


@dataclass(slots=True)
class ReportFact:
    client_id: int
    client_name: str
    report_date: datetime
    total_patrimony: float
    total_debt: float
    ytd_return: str
    monthly_return: float
    bank_breakdown: list[str] = field(default_factory=list)
    summary: str = SUMMARY_PLACEHOLDER
    invoices: list[InvoiceRecord] = field(default_factory=list)
    history: list[HistoryRecord] = field(default_factory=list)
    allocation: list[AllocationRow] = field(default_factory=list)


@dataclass(slots=True)
class ClientRanking:
    client_name: str
    patrimony: float


@dataclass(slots=True)
class AllocationTotal:
    category: str
    value: float


@dataclass(slots=True)
class GlobalMetrics:
    total_aum: float
    total_debt: float
    active_clients: int
    average_ytd: str
    top_clients: list[ClientRanking] = field(default_factory=list)
    allocation: list[AllocationTotal] = field(default_factory=list)


@dataclass(slots=True)
class Facts:
    role: str
    user_profile: UserProfile | None
    reports: list[ReportFact] = field(default_factory=list)
    latest_report: ReportFact | None = None
    global_metrics: GlobalMetrics | None = None
