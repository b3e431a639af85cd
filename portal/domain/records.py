"""Stored entities consumed by the facts and chat layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from portal.core.schema import AllocationRow, ExecutiveSummary, HistoryPoint, Totals

Role = Literal["client", "admin", "superadmin"]
ADMIN_ROLES = {"admin", "superadmin"}


def is_admin(role: str) -> bool:
    return role in ADMIN_ROLES


@dataclass(slots=True)
class UserProfile:
    first_name: str | None = None
    last_name: str | None = None
    fee_percentage: float | None = None
    fee_interval: Literal["quarterly", "biannual"] | None = None
    preferred_currency: str | None = None
    preferred_language: str | None = None
    risk_profile: str | None = None

    @property
    def display_name(self) -> str | None:
        parts = [part.strip() for part in (self.first_name, self.last_name) if part and part.strip()]
        return " ".join(parts) or None


@dataclass(slots=True)
class UserRecord:
    user_id: int
    email: str
    role: Role = "client"
    is_active: bool = True
    profile: UserProfile | None = None


@dataclass(slots=True)
class InvoiceRecord:
    invoice_id: int
    client_id: int
    invoice_date: datetime
    amount: float
    description: str | None = None
    report_id: int | None = None


@dataclass(slots=True)
class HistoryRecord:
    client_id: int
    date: datetime
    net_value: float
    monthly_return_pct: float
    ytd_return_pct: float


@dataclass(slots=True)
class ReportRecord:
    """A published report.

    ``executive_summary`` is preferred over ``snapshot`` wherever both carry
    the same figure.
    """

    report_id: int
    client_id: int
    report_date: datetime
    executive_summary: ExecutiveSummary | None = None
    snapshot: Totals | None = None
    history: list[HistoryPoint] = field(default_factory=list)
    distribution: list[AllocationRow] = field(default_factory=list)
    child_distribution: list[AllocationRow] = field(default_factory=list)
    summary_global: str | None = None
    summary_tailored: str | None = None
    invoice: InvoiceRecord | None = None
    client_name: str | None = None


@dataclass(slots=True)
class DocumentRecord:
    document_id: int
    filename: str
    title: str
    doc_type: str = "desconocido"
    date: datetime | None = None
    bank: str | None = None
    month: str | None = None
    year: str | None = None
    owner_id: int | None = None
    path: str | None = None

    @property
    def is_general(self) -> bool:
        return self.owner_id is None


@dataclass(slots=True)
class ProfitRecord:
    document_id: int
    owner_id: int | None
    data: list[dict[str, Any]] = field(default_factory=list)
    summary: str | None = None
    raw_text_chars: int | None = None
    elapsed_ms: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class MessageRecord:
    conversation_id: int
    role: Literal["system", "user", "assistant"]
    content: str
    tokens_in: int | None = None
    tokens_out: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
