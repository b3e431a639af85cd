from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

WALLET_CATEGORIES: tuple[str, ...] = (
    "RV USA",
    "RV EUR",
    "RV EM",
    "RF IG",
    "RF HY",
    "Preferentes",
    "Estructurados",
    "Alternativo",
    "Activos Digitales",
    "Liquidez",
    "Total",
)
TOTAL_CATEGORY = "Total"


class Totals(BaseModel):
    custody: float = 0.0
    off_custody: float = 0.0
    debt: float = 0.0
    net_worth: float = 0.0


class HistoryPoint(BaseModel):
    date: datetime | str
    net_value: float
    monthly_return_pct: float
    ytd_return_pct: float


class AllocationRow(BaseModel):
    category: Literal[
        "RV USA",
        "RV EUR",
        "RV EM",
        "RF IG",
        "RF HY",
        "Preferentes",
        "Estructurados",
        "Alternativo",
        "Activos Digitales",
        "Liquidez",
        "Total",
    ]
    value: float
    percentage: float


class ExecutiveSummary(BaseModel):
    bank_breakdown: dict[str, Totals] = Field(default_factory=dict)
    total_net_worth: float | None = None
    total_debt: float | None = None
    debt_to_worth: str | None = None
    ytd_return: str | None = None


class ReportDraft(BaseModel):
    client_id: int
    report_date: datetime
    executive_summary: ExecutiveSummary
    snapshot: Totals
    history: list[HistoryPoint] = Field(default_factory=list)
    distribution: list[AllocationRow] = Field(default_factory=list)
    child_distribution: list[AllocationRow] = Field(default_factory=list)


class ProfitItem(BaseModel):
    label: str
    amount: float = Field(ge=0)
    currency: str
    source: str | None = None
    confidence: float | None = Field(default=None, ge=0, le=1)


class ProfitExtraction(BaseModel):
    document_id: int
    owner_id: int | None = None
    summary: str
    profits: list[ProfitItem] = Field(default_factory=list)
    raw_text_chars: int = 0
    elapsed_ms: int = 0


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)
    max_tokens: int | None = Field(default=None, ge=64, le=4096)
    temperature: float | None = Field(default=None, ge=0, le=1)


class PublishRequest(BaseModel):
    client_id: int
    report: ReportDraft
    summary_global: str | None = None
    summary_tailored: str | None = None
