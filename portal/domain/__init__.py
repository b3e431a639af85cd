"""Domain layer definitions."""

from .facts import AllocationTotal, ClientRanking, Facts, GlobalMetrics, ReportFact
from .records import (
    DocumentRecord,
    HistoryRecord,
    InvoiceRecord,
    MessageRecord,
    ProfitRecord,
    ReportRecord,
    UserProfile,
    UserRecord,
    is_admin,
)

__all__ = [
    "AllocationTotal",
    "ClientRanking",
    "DocumentRecord",
    "Facts",
    "GlobalMetrics",
    "HistoryRecord",
    "InvoiceRecord",
    "MessageRecord",
    "ProfitRecord",
    "ReportFact",
    "ReportRecord",
    "UserProfile",
    "UserRecord",
    "is_admin",
]
