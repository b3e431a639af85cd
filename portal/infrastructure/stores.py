"""Persistence contracts consumed by the core and their in-memory versions."""
from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, time
from typing import Any, Protocol

from portal.core.schema import ProfitExtraction, ReportDraft
from portal.domain import (
    DocumentRecord,
    HistoryRecord,
    InvoiceRecord,
    MessageRecord,
    ProfitRecord,
    ReportRecord,
    UserRecord,
)

MONTH_ORDER = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}


def _end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def _start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


class UserStore(Protocol):
    def get_user(self, user_id: int) -> UserRecord | None: ...

    def add_user(self, user: UserRecord) -> UserRecord: ...


class ReportStore(Protocol):
    def save_report(
        self,
        draft: ReportDraft,
        *,
        summary_global: str | None = None,
        summary_tailored: str | None = None,
    ) -> ReportRecord: ...

    def update_report(self, report: ReportRecord) -> None: ...

    def list_reports_between(self, start: datetime, end: datetime) -> list[ReportRecord]: ...

    def list_reports_for_client(self, client_id: int) -> list[ReportRecord]: ...


class HistoryStore(Protocol):
    def save_history(self, client_id: int, rows: list[HistoryRecord]) -> list[HistoryRecord]: ...

    def list_up_to(self, until: datetime, client_id: int | None = None) -> list[HistoryRecord]: ...

    def list_for_client(self, client_id: int) -> list[HistoryRecord]: ...


class InvoiceStore(Protocol):
    def add_invoice(
        self,
        client_id: int,
        invoice_date: datetime,
        amount: float,
        description: str | None,
        report_id: int | None,
    ) -> InvoiceRecord: ...

    def find_by_report(self, report_id: int) -> InvoiceRecord | None: ...

    def delete_invoice(self, invoice_id: int) -> None: ...

    def list_for_client(self, client_id: int) -> list[InvoiceRecord]: ...


class DocumentStore(Protocol):
    def add_document(self, document: DocumentRecord) -> DocumentRecord: ...

    def get_document(self, document_id: int) -> DocumentRecord | None: ...

    def list_documents(self) -> list[DocumentRecord]: ...


class ProfitStore(Protocol):
    def save_extraction(self, extraction: ProfitExtraction) -> ProfitRecord: ...

    def delete_by_document(self, document_id: int) -> None: ...

    def list_records(self) -> list[ProfitRecord]: ...


class ConversationStore(Protocol):
    def get_or_create_conversation(self, user_id: int) -> int: ...

    def append_message(self, message: MessageRecord) -> MessageRecord: ...

    def list_messages(self, conversation_id: int) -> list[MessageRecord]: ...

    def clear(self, conversation_id: int) -> int: ...


class _Counter:
    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._value += 1
            return self._value


class InMemoryUserStore:
    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}

    def get_user(self, user_id: int) -> UserRecord | None:
        return self._users.get(user_id)

    def add_user(self, user: UserRecord) -> UserRecord:
        self._users[user.user_id] = user
        return user

    def reset(self) -> None:
        self._users.clear()


class InMemoryReportStore:
    """Reports ordered ascending by report date, as the relational store does."""

    def __init__(self, users: InMemoryUserStore | None = None) -> None:
        self._reports: dict[int, ReportRecord] = {}
        self._ids = _Counter()
        self._users = users

    def _hydrate(self, report: ReportRecord) -> ReportRecord:
        if self._users is None or report.client_name:
            return report
        user = self._users.get_user(report.client_id)
        name = user.profile.display_name if user and user.profile else None
        return replace(report, client_name=name) if name else report

    def _sorted(self, reports: list[ReportRecord]) -> list[ReportRecord]:
        return [self._hydrate(report) for report in sorted(reports, key=lambda item: item.report_date)]

    def save_report(
        self,
        draft: ReportDraft,
        *,
        summary_global: str | None = None,
        summary_tailored: str | None = None,
    ) -> ReportRecord:
        record = ReportRecord(
            report_id=self._ids.next(),
            client_id=draft.client_id,
            report_date=draft.report_date,
            executive_summary=draft.executive_summary,
            snapshot=draft.snapshot,
            history=list(draft.history),
            distribution=list(draft.distribution),
            child_distribution=list(draft.child_distribution),
            summary_global=summary_global,
            summary_tailored=summary_tailored,
        )
        self._reports[record.report_id] = record
        return record

    def add_report(self, report: ReportRecord) -> ReportRecord:
        self._reports[report.report_id] = report
        return report

    def update_report(self, report: ReportRecord) -> None:
        self._reports[report.report_id] = report

    def list_reports_between(self, start: datetime, end: datetime) -> list[ReportRecord]:
        lower, upper = _start_of_day(start), _end_of_day(end)
        return self._sorted([r for r in self._reports.values() if lower <= r.report_date <= upper])

    def list_reports_for_client(self, client_id: int) -> list[ReportRecord]:
        return self._sorted([r for r in self._reports.values() if r.client_id == client_id])

    def reset(self) -> None:
        self._reports.clear()
        self._ids = _Counter()


class InMemoryHistoryStore:
    def __init__(self) -> None:
        self._rows: list[HistoryRecord] = []

    def save_history(self, client_id: int, rows: list[HistoryRecord]) -> list[HistoryRecord]:
        """Insert rows whose date the client does not have yet."""

        existing = {row.date for row in self._rows if row.client_id == client_id}
        inserted: list[HistoryRecord] = []
        for row in rows:
            if row.date in existing:
                continue
            existing.add(row.date)
            inserted.append(row)
        self._rows.extend(inserted)
        return inserted

    def list_up_to(self, until: datetime, client_id: int | None = None) -> list[HistoryRecord]:
        limit = _end_of_day(until)
        rows = [
            row
            for row in self._rows
            if row.date <= limit and (client_id is None or row.client_id == client_id)
        ]
        return sorted(rows, key=lambda row: row.date)

    def list_for_client(self, client_id: int) -> list[HistoryRecord]:
        return sorted((row for row in self._rows if row.client_id == client_id), key=lambda row: row.date)

    def reset(self) -> None:
        self._rows.clear()


class InMemoryInvoiceStore:
    def __init__(self) -> None:
        self._invoices: dict[int, InvoiceRecord] = {}
        self._ids = _Counter()

    def add_invoice(
        self,
        client_id: int,
        invoice_date: datetime,
        amount: float,
        description: str | None,
        report_id: int | None,
    ) -> InvoiceRecord:
        invoice = InvoiceRecord(
            invoice_id=self._ids.next(),
            client_id=client_id,
            invoice_date=invoice_date,
            amount=amount,
            description=description,
            report_id=report_id,
        )
        self._invoices[invoice.invoice_id] = invoice
        return invoice

    def find_by_report(self, report_id: int) -> InvoiceRecord | None:
        return next((inv for inv in self._invoices.values() if inv.report_id == report_id), None)

    def delete_invoice(self, invoice_id: int) -> None:
        self._invoices.pop(invoice_id, None)

    def list_for_client(self, client_id: int) -> list[InvoiceRecord]:
        rows = [inv for inv in self._invoices.values() if inv.client_id == client_id]
        return sorted(rows, key=lambda inv: inv.invoice_date, reverse=True)

    def reset(self) -> None:
        self._invoices.clear()
        self._ids = _Counter()


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._documents: dict[int, DocumentRecord] = {}
        self._ids = _Counter()

    def next_id(self) -> int:
        return self._ids.next()

    def add_document(self, document: DocumentRecord) -> DocumentRecord:
        self._documents[document.document_id] = document
        return document

    def get_document(self, document_id: int) -> DocumentRecord | None:
        return self._documents.get(document_id)

    def list_documents(self) -> list[DocumentRecord]:
        return sorted(self._documents.values(), key=lambda doc: doc.date or datetime.min, reverse=True)

    def reset(self) -> None:
        self._documents.clear()
        self._ids = _Counter()


class InMemoryProfitStore:
    """One extraction row per document; a new extraction replaces the old."""

    def __init__(self) -> None:
        self._records: dict[int, ProfitRecord] = {}

    def save_extraction(self, extraction: ProfitExtraction) -> ProfitRecord:
        self.delete_by_document(extraction.document_id)
        record = ProfitRecord(
            document_id=extraction.document_id,
            owner_id=extraction.owner_id,
            data=[item.model_dump() for item in extraction.profits],
            summary=extraction.summary,
            raw_text_chars=extraction.raw_text_chars,
            elapsed_ms=extraction.elapsed_ms,
        )
        self._records[record.document_id] = record
        return record

    def delete_by_document(self, document_id: int) -> None:
        self._records.pop(document_id, None)

    def list_records(self) -> list[ProfitRecord]:
        return sorted(self._records.values(), key=lambda record: record.created_at, reverse=True)

    def reset(self) -> None:
        self._records.clear()


class InMemoryConversationStore:
    def __init__(self) -> None:
        self._conversations: dict[int, int] = {}
        self._messages: dict[int, list[MessageRecord]] = defaultdict(list)
        self._ids = _Counter()

    def get_or_create_conversation(self, user_id: int) -> int:
        if user_id not in self._conversations:
            self._conversations[user_id] = self._ids.next()
        return self._conversations[user_id]

    def append_message(self, message: MessageRecord) -> MessageRecord:
        self._messages[message.conversation_id].append(message)
        return message

    def list_messages(self, conversation_id: int) -> list[MessageRecord]:
        return list(self._messages.get(conversation_id, []))

    def clear(self, conversation_id: int) -> int:
        removed = len(self._messages.get(conversation_id, []))
        self._messages.pop(conversation_id, None)
        return removed

    def reset(self) -> None:
        self._conversations.clear()
        self._messages.clear()
        self._ids = _Counter()


def profit_rows(records: list[ProfitRecord]) -> list[tuple[ProfitRecord, dict[str, Any]]]:
    """Flatten stored extractions into (record, item) pairs."""

    return [(record, item) for record in records for item in record.data]
