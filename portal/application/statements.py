"""Services behind the workbook, document, profit and invoice endpoints."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from portal.core.schema import PublishRequest
from portal.core.validation import NotFoundError
from portal.domain import (
    DocumentRecord,
    HistoryRecord,
    InvoiceRecord,
    ProfitRecord,
    ReportRecord,
    UserRecord,
    is_admin,
)
from portal.infrastructure import (
    DocumentStore,
    HistoryStore,
    InvoiceStore,
    ProfitStore,
    ReportStore,
    UserStore,
)
from portal.infrastructure.stores import MONTH_ORDER, profit_rows

logger = logging.getLogger(__name__)

NO_BANK = "Sin banco"
FEE_FACTORS = {"quarterly": 0.25, "biannual": 0.5}


def _naive_utc(value: datetime) -> datetime:
    # Stores compare against the naive local clock; aware values are folded to UTC.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _as_datetime(value: datetime | str) -> datetime | None:
    # Drafts coming back from the review screen carry ISO strings.
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    return _naive_utc(value)


class ReportService:
    def __init__(self, users: UserStore, reports: ReportStore, history: HistoryStore) -> None:
        self._users = users
        self._reports = reports
        self._history = history

    def publish(self, request: PublishRequest) -> ReportRecord:
        """Persist a reviewed draft together with its monthly history rows."""

        if self._users.get_user(request.client_id) is None:
            raise NotFoundError(f"Cliente {request.client_id} no encontrado")

        draft = request.report.model_copy(
            update={
                "client_id": request.client_id,
                "report_date": _naive_utc(request.report.report_date),
                "history": [
                    point.model_copy(update={"date": _as_datetime(point.date) or point.date})
                    for point in request.report.history
                ],
            }
        )
        report = self._reports.save_report(
            draft,
            summary_global=request.summary_global,
            summary_tailored=request.summary_tailored,
        )

        rows = []
        for point in draft.history:
            when = _as_datetime(point.date)
            if when is None:
                logger.debug("Skipping history point with unparsed date %r", point.date)
                continue
            rows.append(
                HistoryRecord(
                    client_id=request.client_id,
                    date=when,
                    net_value=point.net_value,
                    monthly_return_pct=point.monthly_return_pct,
                    ytd_return_pct=point.ytd_return_pct,
                )
            )
        inserted = self._history.save_history(request.client_id, rows)
        logger.info(
            "Published report %s for client %s (%s new history rows)",
            report.report_id,
            request.client_id,
            len(inserted),
        )
        return report


class InvoiceService:
    def __init__(
        self,
        users: UserStore,
        reports: ReportStore,
        invoices: InvoiceStore,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._users = users
        self._reports = reports
        self._invoices = invoices
        self._clock = clock

    def generate_for_client(self, client_id: int) -> InvoiceRecord | None:
        """Bill the management fee against the client's newest report.

        Returns ``None`` when the client has no profile, no reports or the
        computed fee is not positive.  An invoice already attached to that
        report is replaced.
        """

        client = self._users.get_user(client_id)
        if client is None:
            raise NotFoundError(f"Cliente {client_id} no encontrado")
        if client.profile is None:
            logger.warning("Client %s has no profile; skipping invoice", client_id)
            return None

        reports = self._reports.list_reports_for_client(client_id)
        if not reports:
            logger.warning("No reports for client %s; cannot compute fee", client.email)
            return None
        latest = max(reports, key=lambda report: report.report_date)

        existing = self._invoices.find_by_report(latest.report_id)
        if existing is not None:
            logger.info("Replacing invoice %s for report %s", existing.invoice_id, latest.report_id)
            self._invoices.delete_invoice(existing.invoice_id)

        net_worth = latest.snapshot.net_worth if latest.snapshot else 0.0
        interval = client.profile.fee_interval
        amount = round(net_worth * (client.profile.fee_percentage or 0.0) * FEE_FACTORS.get(interval or "", 0.0), 2)
        if amount <= 0:
            logger.info("Computed fee is 0 for client %s; skipping", client.email)
            return None

        now = self._clock()
        invoice = self._invoices.add_invoice(
            client_id=client_id,
            invoice_date=now,
            amount=amount,
            description=f"Management Fee - {(interval or 'undefined').capitalize()} ({now.year})",
            report_id=latest.report_id,
        )
        latest.invoice = invoice
        self._reports.update_report(latest)
        logger.info("Invoice generated for %s: %s %s", client.email, amount, client.profile.preferred_currency or "EUR")
        return invoice


class DocumentService:
    def __init__(self, users: UserStore, documents: DocumentStore, profits: ProfitStore) -> None:
        self._users = users
        self._documents = documents
        self._profits = profits

    @staticmethod
    def _norm(value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def register(
        self,
        filename: str,
        path: Path,
        *,
        title: str | None = None,
        doc_type: str | None = None,
        bank: str | None = None,
        month: str | None = None,
        year: str | None = None,
        owner_id: int | None = None,
    ) -> DocumentRecord:
        if owner_id is not None and self._users.get_user(owner_id) is None:
            raise NotFoundError(f"Usuario {owner_id} no encontrado")
        document = DocumentRecord(
            document_id=self._documents.next_id(),
            filename=filename,
            title=self._norm(title) or Path(filename).stem,
            doc_type=self._norm(doc_type) or "desconocido",
            date=datetime.now(),
            bank=self._norm(bank),
            month=self._norm(month),
            year=self._norm(year),
            owner_id=owner_id,
            path=str(path),
        )
        return self._documents.add_document(document)

    def get(self, document_id: int) -> DocumentRecord:
        document = self._documents.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Documento {document_id} no encontrado")
        return document

    def list_for(self, viewer: UserRecord) -> list[DocumentRecord]:
        documents = self._documents.list_documents()
        if is_admin(viewer.role):
            return documents
        return [doc for doc in documents if doc.is_general or doc.owner_id == viewer.user_id]


class ProfitService:
    """Role-scoped reads over stored profit extractions."""

    def __init__(self, documents: DocumentStore, profits: ProfitStore) -> None:
        self._documents = documents
        self._profits = profits

    def find_by_document(self, document_id: int, viewer: UserRecord) -> list[ProfitRecord]:
        rows = [record for record in self._profits.list_records() if record.document_id == document_id]
        if rows and not is_admin(viewer.role) and rows[0].owner_id != viewer.user_id:
            return []
        return rows

    def _scoped_items(
        self,
        viewer: UserRecord,
        user_id: int | None,
        currency: str | None,
    ) -> list[tuple[DocumentRecord, dict[str, Any]]]:
        owner = viewer.user_id if not is_admin(viewer.role) else user_id
        wanted = currency.upper() if currency and currency.lower() != "all" else None

        scoped: list[tuple[DocumentRecord, dict[str, Any]]] = []
        for record, item in profit_rows(self._profits.list_records()):
            if owner is not None and record.owner_id != owner:
                continue
            if wanted is not None and str(item.get("currency") or "").upper() != wanted:
                continue
            document = self._documents.get_document(record.document_id)
            if document is None:
                continue
            scoped.append((document, item))
        return scoped

    def summary_by_bank(
        self,
        viewer: UserRecord,
        user_id: int | None = None,
        currency: str | None = None,
    ) -> list[dict[str, Any]]:
        totals: dict[str, float] = {}
        for document, item in self._scoped_items(viewer, user_id, currency):
            key = document.bank or NO_BANK
            totals[key] = totals.get(key, 0.0) + float(item.get("amount") or 0)
        return [
            {"key": key, "total": total}
            for key, total in sorted(totals.items(), key=lambda pair: pair[1], reverse=True)
        ]

    def summary_by_month(
        self,
        viewer: UserRecord,
        user_id: int | None = None,
        currency: str | None = None,
    ) -> list[dict[str, Any]]:
        totals: dict[tuple[str | None, str | None], float] = {}
        for document, item in self._scoped_items(viewer, user_id, currency):
            key = (document.month, document.year)
            totals[key] = totals.get(key, 0.0) + float(item.get("amount") or 0)

        def order(pair: tuple[tuple[str | None, str | None], float]) -> tuple[int, int, int]:
            (month, year), _ = pair
            year_num = int(year) if year and year.isdigit() else None
            return (
                year_num is None,
                -(year_num or 0),
                MONTH_ORDER.get((month or "").lower(), 999),
            )

        return [
            {"key": month, "year": year, "total": total}
            for (month, year), total in sorted(totals.items(), key=order)
        ]
