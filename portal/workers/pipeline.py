from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from portal.application import get_profit_store
from portal.core.schema import ProfitExtraction, ReportDraft
from portal.domain import DocumentRecord, ProfitRecord
from portal.extractors.profits import TextProfitExtractor, build_summary
from portal.extractors.workbook import WorkbookExtractor
from portal.infrastructure import ProfitStore, get_pdf_text_source

logger = logging.getLogger(__name__)


@dataclass
class WorkbookRequest:
    client_id: int
    filename: str
    file_path: Path
    report_date: datetime | None = None


class StatementPipelineWorker:
    """Runs the blocking extractors off the event loop, one upload at a time."""

    def __init__(self, profits: ProfitStore | None = None) -> None:
        self._lock = asyncio.Lock()
        self._profits = profits
        self._extractor = TextProfitExtractor()

    @property
    def profits(self) -> ProfitStore:
        return self._profits or get_profit_store()

    async def process_workbook(self, payload: WorkbookRequest) -> ReportDraft:
        async with self._lock:
            draft = await asyncio.to_thread(self._build_draft, payload)
        logger.info(
            "Workbook %s parsed for client %s: %s banks, %s history rows",
            payload.filename,
            payload.client_id,
            len(draft.executive_summary.bank_breakdown),
            len(draft.history),
        )
        return draft

    @staticmethod
    def _build_draft(payload: WorkbookRequest) -> ReportDraft:
        extractor = WorkbookExtractor.from_source(payload.file_path)
        return extractor.build_report_draft(payload.client_id, payload.report_date)

    async def process_statement(self, document: DocumentRecord) -> ProfitRecord | None:
        """Extract profits from a client statement and store them.

        General documents are not analysed.  Failures are logged and stored
        as an empty extraction so the upload itself still succeeds.
        """

        if document.is_general:
            logger.info("Document %s is general; profits are not analysed", document.document_id)
            return None
        if not document.path:
            logger.warning("Document %s has no stored file", document.document_id)
            return None

        async with self._lock:
            try:
                extraction = await asyncio.to_thread(self._extract, document)
            except Exception:
                logger.exception("Profit extraction failed for document %s", document.document_id)
                extraction = ProfitExtraction(
                    document_id=document.document_id,
                    owner_id=document.owner_id,
                    summary=build_summary([]),
                )
        return self.profits.save_extraction(extraction)

    def _extract(self, document: DocumentRecord) -> ProfitExtraction:
        text = get_pdf_text_source().extract_text(Path(document.path or ""))
        return self._extractor.extract(text, document.document_id, document.owner_id)


_worker: StatementPipelineWorker | None = None


def get_pipeline_worker() -> StatementPipelineWorker:
    global _worker
    if _worker is None:
        _worker = StatementPipelineWorker()
    return _worker
