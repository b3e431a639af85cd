from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from portal.application import get_document_service, get_profit_service
from portal.core.uploads import save_upload
from portal.core.validation import NotFoundError
from portal.domain import DocumentRecord, ProfitRecord, UserRecord
from portal.routes.deps import get_current_user, require_admin
from portal.workers.pipeline import get_pipeline_worker

router = APIRouter(tags=["documents"])


def _serialise(document: DocumentRecord, profits: ProfitRecord | None) -> dict:
    data = asdict(document)
    data.pop("path", None)
    data["profits"] = asdict(profits) if profits is not None else None
    return data


@router.get("/documents")
async def list_documents(user: UserRecord = Depends(get_current_user)) -> dict:
    documents = get_document_service().list_for(user)
    return {"items": [_serialise(doc, None) for doc in documents]}


@router.post("/documents")
async def upload_document(
    file: UploadFile = File(...),
    title: str | None = Form(default=None),
    doc_type: str | None = Form(default=None),
    bank: str | None = Form(default=None),
    month: str | None = Form(default=None),
    year: str | None = Form(default=None),
    user_id: int | None = Form(default=None),
    _: UserRecord = Depends(require_admin),
) -> dict:
    """Store a statement and analyse its profits when it belongs to a client."""
    try:
        if not file.filename:
            raise HTTPException(status_code=400, detail="Uploaded file must have a filename")
        safe_name = Path(file.filename).name
        raw_path = save_upload("statements", safe_name, file.file)
    finally:
        await file.close()

    try:
        document = get_document_service().register(
            safe_name,
            raw_path,
            title=title,
            doc_type=doc_type,
            bank=bank,
            month=month,
            year=year,
            owner_id=user_id,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    profits = await get_pipeline_worker().process_statement(document)
    return _serialise(document, profits)


@router.post("/documents/{document_id}/reprocess")
async def reprocess_document(document_id: int, _: UserRecord = Depends(require_admin)) -> dict:
    try:
        document = get_document_service().get(document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    profits = await get_pipeline_worker().process_statement(document)
    return _serialise(document, profits)


@router.get("/documents/{document_id}/profits")
async def document_profits(document_id: int, user: UserRecord = Depends(get_current_user)) -> dict:
    try:
        get_document_service().get(document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    rows = get_profit_service().find_by_document(document_id, user)
    return {"items": [asdict(row) for row in rows]}


@router.get("/profits/summary/bank")
async def profits_by_bank(
    user_id: int | None = Query(default=None),
    currency: str | None = Query(default=None),
    user: UserRecord = Depends(get_current_user),
) -> dict:
    return {"items": get_profit_service().summary_by_bank(user, user_id, currency)}


@router.get("/profits/summary/month")
async def profits_by_month(
    user_id: int | None = Query(default=None),
    currency: str | None = Query(default=None),
    user: UserRecord = Depends(get_current_user),
) -> dict:
    return {"items": get_profit_service().summary_by_month(user, user_id, currency)}
