from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import ValidationError

from portal.application import get_report_service, get_user_store
from portal.core.schema import PublishRequest
from portal.core.uploads import save_upload
from portal.core.validation import NotFoundError
from portal.domain import UserRecord
from portal.routes.deps import require_admin
from portal.workers.pipeline import WorkbookRequest, get_pipeline_worker

router = APIRouter(prefix="/xlsx", tags=["xlsx"])


@router.post("/{client_id}/upload")
async def upload_workbook(
    client_id: int,
    file: UploadFile = File(...),
    _: UserRecord = Depends(require_admin),
) -> dict:
    """Parse a consolidation workbook into a report draft for review."""
    if get_user_store().get_user(client_id) is None:
        raise HTTPException(status_code=404, detail="Cliente no encontrado")
    try:
        if not file.filename:
            raise HTTPException(status_code=400, detail="Uploaded file must have a filename")
        safe_name = Path(file.filename).name
        raw_path = save_upload("workbooks", safe_name, file.file)
    finally:
        await file.close()

    draft = await get_pipeline_worker().process_workbook(
        WorkbookRequest(client_id=client_id, filename=safe_name, file_path=raw_path)
    )
    return {"message": "Archivo procesado correctamente", "data": draft.model_dump(mode="json")}


@router.post("/publish")
async def publish_report(payload: dict, _: UserRecord = Depends(require_admin)) -> dict:
    try:
        request = PublishRequest.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Datos de informe incompletos: {exc.error_count()} errores")
    try:
        report = get_report_service().publish(request)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {
        "message": "Informe publicado",
        "report_id": report.report_id,
        "client_id": report.client_id,
        "report_date": report.report_date.isoformat(),
    }
