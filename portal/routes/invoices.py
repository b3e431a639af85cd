from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from portal.application import get_invoice_service
from portal.core.validation import NotFoundError
from portal.domain import UserRecord
from portal.routes.deps import require_admin

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("/{client_id}/generate")
async def generate_invoice(client_id: int, _: UserRecord = Depends(require_admin)) -> dict:
    try:
        invoice = get_invoice_service().generate_for_client(client_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    if invoice is None:
        return {"invoice": None, "message": "No se generó factura para este cliente"}
    return {"invoice": asdict(invoice), "message": "Factura generada"}
