from __future__ import annotations

from fastapi import Depends, Header, HTTPException

from portal.application import get_user_store
from portal.domain import UserRecord, is_admin


async def get_current_user(x_user_id: str | None = Header(default=None)) -> UserRecord:
    """Resolve the caller from the ``X-User-Id`` header set by the session layer."""

    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="Usuario no autenticado")
    user = get_user_store().get_user(int(x_user_id))
    if user is None:
        raise HTTPException(status_code=401, detail="Usuario no autenticado")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Usuario inactivo")
    return user


async def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    if not is_admin(user.role):
        raise HTTPException(status_code=403, detail="Acceso restringido a administradores")
    return user
