from __future__ import annotations

import json
from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from portal.application import get_chat_orchestrator
from portal.core.schema import ChatRequest
from portal.core.validation import ChatBusyError, ChatInputError
from portal.domain import UserRecord
from portal.routes.deps import get_current_user

router = APIRouter(prefix="/ai/chat", tags=["chat"])


def _frame(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


@router.post("")
async def chat(payload: ChatRequest, request: Request, user: UserRecord = Depends(get_current_user)) -> StreamingResponse:
    """Stream one assistant turn as server-sent events."""
    orchestrator = get_chat_orchestrator()
    try:
        turn = orchestrator.open_turn(user, payload)
    except ChatInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ChatBusyError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    async def stream():
        async with aclosing(turn.events()) as events:
            async for event in events:
                if await request.is_disconnected():
                    turn.cancel.set()
                    break
                yield _frame(event)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=BackgroundTask(turn.release),
    )


@router.get("/history")
async def chat_history(
    limit: int = Query(default=60),
    user: UserRecord = Depends(get_current_user),
) -> dict:
    messages = get_chat_orchestrator().history(user, limit)
    return {
        "items": [
            {"role": row.role, "content": row.content, "created_at": row.created_at.isoformat()}
            for row in messages
        ]
    }


@router.post("/reset")
async def reset_chat(user: UserRecord = Depends(get_current_user)) -> dict:
    deleted = get_chat_orchestrator().reset(user)
    return {"deleted": deleted}
