"""One chat turn: facts, deterministic routing, model streaming, persistence."""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx

from portal.application.facts import FactsBuilder, facts_to_prompt_text
from portal.application.intents import IntentRouter
from portal.core.persona import Persona, load_persona
from portal.core.schema import ChatMessage, ChatRequest
from portal.core.settings import Settings
from portal.core.text import sanitize
from portal.core.validation import ChatBusyError, validate_chat_request
from portal.domain import MessageRecord, UserRecord
from portal.infrastructure import ChatModelClient, ChatOptions, ConversationStore, LLMError

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "Ya tienes una respuesta en curso. Espera a que termine."
INTERNAL_ERROR_MESSAGE = "No se pudo generar la respuesta. Inténtalo de nuevo."
TRUNCATED_MESSAGE = "La respuesta del modelo terminó de forma inesperada."

Event = dict[str, Any]


class ActiveStreamRegistry:
    """Process-local set of users with a response in flight."""

    def __init__(self) -> None:
        self._active: set[int] = set()
        self._lock = threading.Lock()

    def acquire(self, user_id: int) -> bool:
        with self._lock:
            if user_id in self._active:
                return False
            self._active.add(user_id)
            return True

    def release(self, user_id: int) -> None:
        with self._lock:
            self._active.discard(user_id)

    def is_active(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._active

    def reset(self) -> None:
        with self._lock:
            self._active.clear()


def chunk_event(content: str) -> Event:
    return {"type": "chunk", "content": content}


def done_event(final: str, usage: dict[str, int]) -> Event:
    return {"type": "done", "usage": usage, "final": final}


def error_event(message: str) -> Event:
    return {"type": "error", "message": message}


class ChatTurn:
    """A validated turn holding the user's stream slot until it finishes."""

    def __init__(
        self,
        orchestrator: "ChatOrchestrator",
        user: UserRecord,
        request: ChatRequest,
        message: ChatMessage,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self.user = user
        self.request = request
        self.message = message
        self.cancel = cancel or asyncio.Event()
        self._released = False

    def release(self) -> None:
        if not self._released:
            self._released = True
            self._orchestrator.registry.release(self.user.user_id)

    async def events(self) -> AsyncIterator[Event]:
        try:
            async for event in self._orchestrator.run_turn(self):
                yield event
        except asyncio.CancelledError:
            logger.info("Chat turn cancelled for user %s", self.user.user_id)
            raise
        except Exception:
            logger.exception("Chat turn failed for user %s", self.user.user_id)
            yield error_event(INTERNAL_ERROR_MESSAGE)
        finally:
            self.release()


class ChatOrchestrator:
    def __init__(
        self,
        facts_builder: FactsBuilder,
        router: IntentRouter,
        conversations: ConversationStore,
        model_client: ChatModelClient,
        settings: Settings,
        *,
        persona: Persona | None = None,
        registry: ActiveStreamRegistry | None = None,
    ) -> None:
        self._facts = facts_builder
        self._router = router
        self._conversations = conversations
        self._model = model_client
        self._settings = settings
        self._persona = persona or load_persona()
        self.registry = registry or ActiveStreamRegistry()

    def set_model_client(self, client: ChatModelClient) -> None:
        self._model = client

    # ------------------------------------------------------------------
    # turn lifecycle
    # ------------------------------------------------------------------
    def open_turn(
        self,
        user: UserRecord,
        request: ChatRequest,
        cancel: asyncio.Event | None = None,
    ) -> ChatTurn:
        """Validate ``request`` and claim the user's stream slot.

        Raises :class:`ChatInputError` or :class:`ChatBusyError` before
        anything is stored.
        """

        message = validate_chat_request(request)
        if not self.registry.acquire(user.user_id):
            raise ChatBusyError(BUSY_MESSAGE)
        return ChatTurn(self, user, request, message, cancel)

    def _system_messages(self, user: UserRecord, facts_text: str) -> list[dict[str, str]]:
        persona = self._persona
        return [
            {"role": "system", "content": persona.header()},
            {"role": "system", "content": persona.rules_block()},
            {"role": "system", "content": f"Usuario autenticado: {user.email}."},
            {"role": "system", "content": facts_text},
            {"role": "system", "content": persona.closing},
        ]

    def _persist(self, conversation_id: int, role: str, content: str, **tokens: int | None) -> None:
        self._conversations.append_message(
            MessageRecord(conversation_id=conversation_id, role=role, content=content, **tokens)  # type: ignore[arg-type]
        )

    async def run_turn(self, turn: ChatTurn) -> AsyncIterator[Event]:
        settings = self._settings
        user = turn.user
        conversation_id = self._conversations.get_or_create_conversation(user.user_id)
        past = self._conversations.list_messages(conversation_id)[-settings.history_limit :]

        question = turn.message.content[: settings.max_message_chars]
        self._persist(conversation_id, "user", question)

        facts = self._facts.build_facts(user)
        routed = self._router.route(question, facts)
        if routed is not None:
            final = sanitize(routed)
            yield chunk_event(final)
            self._persist(conversation_id, "assistant", final, tokens_in=0, tokens_out=len(final))
            yield done_event(final, {"input": 0, "output": len(final)})
            return

        messages = self._system_messages(user, facts_to_prompt_text(facts))
        messages.extend({"role": row.role, "content": row.content} for row in past)
        messages.extend({"role": m.role, "content": m.content} for m in turn.request.messages)

        options = ChatOptions(
            temperature=turn.request.temperature,
            max_tokens=turn.request.max_tokens,
            cancel=turn.cancel,
        )
        parts: list[str] = []
        started = time.perf_counter()
        try:
            async for chunk in self._model.chat_stream(messages, options):
                if turn.cancel.is_set():
                    return
                piece = (chunk.get("message") or {}).get("content") or ""
                if piece:
                    parts.append(piece)
                    yield chunk_event(piece)
                if chunk.get("done"):
                    final = sanitize("".join(parts))
                    usage = {
                        "input": int(chunk.get("prompt_eval_count") or 0),
                        "output": int(chunk.get("eval_count") or 0),
                        "latency_ms": int((time.perf_counter() - started) * 1000),
                    }
                    self._persist(
                        conversation_id,
                        "assistant",
                        final,
                        tokens_in=usage["input"],
                        tokens_out=usage["output"],
                    )
                    yield done_event(final, usage)
                    return
        except (LLMError, httpx.HTTPError) as exc:
            logger.warning("Model call failed for user %s: %s", user.user_id, exc)
            yield error_event(str(exc) or INTERNAL_ERROR_MESSAGE)
            return

        if not turn.cancel.is_set():
            logger.warning("Model stream ended without completion for user %s", user.user_id)
            yield error_event(TRUNCATED_MESSAGE)

    # ------------------------------------------------------------------
    # conversation helpers
    # ------------------------------------------------------------------
    def history(self, user: UserRecord, limit: int = 60) -> list[MessageRecord]:
        limit = max(1, min(limit, self._settings.history_limit))
        conversation_id = self._conversations.get_or_create_conversation(user.user_id)
        return self._conversations.list_messages(conversation_id)[-limit:]

    def reset(self, user: UserRecord) -> int:
        conversation_id = self._conversations.get_or_create_conversation(user.user_id)
        removed = self._conversations.clear(conversation_id)
        logger.info("Cleared %s messages for user %s", removed, user.user_id)
        return removed
