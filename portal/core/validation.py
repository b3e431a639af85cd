from __future__ import annotations

from portal.core.schema import ChatMessage, ChatRequest


class ChatInputError(Exception):
    """Raised when a chat request cannot be turned into a model turn."""


class ChatBusyError(Exception):
    """Raised when the user already has a response streaming."""


def validate_chat_request(request: ChatRequest) -> ChatMessage:
    """Return the trailing user message or raise :class:`ChatInputError`."""

    if not request.messages:
        raise ChatInputError("Mensaje de usuario vacío o inválido")
    last = request.messages[-1]
    if last.role != "user" or not last.content.strip():
        raise ChatInputError("Mensaje de usuario vacío o inválido")
    return last


class NotFoundError(LookupError):
    """Raised when a referenced client, report or document does not exist."""
