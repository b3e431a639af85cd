"""Process-wide stores and service accessors."""
from __future__ import annotations

from portal.application.chat import ActiveStreamRegistry, ChatOrchestrator
from portal.application.facts import FactsBuilder
from portal.application.intents import IntentRouter
from portal.application.statements import DocumentService, InvoiceService, ProfitService, ReportService
from portal.core.settings import get_settings, reset_settings
from portal.infrastructure import (
    ChatModelClient,
    InMemoryConversationStore,
    InMemoryDocumentStore,
    InMemoryHistoryStore,
    InMemoryInvoiceStore,
    InMemoryProfitStore,
    InMemoryReportStore,
    InMemoryUserStore,
    OllamaChatClient,
)

_users = InMemoryUserStore()
_reports = InMemoryReportStore(_users)
_history = InMemoryHistoryStore()
_invoices = InMemoryInvoiceStore()
_documents = InMemoryDocumentStore()
_profits = InMemoryProfitStore()
_conversations = InMemoryConversationStore()
_registry = ActiveStreamRegistry()

_model_client: ChatModelClient | None = None
_orchestrator: ChatOrchestrator | None = None


def get_user_store() -> InMemoryUserStore:
    return _users


def get_report_store() -> InMemoryReportStore:
    return _reports


def get_history_store() -> InMemoryHistoryStore:
    return _history


def get_invoice_store() -> InMemoryInvoiceStore:
    return _invoices


def get_document_store() -> InMemoryDocumentStore:
    return _documents


def get_profit_store() -> InMemoryProfitStore:
    return _profits


def get_conversation_store() -> InMemoryConversationStore:
    return _conversations


def get_facts_builder() -> FactsBuilder:
    return FactsBuilder(_users, _reports, _history, get_settings())


def get_report_service() -> ReportService:
    return ReportService(_users, _reports, _history)


def get_invoice_service() -> InvoiceService:
    return InvoiceService(_users, _reports, _invoices)


def get_document_service() -> DocumentService:
    return DocumentService(_users, _documents, _profits)


def get_profit_service() -> ProfitService:
    return ProfitService(_documents, _profits)


def configure_chat_model(client: ChatModelClient) -> None:
    """Install the streaming model client used by the chat orchestrator."""

    global _model_client
    _model_client = client
    if _orchestrator is not None:
        _orchestrator.set_model_client(client)


def get_chat_orchestrator() -> ChatOrchestrator:
    """Return the singleton orchestrator, building it on first use."""

    global _model_client, _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        if _model_client is None:
            _model_client = OllamaChatClient(settings)
        _orchestrator = ChatOrchestrator(
            get_facts_builder(),
            IntentRouter(),
            _conversations,
            _model_client,
            settings,
            registry=_registry,
        )
    return _orchestrator


async def close_chat_model() -> None:
    """Release the HTTP connections held by the configured model client."""

    if isinstance(_model_client, OllamaChatClient):
        await _model_client.aclose()


def reset_portal_state() -> None:
    """Reset every in-memory store (used in tests)."""

    global _model_client, _orchestrator
    for store in (_users, _reports, _history, _invoices, _documents, _profits, _conversations):
        store.reset()
    _registry.reset()
    _model_client = None
    _orchestrator = None
    reset_settings()
