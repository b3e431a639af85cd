"""Application services."""

from .chat import ActiveStreamRegistry, ChatOrchestrator, ChatTurn
from .facts import FactsBuilder, compute_global_metrics, facts_to_prompt_text
from .intents import IntentRouter
from .portal import (
    close_chat_model,
    configure_chat_model,
    get_chat_orchestrator,
    get_conversation_store,
    get_document_service,
    get_document_store,
    get_facts_builder,
    get_history_store,
    get_invoice_service,
    get_invoice_store,
    get_profit_service,
    get_profit_store,
    get_report_service,
    get_report_store,
    get_user_store,
    reset_portal_state,
)
from .statements import DocumentService, InvoiceService, ProfitService, ReportService

__all__ = [
    "ActiveStreamRegistry",
    "ChatOrchestrator",
    "ChatTurn",
    "DocumentService",
    "FactsBuilder",
    "IntentRouter",
    "InvoiceService",
    "ProfitService",
    "ReportService",
    "close_chat_model",
    "compute_global_metrics",
    "configure_chat_model",
    "facts_to_prompt_text",
    "get_chat_orchestrator",
    "get_conversation_store",
    "get_document_service",
    "get_document_store",
    "get_facts_builder",
    "get_history_store",
    "get_invoice_service",
    "get_invoice_store",
    "get_profit_service",
    "get_profit_store",
    "get_report_service",
    "get_report_store",
    "get_user_store",
    "reset_portal_state",
]
