"""Infrastructure layer exports."""

from .llm import ChatModelClient, ChatOptions, LLMError, OllamaChatClient
from .pdf_text import PdfTextSource, PyPdfTextSource, configure_pdf_text_source, get_pdf_text_source
from .stores import (
    ConversationStore,
    DocumentStore,
    HistoryStore,
    InMemoryConversationStore,
    InMemoryDocumentStore,
    InMemoryHistoryStore,
    InMemoryInvoiceStore,
    InMemoryProfitStore,
    InMemoryReportStore,
    InMemoryUserStore,
    InvoiceStore,
    ProfitStore,
    ReportStore,
    UserStore,
)

__all__ = [
    "ChatModelClient",
    "ChatOptions",
    "ConversationStore",
    "DocumentStore",
    "HistoryStore",
    "InMemoryConversationStore",
    "InMemoryDocumentStore",
    "InMemoryHistoryStore",
    "InMemoryInvoiceStore",
    "InMemoryProfitStore",
    "InMemoryReportStore",
    "InMemoryUserStore",
    "InvoiceStore",
    "LLMError",
    "OllamaChatClient",
    "PdfTextSource",
    "ProfitStore",
    "PyPdfTextSource",
    "ReportStore",
    "UserStore",
    "configure_pdf_text_source",
    "get_pdf_text_source",
]
