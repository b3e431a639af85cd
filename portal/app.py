import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.application import close_chat_model, configure_chat_model
from portal.core.settings import get_settings
from portal.infrastructure import OllamaChatClient
from portal.routes import chat, documents, invoices, xlsx


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await close_chat_model()

    app = FastAPI(title="Wealth Portal API", version="0.1.0", lifespan=lifespan)

    if os.getenv("OLLAMA_HOST"):
        configure_chat_model(OllamaChatClient(settings))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(xlsx.router, prefix="/api")
    app.include_router(documents.router, prefix="/api")
    app.include_router(invoices.router, prefix="/api")
    app.include_router(chat.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Wealth Portal API",
                "docs": "/docs",
                "model": settings.ollama_model,
            }
        )

    return app


app = create_app()
