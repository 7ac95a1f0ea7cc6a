"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ccdev import __version__
from ccdev.core.config import load_config
from ccdev.errors import ConversationError
from ccdev.sandbox.policy import build_policy
from ccdev.sandbox.pool import SandboxPool
from ccdev.server.chat import register_chat_routes
from ccdev.server.state import AppState, ProviderFactory, anthropic_provider_factory
from ccdev.server.terminal import register_terminal_routes
from ccdev.terminal.registry import TerminalRegistry
from ccdev.types.config import AppConfig

logger = logging.getLogger(__name__)


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def create_app(
    config: AppConfig | None = None,
    *,
    provider_factory: ProviderFactory | None = None,
    sandbox_pool: SandboxPool | None = None,
) -> FastAPI:
    """Build the ccdev HTTP/WebSocket application."""
    config = config or load_config()
    sandboxes = sandbox_pool or SandboxPool(build_policy(config.sandbox))
    state = AppState(
        config=config,
        sandboxes=sandboxes,
        terminals=TerminalRegistry(sandboxes),
        provider_factory=provider_factory or anthropic_provider_factory,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("ccdev %s starting (sandbox mode: %s)", __version__, sandboxes.policy.mode.value)
        try:
            yield
        finally:
            await state.terminals.close_all()
            await sandboxes.cleanup_all()
            logger.info("ccdev stopped")

    app = FastAPI(title="ccdev", version=__version__, lifespan=lifespan)
    app.state.ccdev = state
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.server.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            {
                "error": ConversationError.error_code,
                "message": ConversationError.user_message,
                "details": _validation_details(exc),
            },
            status_code=400,
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "sandbox_mode": sandboxes.policy.mode.value,
            "version": __version__,
        }

    register_chat_routes(app, state=state)
    register_terminal_routes(app, state=state)
    return app
