"""Terminal WebSocket endpoint and session info route."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ccdev.server.state import AppState

logger = logging.getLogger(__name__)


def register_terminal_routes(app: FastAPI, *, state: AppState) -> None:
    @app.websocket("/ws/terminal/{session_id}")
    async def ws_terminal(websocket: WebSocket, session_id: str, sandbox: str | None = None) -> None:
        session = await state.terminals.get_or_create(session_id, sandbox)
        await websocket.accept()
        await session.attach(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await session.handle_frame(websocket, raw)
        except WebSocketDisconnect:
            pass
        finally:
            await session.detach(websocket)

    @app.get("/api/terminal/{session_id}/info")
    def api_terminal_info(session_id: str) -> Any:
        session = state.terminals.get(session_id)
        if session is None:
            return JSONResponse(
                {"error": "not_found", "message": f"Unknown terminal session: {session_id}"},
                status_code=404,
            )
        return {
            "sessionId": session.session_id,
            "status": "active" if session.connections else "idle",
            "cwd": session.cwd,
            "cols": session.cols,
            "rows": session.rows,
            "connections": session.connections,
        }
