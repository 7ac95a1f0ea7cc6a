"""Terminal WebSocket frames.

Client -> server: ``{"type": "input", "data": ...}`` and
``{"type": "resize", "cols": ..., "rows": ...}``.
Server -> client: ``output``, ``error`` and ``exit`` frames.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ccdev.errors import FrameParseError

CLIENT_FRAME_TYPES = ("input", "resize")


class InputFrame(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["input"]
    data: str = ""


class ResizeFrame(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["resize"]
    cols: int = Field(gt=0, le=1000)
    rows: int = Field(gt=0, le=1000)


ClientFrame = Annotated[InputFrame | ResizeFrame, Field(discriminator="type")]

_client_frame = TypeAdapter(ClientFrame)


def parse_client_frame(raw: str | bytes) -> InputFrame | ResizeFrame:
    """Decode one client frame.

    Raises :class:`FrameParseError` with the text to send back in an
    ``error`` frame.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FrameParseError(f"Parse error: {exc}") from exc
    if not isinstance(payload, dict):
        raise FrameParseError("Parse error: frame must be a JSON object")
    if payload.get("type") not in CLIENT_FRAME_TYPES:
        raise FrameParseError("Unknown message type")
    try:
        return _client_frame.validate_python(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"][1:]) or "frame"
        raise FrameParseError(f"Parse error: {where}: {first['msg']}") from exc


def output_frame(data: str) -> dict[str, Any]:
    return {"type": "output", "data": data}


def error_frame(data: str) -> dict[str, Any]:
    return {"type": "error", "data": data}


def exit_frame(exit_code: int) -> dict[str, Any]:
    return {"type": "exit", "exitCode": exit_code}
