"""WebSocket 消息类型定义 — Pydantic 模型。"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from inspector.pipeline.controller import IntakeController


# ────────────────────── 基础 ──────────────────────

class BaseMessage(BaseModel):
    type: str


# ────────────────────── Client → Server ──────────────────────

class PingMessage(BaseMessage):
    type: Literal["ping"] = "ping"


class UploadStartMessage(BaseMessage):
    type: Literal["upload_start"] = "upload_start"
    name: str
    content_type: str
    size: int = Field(ge=0)


class UploadEndMessage(BaseMessage):
    type: Literal["upload_end"] = "upload_end"


class ResetMessage(BaseMessage):
    type: Literal["reset"] = "reset"


# ────────────────────── Server → Client ──────────────────────

class PongMessage(BaseMessage):
    type: Literal["pong"] = "pong"


class FileDetailsPayload(BaseModel):
    name: str
    size: str
    type: str
    dimensions: str


class StateMessage(BaseMessage):
    type: Literal["state"] = "state"
    phase: Literal["idle", "validating", "reading", "decoding", "analyzing", "ready", "failed"]
    file_details: FileDetailsPayload | None = None
    analysis: str | None = None
    error: str | None = None
    error_title: str | None = None
    preview_url: str | None = None
    is_processing: bool = False
    is_analyzing: bool = False

    @classmethod
    def from_controller(cls, controller: IntakeController) -> StateMessage:
        details = controller.file_details
        return cls(
            phase=controller.phase.value,
            file_details=FileDetailsPayload(**details.to_dict()) if details else None,
            analysis=controller.analysis_text,
            error=controller.error_message,
            error_title=controller.error_title,
            preview_url=controller.preview_url,
            is_processing=controller.is_processing,
            is_analyzing=controller.is_analyzing,
        )


# ────────────────────── 解析 ──────────────────────

_CLIENT_TYPES: dict[str, type[BaseMessage]] = {
    "ping": PingMessage,
    "upload_start": UploadStartMessage,
    "upload_end": UploadEndMessage,
    "reset": ResetMessage,
}

_SERVER_TYPES: dict[str, type[BaseMessage]] = {
    "pong": PongMessage,
    "state": StateMessage,
}


def parse_client_message(data: dict) -> BaseMessage:
    """解析 Client → Server 的 JSON 消息。"""
    msg_type = data.get("type")
    cls = _CLIENT_TYPES.get(msg_type)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(f"Unknown client message type: {msg_type!r}")
    return cls(**data)


def parse_server_message(data: dict) -> BaseMessage:
    """解析 Server → Client 的 JSON 消息。"""
    msg_type = data.get("type")
    cls = _SERVER_TYPES.get(msg_type)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(f"Unknown server message type: {msg_type!r}")
    return cls(**data)
