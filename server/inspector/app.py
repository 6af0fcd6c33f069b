"""FastAPI 应用工厂 + lifespan。"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, UploadFile, WebSocket

from inspector.config import Settings, load_settings
from inspector.pipeline.analysis import AnalysisClient
from inspector.pipeline.controller import IntakeController
from inspector.pipeline.state import UploadCandidate
from inspector.ws.handler import WebSocketHandler
from inspector.ws.protocol import StateMessage
from inspector.ws.session import Session

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动/关闭生命周期管理。"""
    settings: Settings = app.state.settings

    # 1. 日志
    logging.basicConfig(
        level=getattr(logging, settings.server.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    # 2. 分析客户端
    analysis = AnalysisClient(settings.analysis)
    await analysis.start()
    logger.info("Analysis model %s (healthy=%s)", analysis.model, analysis.is_healthy)

    # 3. Sessions
    sessions: dict[str, Session] = {}

    # 4. Handler
    handler = WebSocketHandler(sessions, settings.intake, analysis)

    app.state.handler = handler
    app.state.sessions = sessions
    app.state.analysis = analysis

    yield

    # Shutdown (reverse order)
    for session in list(sessions.values()):
        await session.controller.close()
    await analysis.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """创建 FastAPI 应用。"""
    if settings is None:
        settings = load_settings()

    app = FastAPI(title="Attachment Inspector", lifespan=lifespan)
    app.state.settings = settings

    @app.websocket("/ws/{client_id}")
    async def ws_endpoint(ws: WebSocket, client_id: str):
        handler: WebSocketHandler = app.state.handler
        await handler.handle_connection(ws, client_id)

    @app.post("/api/inspect")
    async def inspect(file: UploadFile) -> StateMessage:
        """一次性上传：跑完整条链路后返回最终状态。"""
        controller = IntakeController(settings.intake, app.state.analysis)
        candidate = UploadCandidate(
            name=file.filename or "upload",
            content_type=file.content_type or "application/octet-stream",
            size=file.size or 0,
            source=file,
        )
        try:
            await controller.submit(candidate)
            await controller.wait()
            return StateMessage.from_controller(controller)
        finally:
            await controller.close()

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "analysis": app.state.analysis.is_healthy if hasattr(app.state, "analysis") else False,
        }

    return app
