"""WebSocket endpoint + 消息路由分发。"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from inspector.pipeline.controller import IntakeController
from inspector.ws.protocol import (
    PingMessage,
    PongMessage,
    ResetMessage,
    StateMessage,
    UploadEndMessage,
    UploadStartMessage,
    parse_client_message,
)
from inspector.ws.session import Session

if TYPE_CHECKING:
    from inspector.config import IntakeConfig
    from inspector.pipeline.analysis import AnalysisClient
    from inspector.pipeline.state import IntakeState

logger = logging.getLogger(__name__)

# 心跳超时 (秒)
HEARTBEAT_TIMEOUT = 90


class WebSocketHandler:
    """处理单个 WebSocket 连接的消息路由。"""

    def __init__(
        self,
        sessions: dict[str, Session],
        config: IntakeConfig,
        analysis: AnalysisClient,
    ) -> None:
        self._sessions = sessions
        self._config = config
        self._analysis = analysis

    async def handle_connection(self, ws: WebSocket, client_id: str) -> None:
        """处理完整的 WebSocket 连接生命周期。"""
        await ws.accept()
        controller = IntakeController(self._config, self._analysis)
        session = Session(client_id, ws, controller)

        # 同一 client_id 重连：旧连接的进行中任务全部作废
        old = self._sessions.get(client_id)
        if old is not None:
            await old.controller.close()

        self._sessions[client_id] = session

        async def push_state(_state: IntakeState) -> None:
            await ws.send_text(StateMessage.from_controller(controller).model_dump_json())

        controller.subscribe(push_state)
        await push_state(controller.state)

        # 启动心跳监控
        heartbeat_task = asyncio.create_task(self._heartbeat_monitor(session))

        try:
            await self._message_loop(session)
        except WebSocketDisconnect:
            logger.info("WebSocket disconnected: %s", client_id)
        except Exception:
            logger.exception("WebSocket error: %s", client_id)
        finally:
            heartbeat_task.cancel()
            await controller.close()
            if self._sessions.get(client_id) is session:
                self._sessions.pop(client_id, None)

    async def _message_loop(self, session: Session) -> None:
        """消息接收主循环。"""
        while True:
            msg = await session.ws.receive()

            if msg["type"] == "websocket.disconnect":
                break

            if msg["type"] == "websocket.receive":
                if "bytes" in msg and msg["bytes"]:
                    # 二进制帧 → 文件内容
                    if not session.append_upload(msg["bytes"]):
                        logger.warning("Binary frame without upload_start from %s", session.client_id)
                elif "text" in msg and msg["text"]:
                    await self._route_json(session, msg["text"])

    async def _route_json(self, session: Session, raw: str) -> None:
        """解析 JSON 并路由到处理器。"""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from %s: %s", session.client_id, raw[:100])
            return
        if not isinstance(data, dict):
            logger.warning("Non-object JSON from %s: %s", session.client_id, raw[:100])
            return

        try:
            msg = parse_client_message(data)
        except ValueError as e:
            logger.warning("Unknown message from %s: %s", session.client_id, e)
            return

        if isinstance(msg, PingMessage):
            session.update_heartbeat()
            await session.ws.send_text(PongMessage().model_dump_json())

        elif isinstance(msg, UploadStartMessage):
            # 先按声明预检，不合法的上传不缓存任何字节
            if await session.controller.screen(msg.name, msg.content_type, msg.size):
                session.begin_upload(
                    msg.name, msg.content_type, msg.size, limit=self._config.max_file_size
                )
            else:
                session.reject_upload(msg.name, msg.content_type, msg.size)

        elif isinstance(msg, UploadEndMessage):
            if session.upload_rejected:
                session.discard_upload()
                return
            candidate = session.finish_upload()
            if candidate is None:
                logger.warning("upload_end without upload_start from %s", session.client_id)
                return
            await session.controller.submit(candidate)

        elif isinstance(msg, ResetMessage):
            session.discard_upload()
            await session.controller.reset()

    async def _heartbeat_monitor(self, session: Session) -> None:
        """监控心跳超时。"""
        try:
            while True:
                await asyncio.sleep(30)
                elapsed = time.monotonic() - session.last_heartbeat
                if elapsed > HEARTBEAT_TIMEOUT:
                    logger.warning("Heartbeat timeout for %s (%.0fs)", session.client_id, elapsed)
                    await session.ws.close()
                    break
        except asyncio.CancelledError:
            pass
