"""共享 fixtures — mock WebSocket, 测试配置, 测试图片等。"""

from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from inspector.config import IntakeConfig, Settings, load_settings
from inspector.pipeline.controller import IntakeController

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ────────────────────── Mock WebSocket ──────────────────────


class MockWebSocket:
    """模拟 FastAPI WebSocket，记录发送的消息。"""

    def __init__(self) -> None:
        self.sent_text: list[str] = []
        self.sent_bytes: list[bytes] = []
        self._receive_queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def accept(self) -> None:
        pass

    async def send_text(self, data: str) -> None:
        self.sent_text.append(data)

    async def send_bytes(self, data: bytes) -> None:
        self.sent_bytes.append(data)

    async def receive(self) -> dict[str, Any]:
        return await self._receive_queue.get()

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def inject_text(self, data: str) -> None:
        """注入一条 JSON 文本消息到接收队列。"""
        self._receive_queue.put_nowait({"type": "websocket.receive", "text": data})

    def inject_bytes(self, data: bytes) -> None:
        """注入一条二进制消息到接收队列。"""
        self._receive_queue.put_nowait({"type": "websocket.receive", "bytes": data})

    def inject_disconnect(self) -> None:
        """注入断开事件。"""
        self._receive_queue.put_nowait({"type": "websocket.disconnect"})

    def get_sent_json_messages(self) -> list[dict]:
        """将所有已发送的 JSON 文本解析为 dict 列表。"""
        return [json.loads(t) for t in self.sent_text]

    def get_sent_messages_by_type(self, msg_type: str) -> list[dict]:
        """筛选指定 type 的已发送消息。"""
        return [m for m in self.get_sent_json_messages() if m.get("type") == msg_type]


# ────────────────────── 图片 ──────────────────────


def make_image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    """用 Pillow 生成指定尺寸的纯色图片。"""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 40, 40)).save(buf, format=fmt)
    return buf.getvalue()


# ────────────────────── Fixtures ──────────────────────


@pytest.fixture
def test_config() -> Settings:
    """加载测试专用配置。"""
    return load_settings(FIXTURES_DIR / "test_config.toml")


@pytest.fixture
def intake_config() -> IntakeConfig:
    return IntakeConfig()


@pytest.fixture
def mock_ws() -> MockWebSocket:
    """创建一个 MockWebSocket 实例。"""
    return MockWebSocket()


@pytest.fixture
def mock_analysis() -> MagicMock:
    """Mock 分析客户端 — 返回固定描述。"""
    analysis = MagicMock()
    analysis.is_healthy = True
    analysis.model = "gemini-2.0-flash"
    analysis.describe = AsyncMock(return_value="A red square on a plain background.")
    analysis.health_check = AsyncMock(return_value=True)
    return analysis


@pytest.fixture
def controller(intake_config, mock_analysis) -> IntakeController:
    return IntakeController(intake_config, mock_analysis)


@pytest.fixture
def png_bytes() -> bytes:
    """64 x 32 的 PNG。"""
    return make_image_bytes(64, 32)


@pytest.fixture
def corrupt_png() -> bytes:
    """截断的 PNG：文件头完整但像素数据缺失。"""
    buf = io.BytesIO()
    Image.effect_noise((128, 128), 64).save(buf, format="PNG")
    data = buf.getvalue()
    return data[: len(data) // 2]


@pytest.fixture
def make_image():
    """返回图片生成函数，供需要自定义尺寸/格式的测试使用。"""
    return make_image_bytes


@pytest.fixture
def mock_ws_factory():
    """需要多个连接时使用。"""
    return MockWebSocket
