"""E2E 测试专用 fixtures — mock 远程分析服务，使用 TestClient。"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from starlette.testclient import TestClient

from inspector.app import create_app
from inspector.config import Settings, load_settings

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def e2e_settings() -> Settings:
    return load_settings(FIXTURES_DIR / "test_config.toml")


@pytest.fixture
def fake_analysis() -> MagicMock:
    """替换 AnalysisClient 实例，避免真实网络请求。"""
    analysis = MagicMock()
    analysis.model = "gemini-2.5-flash-preview-05-20"
    analysis.is_healthy = True
    analysis.start = AsyncMock()
    analysis.close = AsyncMock()
    analysis.describe = AsyncMock(return_value="A small red rectangle.")
    return analysis


@pytest.fixture
def app_client(e2e_settings, fake_analysis):
    """启动完整 FastAPI 应用（含 lifespan）。"""
    with patch("inspector.app.AnalysisClient", return_value=fake_analysis):
        app = create_app(e2e_settings)
        with TestClient(app) as client:
            yield client
