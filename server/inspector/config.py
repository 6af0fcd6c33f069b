"""配置管理 — Pydantic Settings 从 TOML 加载。"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

_DEFAULT_TOML = Path(__file__).resolve().parent.parent / "config" / "default.toml"

MiB = 1024 * 1024


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class IntakeConfig(BaseModel):
    allowed_types: list[str] = [
        "image/png",
        "image/jpeg",
        "image/gif",
        "image/webp",
    ]
    max_file_size: int = Field(default=10 * MiB, gt=0)


class AnalysisConfig(BaseModel):
    base_url: str = "https://generativelanguage.googleapis.com"
    model: str = "20"
    api_key: str = ""
    timeout: float = Field(default=60.0, gt=0)
    temperature: float = 0.4


class Settings(BaseSettings):
    server: ServerConfig = ServerConfig()
    intake: IntakeConfig = IntakeConfig()
    analysis: AnalysisConfig = AnalysisConfig()

    model_config = {"env_prefix": "INSPECTOR_", "env_nested_delimiter": "__"}


def load_settings(toml_path: Path = _DEFAULT_TOML) -> Settings:
    """从 TOML 文件加载配置，环境变量可覆盖。"""
    import tomllib

    if toml_path.exists():
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
        return Settings(**data)
    return Settings()
