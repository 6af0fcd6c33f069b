"""图片分析客户端 — Gemini generateContent HTTP API 多模态描述。"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from inspector.errors import AnalysisTimeout, AnalysisUnavailable
from inspector.pipeline.encoder import decode_data_uri

if TYPE_CHECKING:
    from inspector.config import AnalysisConfig

logger = logging.getLogger(__name__)

_MODEL_ALIASES: dict[str, str] = {
    "25": "gemini-2.5-flash-preview-05-20",
    "20": "gemini-2.0-flash",
}

_DESCRIBE_PROMPT = (
    "You are an attachment inspector. Describe the attached image in a few short "
    "paragraphs: what it shows, its notable characteristics (composition, colors, "
    "text, subjects) and any potential issues such as blur, poor lighting, "
    "compression artifacts, cropping or sensitive content."
)


def resolve_model(name: str) -> str:
    """短别名映射为完整模型名，其余原样返回。"""
    return _MODEL_ALIASES.get(name, name)


class AnalysisClient:
    """远程多模态描述客户端，单次请求，不重试。"""

    def __init__(self, config: AnalysisConfig) -> None:
        self.config = config
        self.model = resolve_model(config.model)
        self._client: httpx.AsyncClient | None = None
        self._healthy: bool = False

    async def start(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout),
            headers={"x-goog-api-key": self.config.api_key},
        )
        self._healthy = await self.health_check()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def is_healthy(self) -> bool:
        return self._healthy

    async def health_check(self) -> bool:
        """查询模型信息检查可用性。"""
        if not self._client:
            return False
        try:
            resp = await self._client.get(f"/v1beta/models/{self.model}", timeout=5.0)
            self._healthy = resp.status_code == 200
        except httpx.HTTPError:
            self._healthy = False
        return self._healthy

    def build_payload(self, data_uri: str) -> dict[str, Any]:
        mime, _ = decode_data_uri(data_uri)
        encoded = data_uri.partition(",")[2]

        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": _DESCRIBE_PROMPT},
                        {
                            "inline_data": {
                                "mime_type": mime,
                                "data": encoded,
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {"temperature": self.config.temperature},
        }

    async def describe(self, data_uri: str) -> str:
        """发送编码图片，返回描述文本。

        网络错误、非 2xx、响应格式异常或模型拒答 → AnalysisUnavailable；
        超时 → AnalysisTimeout。
        """
        if not self._client:
            raise AnalysisUnavailable("Analysis client not started")

        try:
            payload = self.build_payload(data_uri)
        except ValueError as e:
            raise AnalysisUnavailable() from e

        try:
            resp = await self._client.post(
                f"/v1beta/models/{self.model}:generateContent", json=payload
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.TimeoutException as e:
            logger.warning("Analysis request timed out after %.1fs", self.config.timeout)
            raise AnalysisTimeout() from e
        except httpx.HTTPStatusError as e:
            logger.warning("Analysis request failed: HTTP %d", e.response.status_code)
            raise AnalysisUnavailable() from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Analysis request failed: %s", e)
            raise AnalysisUnavailable() from e

        text = self._extract_text(body)
        if not text:
            raise AnalysisUnavailable()
        return text

    @staticmethod
    def _extract_text(body: Any) -> str:
        if not isinstance(body, dict):
            return ""
        feedback = body.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            logger.warning("Analysis refused: %s", feedback["blockReason"])
            return ""

        candidates = body.get("candidates") or []
        if not candidates:
            return ""
        first = candidates[0]
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
        if not text:
            logger.warning("Analysis returned no text (finishReason=%s)", first.get("finishReason"))
        return text
