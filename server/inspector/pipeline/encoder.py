"""图片编码 — 原始字节 ↔ data URI。"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from inspector.errors import ReadError

if TYPE_CHECKING:
    from inspector.pipeline.state import UploadCandidate

logger = logging.getLogger(__name__)

_PREFIX = "data:"
_BASE64_MARKER = ";base64,"


def encode_data_uri(data: bytes, content_type: str) -> str:
    """编码为 data:<mime>;base64,<payload>，既用作预览也用作分析请求。"""
    payload = base64.b64encode(data).decode("ascii")
    return f"{_PREFIX}{content_type}{_BASE64_MARKER}{payload}"


def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """解析 data URI，返回 (mime, bytes)。格式不合法时抛出 ValueError。"""
    if not uri.startswith(_PREFIX):
        raise ValueError("Not a data URI")
    header, sep, payload = uri[len(_PREFIX) :].partition(",")
    if not sep or not header.endswith(";base64"):
        raise ValueError("Data URI is not base64 encoded")
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
    return header[: -len(";base64")], data


async def read_candidate(candidate: UploadCandidate) -> bytes:
    """完整读取候选文件字节；I/O 失败或长度与声明不符时抛出 ReadError。"""
    try:
        data = await candidate.source.read()
    except OSError as e:
        logger.warning("Read failed for %s: %s", candidate.name, e)
        raise ReadError() from e

    if len(data) != candidate.size:
        logger.warning(
            "Read %d bytes for %s, expected %d", len(data), candidate.name, candidate.size
        )
        raise ReadError()
    return data
