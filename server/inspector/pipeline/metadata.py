"""图片元数据 — Pillow 解码取像素尺寸，生成 FileDetails。"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import TYPE_CHECKING

from PIL import Image

from inspector.errors import DecodeError
from inspector.pipeline.encoder import decode_data_uri
from inspector.pipeline.state import FileDetails

if TYPE_CHECKING:
    from inspector.pipeline.state import UploadCandidate

logger = logging.getLogger(__name__)


async def extract_dimensions(data_uri: str) -> tuple[int, int]:
    """在线程中解码图片，返回 (width, height)。无法解码时抛出 DecodeError。"""
    return await asyncio.to_thread(_decode_sync, data_uri)


def _decode_sync(data_uri: str) -> tuple[int, int]:
    try:
        _, data = decode_data_uri(data_uri)
        with Image.open(io.BytesIO(data)) as img:
            # 完整解码像素，截断文件在这里才会暴露
            img.load()
            return img.width, img.height
    except (OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        logger.warning("Image decode failed: %s", e)
        raise DecodeError() from e


def format_size(size: int) -> str:
    return f"{size / 1024:.2f} KB"


def build_details(candidate: UploadCandidate, dimensions: tuple[int, int]) -> FileDetails:
    width, height = dimensions
    return FileDetails(
        name=candidate.name,
        size=format_size(candidate.size),
        type=candidate.content_type,
        dimensions=f"{width} x {height} px",
    )
