"""测试 metadata.py — 尺寸解码、大小格式化、FileDetails。"""

from __future__ import annotations

import pytest

from inspector.errors import DecodeError
from inspector.pipeline.encoder import encode_data_uri
from inspector.pipeline.metadata import build_details, extract_dimensions, format_size
from inspector.pipeline.state import UploadCandidate


class TestExtractDimensions:
    """Pillow 解码。"""

    @pytest.mark.parametrize(
        ("fmt", "mime"),
        [("PNG", "image/png"), ("JPEG", "image/jpeg"), ("GIF", "image/gif"), ("WEBP", "image/webp")],
    )
    async def test_all_allowed_formats(self, make_image, fmt, mime):
        uri = encode_data_uri(make_image(40, 30, fmt), mime)
        assert await extract_dimensions(uri) == (40, 30)

    async def test_png_dimensions(self, png_bytes):
        assert await extract_dimensions(encode_data_uri(png_bytes, "image/png")) == (64, 32)

    async def test_truncated_image(self, corrupt_png):
        with pytest.raises(DecodeError) as exc:
            await extract_dimensions(encode_data_uri(corrupt_png, "image/png"))
        assert "might be corrupted" in exc.value.message

    async def test_not_an_image(self):
        with pytest.raises(DecodeError):
            await extract_dimensions(encode_data_uri(b"definitely not pixels", "image/png"))

    async def test_empty_file(self):
        with pytest.raises(DecodeError):
            await extract_dimensions(encode_data_uri(b"", "image/gif"))

    async def test_malformed_uri(self):
        with pytest.raises(DecodeError):
            await extract_dimensions("data:image/png;base64,@@@")


class TestFormatting:
    """大小与尺寸文案。"""

    def test_format_size(self):
        assert format_size(2048) == "2.00 KB"
        assert format_size(1536) == "1.50 KB"
        assert format_size(0) == "0.00 KB"

    def test_format_size_rounds(self):
        assert format_size(1000) == "0.98 KB"

    def test_build_details(self, png_bytes):
        candidate = UploadCandidate.from_bytes("cat.png", "image/png", png_bytes)
        details = build_details(candidate, (64, 32))
        assert details.name == "cat.png"
        assert details.type == "image/png"
        assert details.dimensions == "64 x 32 px"
        assert details.size == format_size(len(png_bytes))

    def test_details_immutable(self, png_bytes):
        candidate = UploadCandidate.from_bytes("cat.png", "image/png", png_bytes)
        details = build_details(candidate, (1, 1))
        with pytest.raises(AttributeError):
            details.name = "dog.png"  # type: ignore[misc]
