"""上传校验 — MIME 白名单 + 大小上限。"""

from __future__ import annotations

from typing import TYPE_CHECKING

from inspector.errors import InvalidType, TooLarge

if TYPE_CHECKING:
    from inspector.config import IntakeConfig


def validate_upload(content_type: str, size: int, config: IntakeConfig) -> None:
    """校验声明的类型与大小，不通过时抛出 TooLarge / InvalidType。

    先检查大小：超限文件无论类型是否合法都判为 TooLarge。
    """
    if size > config.max_file_size:
        raise TooLarge(size, config.max_file_size)
    if content_type not in config.allowed_types:
        raise InvalidType(content_type)
