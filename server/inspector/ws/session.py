"""会话对象 — 聚合单个 WebSocket 连接的所有状态。"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from inspector.pipeline.state import UploadCandidate

if TYPE_CHECKING:
    from fastapi import WebSocket

    from inspector.pipeline.controller import IntakeController


@dataclass
class PendingUpload:
    name: str
    content_type: str
    size: int
    rejected: bool = False


class Session:
    """每个 WebSocket 连接一个 Session 实例，独占一个 IntakeController。"""

    def __init__(self, client_id: str, ws: WebSocket, controller: IntakeController) -> None:
        self.client_id = client_id
        self.ws = ws
        self.controller = controller

        # 上传缓冲
        self.pending_upload: PendingUpload | None = None
        self.upload_buffer = bytearray()
        self._buffer_cap = 0

        self.last_heartbeat: float = time.monotonic()

    def begin_upload(
        self, name: str, content_type: str, size: int, limit: int | None = None
    ) -> None:
        """开始接收新文件，丢弃未完成的旧缓冲。

        缓冲最多保留 min(size, limit) + 1 字节：多出的一个字节足以让长度校验失败。
        """
        self.pending_upload = PendingUpload(name, content_type, size)
        self.upload_buffer.clear()
        self._buffer_cap = (size if limit is None else min(size, limit)) + 1

    def reject_upload(self, name: str, content_type: str, size: int) -> None:
        """声明已被拒绝：随后的二进制帧与 upload_end 都静默丢弃。"""
        self.pending_upload = PendingUpload(name, content_type, size, rejected=True)
        self.upload_buffer.clear()
        self._buffer_cap = 0

    @property
    def upload_rejected(self) -> bool:
        return self.pending_upload is not None and self.pending_upload.rejected

    def append_upload(self, data: bytes) -> bool:
        """追加二进制帧。没有进行中的上传时返回 False。"""
        if self.pending_upload is None:
            return False
        room = self._buffer_cap - len(self.upload_buffer)
        if room > 0:
            self.upload_buffer.extend(data[:room])
        return True

    def finish_upload(self) -> UploadCandidate | None:
        """结束接收，返回候选文件；没有进行中或已被拒绝的上传时返回 None。

        size 取客户端声明值，实际收到的字节数不符时由读取步骤报告 ReadError。
        """
        pending = self.pending_upload
        data = bytes(self.upload_buffer)
        self.discard_upload()
        if pending is None or pending.rejected:
            return None
        return UploadCandidate.from_bytes(
            pending.name, pending.content_type, data, size=pending.size
        )

    def discard_upload(self) -> None:
        self.pending_upload = None
        self.upload_buffer.clear()
        self._buffer_cap = 0

    def update_heartbeat(self) -> None:
        self.last_heartbeat = time.monotonic()
