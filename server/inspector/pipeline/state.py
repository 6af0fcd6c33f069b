"""上传状态 — 候选文件、文件信息与单一标签化状态。"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Protocol, Union


class IntakePhase(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    READING = "reading"
    DECODING = "decoding"
    ANALYZING = "analyzing"
    READY = "ready"
    FAILED = "failed"


class ByteSource(Protocol):
    async def read(self) -> bytes: ...


class _MemorySource:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def read(self) -> bytes:
        return self._data


@dataclass
class UploadCandidate:
    """一次上传尝试的原始文件，仅在处理期间存在。"""

    name: str
    content_type: str
    size: int
    source: ByteSource

    @classmethod
    def from_bytes(
        cls, name: str, content_type: str, data: bytes, size: int | None = None
    ) -> UploadCandidate:
        """size 缺省取 len(data)；传入声明大小时两者可以不一致，由读取步骤校验。"""
        return cls(
            name=name,
            content_type=content_type,
            size=len(data) if size is None else size,
            source=_MemorySource(data),
        )


@dataclass(frozen=True)
class FileDetails:
    name: str
    size: str
    type: str
    dimensions: str

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "size": self.size,
            "type": self.type,
            "dimensions": self.dimensions,
        }


# ────────────────────── 状态变体 ──────────────────────


@dataclass(frozen=True)
class Idle:
    phase: ClassVar[IntakePhase] = IntakePhase.IDLE


@dataclass(frozen=True)
class Validating:
    name: str
    phase: ClassVar[IntakePhase] = IntakePhase.VALIDATING


@dataclass(frozen=True)
class Reading:
    name: str
    phase: ClassVar[IntakePhase] = IntakePhase.READING


@dataclass(frozen=True)
class Decoding:
    name: str
    preview_url: str
    phase: ClassVar[IntakePhase] = IntakePhase.DECODING


@dataclass(frozen=True)
class Analyzing:
    details: FileDetails
    preview_url: str
    phase: ClassVar[IntakePhase] = IntakePhase.ANALYZING


@dataclass(frozen=True)
class Ready:
    details: FileDetails
    preview_url: str
    analysis: str
    phase: ClassVar[IntakePhase] = IntakePhase.READY


@dataclass(frozen=True)
class Failed:
    """失败终态。details 非空表示分析失败但文件信息保留。"""

    message: str
    title: str
    details: FileDetails | None = None
    preview_url: str | None = None
    phase: ClassVar[IntakePhase] = IntakePhase.FAILED


IntakeState = Union[Idle, Validating, Reading, Decoding, Analyzing, Ready, Failed]

BUSY_PHASES = frozenset(
    {IntakePhase.VALIDATING, IntakePhase.READING, IntakePhase.DECODING, IntakePhase.ANALYZING}
)
TERMINAL_PHASES = frozenset({IntakePhase.READY, IntakePhase.FAILED})
