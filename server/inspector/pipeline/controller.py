"""上传编排 — 校验 → 读取编码 → 解码尺寸 → 远程分析 串联。"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from inspector.errors import AnalysisError, AnalysisUnavailable, IntakeError
from inspector.pipeline.encoder import encode_data_uri, read_candidate
from inspector.pipeline.metadata import build_details, extract_dimensions
from inspector.pipeline.state import (
    BUSY_PHASES,
    Analyzing,
    Decoding,
    Failed,
    FileDetails,
    Idle,
    IntakePhase,
    IntakeState,
    Ready,
    Reading,
    Validating,
)
from inspector.pipeline.validator import validate_upload

if TYPE_CHECKING:
    from inspector.config import IntakeConfig
    from inspector.pipeline.analysis import AnalysisClient
    from inspector.pipeline.state import UploadCandidate

logger = logging.getLogger(__name__)

StateListener = Callable[[IntakeState], "Awaitable[None] | None"]

CLOSE_GRACE = 1.0  # 秒


class IntakeController:
    """单个候选文件的状态机。

    同一时间只处理一个候选文件。新的上传会取消旧任务并递增 generation，
    每次状态提交都比对 generation，旧候选的迟到结果直接丢弃。
    """

    def __init__(self, config: IntakeConfig, analysis: AnalysisClient) -> None:
        self.config = config
        self.analysis = analysis
        self._state: IntakeState = Idle()
        self._state_generation = 0
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._listeners: list[StateListener] = []

    # ────────────────────── 可观察状态 ──────────────────────

    @property
    def state(self) -> IntakeState:
        return self._state

    @property
    def phase(self) -> IntakePhase:
        return self._state.phase

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def file_details(self) -> FileDetails | None:
        return getattr(self._state, "details", None)

    @property
    def analysis_text(self) -> str | None:
        if isinstance(self._state, Ready):
            return self._state.analysis
        return None

    @property
    def error_message(self) -> str | None:
        if isinstance(self._state, Failed):
            return self._state.message
        return None

    @property
    def error_title(self) -> str | None:
        if isinstance(self._state, Failed):
            return self._state.title
        return None

    @property
    def preview_url(self) -> str | None:
        return getattr(self._state, "preview_url", None)

    @property
    def is_processing(self) -> bool:
        return self._state.phase in BUSY_PHASES

    @property
    def is_analyzing(self) -> bool:
        return self._state.phase == IntakePhase.ANALYZING

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """注册状态变更回调，返回取消订阅函数。"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ────────────────────── 操作 ──────────────────────

    async def screen(self, name: str, content_type: str, size: int) -> bool:
        """按声明的类型与大小预检，尚未收到任何字节。

        无论结果如何都取代进行中的候选。通过时不提交状态，等 submit 开始新链路；
        不通过时进入 FAILED 并返回 False。
        """
        generation = self._supersede()
        try:
            validate_upload(content_type, size, self.config)
        except IntakeError as e:
            logger.warning("Intake #%d rejected before upload: %s", generation, e.message)
            await self._commit(generation, Validating(name))
            await self._commit(generation, Failed(e.message, e.title))
            return False
        return True

    async def submit(self, candidate: UploadCandidate) -> asyncio.Task | None:
        """接收新文件：取代进行中的候选，同步校验，通过后启动异步链路。"""
        generation = self._supersede()
        logger.info(
            "Intake #%d: %s (%s, %d bytes)",
            generation,
            candidate.name,
            candidate.content_type,
            candidate.size,
        )

        await self._commit(generation, Validating(candidate.name))
        try:
            validate_upload(candidate.content_type, candidate.size, self.config)
        except IntakeError as e:
            logger.warning("Intake #%d rejected: %s", generation, e.message)
            await self._commit(generation, Failed(e.message, e.title))
            return None

        self._task = asyncio.create_task(self._run(candidate, generation))
        return self._task

    async def reset(self) -> None:
        """回到初始状态，清空所有数据并丢弃进行中的任务。"""
        generation = self._supersede()
        await self._commit(generation, Idle())

    async def wait(self) -> None:
        """等待当前链路结束（若有）。"""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def close(self) -> None:
        self._generation += 1
        task = self._cancel_inflight()
        self._listeners.clear()
        if task is not None:
            await asyncio.wait({task}, timeout=CLOSE_GRACE)

    # ────────────────────── 内部 ──────────────────────

    def _supersede(self) -> int:
        """作废当前候选：先递增 generation，再取消旧任务。"""
        # 不等待旧任务结束，其迟到提交由 generation 比对丢弃
        self._generation += 1
        self._cancel_inflight()
        return self._generation

    def _cancel_inflight(self) -> asyncio.Task | None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            return task
        return None

    async def _run(self, candidate: UploadCandidate, generation: int) -> None:
        """完整链路：读取 → 编码 → 解码 → 分析。"""
        try:
            # 1. 读取 + 编码（同时作为预览）
            if not await self._commit(generation, Reading(candidate.name)):
                return
            data = await read_candidate(candidate)
            preview = encode_data_uri(data, candidate.content_type)
            if not await self._commit(generation, Decoding(candidate.name, preview)):
                return

            # 2. 解码取尺寸
            dimensions = await extract_dimensions(preview)
            details = build_details(candidate, dimensions)
            if not await self._commit(generation, Analyzing(details, preview)):
                return

            # 3. 远程分析：失败时保留文件信息与预览
            try:
                description = await self.analysis.describe(preview)
                if not description:
                    raise AnalysisUnavailable()
            except AnalysisError as e:
                logger.warning("Intake #%d analysis failed: %s", generation, e.message)
                await self._commit(generation, Failed(e.message, e.title, details, preview))
                return
            except Exception:
                logger.exception("Intake #%d analysis error", generation)
                e = AnalysisUnavailable()
                await self._commit(generation, Failed(e.message, e.title, details, preview))
                return

            await self._commit(generation, Ready(details, preview, description))

        except asyncio.CancelledError:
            logger.info("Intake #%d cancelled", generation)
            raise
        except IntakeError as e:
            logger.warning("Intake #%d failed: %s", generation, e.message)
            await self._commit(generation, Failed(e.message, e.title))
        except Exception:
            logger.exception("Intake #%d error", generation)
            e = IntakeError()
            await self._commit(generation, Failed(e.message, e.title))

    async def _commit(self, generation: int, state: IntakeState) -> bool:
        """提交状态。过期 generation 或同一候选已失败时丢弃，返回是否生效。"""
        if generation != self._generation:
            logger.info(
                "Dropping stale %s for intake #%d (current #%d)",
                state.phase.value,
                generation,
                self._generation,
            )
            return False
        if self._state_generation == generation and isinstance(self._state, Failed):
            return False

        self._state = state
        self._state_generation = generation
        logger.debug("Intake #%d → %s", generation, state.phase.value)

        for listener in list(self._listeners):
            try:
                result = listener(state)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("State listener failed")
        return True
