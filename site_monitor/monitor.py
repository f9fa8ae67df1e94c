"""
刷新循环

两态状态机（idle / monitoring）：
- start(target): 清空历史，立即执行一次采样+聚合，然后按固定周期重复
- stop(): 取消定时任务，之后不再产生任何快照，最后一次快照保持可见

定时任务只在一次采样完成后才重新等待下一个周期，因此不会出现重叠的 tick。
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from .aggregator import fold_history, make_history_point, summarize
from .models import HistoryPoint, Measurement, MonitorState, Snapshot, SummaryStats

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]


@dataclass
class MonitorContext:
    state: MonitorState = MonitorState.IDLE
    target: Optional[str] = None
    history: List[HistoryPoint] = field(default_factory=list)
    last_batch: List[Measurement] = field(default_factory=list)
    last_stats: SummaryStats = field(default_factory=SummaryStats)
    last_error: Optional[str] = None
    taken_at: Optional[datetime] = None
    generation: int = 0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshLoop:
    """
    周期性采样控制器

    Args:
        sampler: 任何提供 async sample(target) 的采样器
        interval: 刷新周期（秒）
        history_capacity: 历史曲线最多保留的点数
        sleep: 定时等待函数（测试时注入可控时钟）
        clock: 时间戳来源
    """

    def __init__(
        self,
        sampler,
        interval: float = 5.0,
        history_capacity: int = 20,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if history_capacity < 1:
            raise ValueError("history_capacity must be >= 1")

        self.sampler = sampler
        self.interval = interval
        self.history_capacity = history_capacity
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._timer_task: Optional[asyncio.Task] = None
        self._context = MonitorContext()
        self._listeners: List[SnapshotListener] = []

    @property
    def state(self) -> MonitorState:
        return self._context.state

    @property
    def target(self) -> Optional[str]:
        return self._context.target

    def add_listener(self, listener: SnapshotListener):
        """注册快照回调，每次产生新快照时调用"""
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def snapshot(self) -> Snapshot:
        """当前快照（只读）"""
        ctx = self._context
        return Snapshot(
            target=ctx.target,
            state=ctx.state,
            batch=tuple(ctx.last_batch),
            stats=ctx.last_stats,
            history=tuple(ctx.history),
            taken_at=ctx.taken_at,
            last_error=ctx.last_error,
        )

    async def start(self, target: str) -> Snapshot:
        """
        开始监控

        已在监控中时，取消当前周期并以新目标重新开始。
        目标在此刻确定，之后不会被重新读取。
        """
        async with self._lock:
            if self._context.state is MonitorState.MONITORING:
                logger.info(f"Restarting monitoring cycle (was {self._context.target})")
                await self._cancel_timer_locked()

            generation = self._context.generation + 1
            self._context = MonitorContext(
                state=MonitorState.MONITORING,
                target=target,
                generation=generation,
            )

        logger.info(f"Monitoring started for {target} (interval={self.interval}s)")

        # 立即执行第一轮
        await self._run_pass(generation, target)

        async with self._lock:
            if self._is_current(generation):
                self._timer_task = asyncio.create_task(self._timer_loop(generation, target))

        return self.snapshot()

    async def stop(self) -> Snapshot:
        """停止监控，最后一次快照保留"""
        async with self._lock:
            if self._context.state is MonitorState.IDLE:
                return self.snapshot()

            self._context.state = MonitorState.IDLE
            # 使正在进行的采样结果失效
            self._context.generation += 1
            await self._cancel_timer_locked()

        logger.info(f"Monitoring stopped for {self._context.target}")
        return self.snapshot()

    def _is_current(self, generation: int) -> bool:
        return (
            self._context.state is MonitorState.MONITORING
            and self._context.generation == generation
        )

    async def _cancel_timer_locked(self):
        task = self._timer_task
        self._timer_task = None

        if not task or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _timer_loop(self, generation: int, target: str):
        while self._is_current(generation):
            await self._sleep(self.interval)
            if not self._is_current(generation):
                return
            await self._run_pass(generation, target)

    async def _run_pass(self, generation: int, target: str) -> Optional[Snapshot]:
        """执行一次采样+聚合；若期间已 stop/restart，则丢弃结果"""
        try:
            batch = await self.sampler.sample(target)
        except Exception as e:
            logger.warning(f"Sampling pass for {target} failed: {e}")
            async with self._lock:
                if not self._is_current(generation):
                    return None
                self._context.last_error = str(e)
                snapshot = self.snapshot()
            self._notify(snapshot)
            return snapshot

        stats = summarize(batch)
        taken_at = self._clock()
        point = make_history_point(stats, taken_at)

        async with self._lock:
            if not self._is_current(generation):
                logger.debug(f"Discarding late sampling result for {target}")
                return None

            ctx = self._context
            ctx.history = fold_history(ctx.history, point, self.history_capacity)
            ctx.last_batch = list(batch)
            ctx.last_stats = stats
            ctx.last_error = None
            ctx.taken_at = taken_at
            snapshot = self.snapshot()

        logger.debug(f"Tick for {target}: mean={stats.mean}ms p95={stats.p95}ms")
        self._notify(snapshot)
        return snapshot

    def _notify(self, snapshot: Snapshot):
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener error: {e}", exc_info=True)
