"""
单元测试：刷新循环

测试覆盖：
- start 立即产生第一个历史点，之后每个周期一个点
- stop 后不再产生任何点（推进模拟时间验证）
- 历史曲线容量
- 重复 start 以新目标重启周期
- stop 与进行中的采样并发时丢弃迟到结果
- 采样失败不终止循环
"""

import asyncio
import itertools

import pytest

from site_monitor.models import MonitorState
from site_monitor.monitor import RefreshLoop
from site_monitor.regions import SYNTHETIC_REGIONS
from site_monitor.samplers import ReportError, SyntheticSampler

from conftest import FakeClock, settle, ticking_clock

TARGET = "https://example.com"


def cycling_sampler(values=(120, 340, 510, 90, 610)):
    it = itertools.cycle(values)
    return SyntheticSampler(SYNTHETIC_REGIONS, latency_model=lambda region: next(it))


class RecordingSampler:
    """记录每次采样的目标，可按调用序号失败或阻塞"""

    def __init__(self, fail_on=(), gate_on=()):
        self.inner = cycling_sampler()
        self.regions = self.inner.regions
        self.targets = []
        self.fail_on = set(fail_on)
        self.gate_on = set(gate_on)
        self.gate = asyncio.Event()

    async def sample(self, target):
        call = len(self.targets)
        self.targets.append(target)
        if call in self.gate_on:
            await self.gate.wait()
        if call in self.fail_on:
            raise ReportError("report unavailable")
        return await self.inner.sample(target)


def make_loop(sampler, fake, capacity=20):
    return RefreshLoop(
        sampler,
        interval=5,
        history_capacity=capacity,
        sleep=fake.sleep,
        clock=ticking_clock(),
    )


class TestRefreshLoop:
    """刷新循环测试"""

    def test_start_produces_immediate_point(self):
        async def scenario():
            fake = FakeClock()
            loop = make_loop(cycling_sampler(), fake)

            snapshot = await loop.start(TARGET)
            await settle()
            pending = fake.pending
            await loop.stop()
            return snapshot, pending

        snapshot, pending = asyncio.run(scenario())

        assert snapshot.state is MonitorState.MONITORING
        assert snapshot.target == TARGET
        assert len(snapshot.history) == 1
        assert len(snapshot.batch) == len(SYNTHETIC_REGIONS)
        assert snapshot.stats.mean == 334
        assert snapshot.stats.p95 == 610
        assert snapshot.history[0].mean == 334
        assert snapshot.history[0].label == "10:00:00"
        assert pending == 1

    def test_start_then_stop_no_further_ticks(self):
        """测试：start 后立即 stop，推进时间也不再产生新点"""
        async def scenario():
            fake = FakeClock()
            sampler = RecordingSampler()
            loop = make_loop(sampler, fake)

            await loop.start(TARGET)
            await settle()
            stopped = await loop.stop()
            for _ in range(4):
                await fake.advance(5)
            return loop.snapshot(), stopped, sampler.targets, fake.pending

        snapshot, stopped, targets, pending = asyncio.run(scenario())

        assert len(stopped.history) == 1
        assert len(snapshot.history) == 1
        assert snapshot.state is MonitorState.IDLE
        assert len(targets) == 1
        assert pending == 0
        # 最后一次快照保留可见
        assert len(snapshot.batch) == len(SYNTHETIC_REGIONS)

    def test_each_tick_appends_point(self):
        async def scenario():
            fake = FakeClock()
            loop = make_loop(cycling_sampler(), fake)
            counts = []

            await loop.start(TARGET)
            await settle()
            counts.append(len(loop.snapshot().history))
            for _ in range(3):
                await fake.advance(5)
                counts.append(len(loop.snapshot().history))
            await loop.stop()
            return counts, loop.snapshot()

        counts, snapshot = asyncio.run(scenario())

        assert counts == [1, 2, 3, 4]
        assert [p.label for p in snapshot.history] == ["10:00:00", "10:00:05", "10:00:10", "10:00:15"]

    def test_no_tick_before_interval(self):
        async def scenario():
            fake = FakeClock()
            loop = make_loop(cycling_sampler(), fake)

            await loop.start(TARGET)
            await settle()
            await fake.advance(4.9)
            count = len(loop.snapshot().history)
            await loop.stop()
            return count

        assert asyncio.run(scenario()) == 1

    def test_history_capacity(self):
        """测试：历史点数不超过容量，最早的点被淘汰"""
        async def scenario():
            fake = FakeClock()
            loop = make_loop(cycling_sampler(), fake, capacity=3)

            await loop.start(TARGET)
            await settle()
            for _ in range(5):
                await fake.advance(5)
            await loop.stop()
            return loop.snapshot()

        snapshot = asyncio.run(scenario())

        assert len(snapshot.history) == 3
        assert [p.label for p in snapshot.history] == ["10:00:15", "10:00:20", "10:00:25"]

    def test_restart_with_new_target(self):
        """测试：监控中再次 start，清空历史并切换目标"""
        async def scenario():
            fake = FakeClock()
            sampler = RecordingSampler()
            loop = make_loop(sampler, fake)

            await loop.start("https://a.example")
            await settle()
            await fake.advance(5)
            before = len(loop.snapshot().history)

            restarted = await loop.start("https://b.example")
            await settle()
            pending = fake.pending
            await fake.advance(5)
            after = loop.snapshot()
            await loop.stop()
            return before, restarted, pending, after, sampler.targets

        before, restarted, pending, after, targets = asyncio.run(scenario())

        assert before == 2
        assert len(restarted.history) == 1
        assert restarted.target == "https://b.example"
        assert pending == 1
        assert len(after.history) == 2
        assert targets == ["https://a.example", "https://a.example", "https://b.example", "https://b.example"]

    def test_target_captured_at_start(self):
        async def scenario():
            fake = FakeClock()
            sampler = RecordingSampler()
            loop = make_loop(sampler, fake)
            target = "https://example.com"

            await loop.start(target)
            await settle()
            target = "https://changed.example"
            await fake.advance(5)
            await fake.advance(5)
            await loop.stop()
            return sampler.targets

        assert asyncio.run(scenario()) == [TARGET] * 3

    def test_stop_discards_in_flight_result(self):
        """测试：采样进行中调用 stop，迟到的结果被丢弃且不再启动定时器"""
        async def scenario():
            fake = FakeClock()
            sampler = RecordingSampler(gate_on={0})
            loop = make_loop(sampler, fake)

            start_task = asyncio.create_task(loop.start(TARGET))
            await settle()
            await loop.stop()
            sampler.gate.set()
            result = await start_task
            await fake.advance(5)
            return result, loop.snapshot(), fake.pending

        result, snapshot, pending = asyncio.run(scenario())

        assert result.state is MonitorState.IDLE
        assert result.history == ()
        assert snapshot.history == ()
        assert pending == 0

    def test_stop_cancels_in_flight_tick(self):
        async def scenario():
            fake = FakeClock()
            sampler = RecordingSampler(gate_on={1})
            loop = make_loop(sampler, fake)

            await loop.start(TARGET)
            await settle()
            await fake.advance(5)
            # 第二次采样阻塞中
            await loop.stop()
            sampler.gate.set()
            await settle()
            return loop.snapshot(), sampler.targets

        snapshot, targets = asyncio.run(scenario())

        assert len(targets) == 2
        assert len(snapshot.history) == 1
        assert snapshot.state is MonitorState.IDLE

    def test_stop_and_restart_await_cancelled_timer(self):
        """测试：stop/重启返回前旧定时任务已结束"""
        async def scenario():
            fake = FakeClock()
            loop = make_loop(cycling_sampler(), fake)

            await loop.start(TARGET)
            first_task = loop._timer_task
            await loop.start("https://example.org")
            second_task = loop._timer_task
            restarted = (first_task.done(), first_task.cancelled())

            await loop.stop()
            stopped = (second_task.done(), second_task.cancelled())
            return restarted, stopped, loop._timer_task

        restarted, stopped, timer_task = asyncio.run(scenario())

        assert restarted == (True, True)
        assert stopped == (True, True)
        assert timer_task is None

    def test_failed_tick_keeps_monitoring(self):
        """测试：单次采样失败记录错误，下一周期恢复"""
        async def scenario():
            fake = FakeClock()
            sampler = RecordingSampler(fail_on={1})
            loop = make_loop(sampler, fake)

            await loop.start(TARGET)
            await settle()
            await fake.advance(5)
            failed = loop.snapshot()
            await fake.advance(5)
            recovered = loop.snapshot()
            await loop.stop()
            return failed, recovered

        failed, recovered = asyncio.run(scenario())

        assert failed.state is MonitorState.MONITORING
        assert failed.last_error == "report unavailable"
        assert len(failed.history) == 1
        assert recovered.last_error is None
        assert len(recovered.history) == 2

    def test_listeners_receive_snapshots(self):
        async def scenario():
            fake = FakeClock()
            loop = make_loop(cycling_sampler(), fake)
            received = []

            def broken(snapshot):
                raise RuntimeError("listener bug")

            loop.add_listener(broken)
            loop.add_listener(received.append)
            await loop.start(TARGET)
            await settle()
            await fake.advance(5)
            await loop.stop()
            await fake.advance(5)
            return received

        received = asyncio.run(scenario())

        assert [len(s.history) for s in received] == [1, 2]

    def test_stop_when_idle_is_noop(self):
        async def scenario():
            loop = make_loop(cycling_sampler(), FakeClock())
            return await loop.stop()

        snapshot = asyncio.run(scenario())

        assert snapshot.state is MonitorState.IDLE
        assert snapshot.history == ()

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            RefreshLoop(cycling_sampler(), history_capacity=0)
