"""
测试公共工具

- FakeClock: 替代 asyncio.sleep 的可推进时钟
- 每个测试使用独立的默认配置与全局依赖
"""

import asyncio
import itertools
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from site_monitor.api.dependencies import reset_dependencies
from site_monitor.config import reset_config


async def settle(rounds: int = 20):
    """让已就绪的协程执行完当前步骤"""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """可手动推进的时钟，sleep 只在 advance 之后返回"""

    def __init__(self):
        self.now = 0.0
        self._waiters = []

    async def sleep(self, delay):
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + delay, future))
        await future

    @property
    def pending(self) -> int:
        return sum(1 for _, f in self._waiters if not f.done())

    async def advance(self, seconds: float):
        self.now += seconds
        for deadline, future in list(self._waiters):
            if deadline <= self.now and not future.done():
                future.set_result(None)
        self._waiters = [(d, f) for d, f in self._waiters if not f.done()]
        await settle()


def ticking_clock(start: datetime = datetime(2026, 1, 20, 10, 0, 0), step: int = 5):
    """每次调用前进 step 秒的时间戳来源（naive 时间，标签不受时区影响）"""
    counter = itertools.count()
    return lambda: start + timedelta(seconds=step * next(counter))


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """使用默认配置，避免读取工作目录下的 config.yaml"""
    monkeypatch.setenv("SITE_MONITOR_CONFIG_PATH", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("SITE_MONITOR_PAGESPEED_API_KEY", raising=False)
    monkeypatch.delenv("SITE_MONITOR_LOG_LEVEL", raising=False)
    reset_config()
    reset_dependencies()
    yield
    reset_config()
    reset_dependencies()


def pagespeed_payload(score=0.87, lcp_numeric=2512.3, lcp_display="2.5 s"):
    """构造 PageSpeed v5 响应的最小子集"""
    audits = {
        "first-contentful-paint": {"displayValue": "1.2 s", "numericValue": 1204.0},
        "total-blocking-time": {"displayValue": "150 ms", "numericValue": 150.0},
        "cumulative-layout-shift": {"displayValue": "0.05", "numericValue": 0.05},
        "speed-index": {"displayValue": "3.1 s", "numericValue": 3100.0},
    }
    lcp = {}
    if lcp_display is not None:
        lcp["displayValue"] = lcp_display
    if lcp_numeric is not None:
        lcp["numericValue"] = lcp_numeric
    audits["largest-contentful-paint"] = lcp

    categories = {}
    if score is not None:
        categories["performance"] = {"score": score}

    return {"lighthouseResult": {"categories": categories, "audits": audits}}
