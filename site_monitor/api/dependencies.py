"""
依赖注入模块

提供 FastAPI 依赖项（全局刷新循环与分析器实例）。
"""

import random
from typing import Optional

from ..analyzer import Analyzer
from ..config import get_config
from ..monitor import RefreshLoop
from ..regions import REPORT_REGIONS
from ..samplers import PageSpeedSampler, create_sampler

_monitor: Optional[RefreshLoop] = None
_analyzer: Optional[Analyzer] = None


def get_monitor() -> RefreshLoop:
    """获取全局刷新循环（延迟创建）"""
    global _monitor
    if _monitor is None:
        config = get_config()
        _monitor = RefreshLoop(
            create_sampler(config),
            interval=config.monitor.interval,
            history_capacity=config.monitor.history_capacity,
        )
    return _monitor


def get_analyzer() -> Analyzer:
    """获取全局分析器（延迟创建），始终基于 PageSpeed 报告"""
    global _analyzer
    if _analyzer is None:
        config = get_config()
        sampler = PageSpeedSampler(
            regions=REPORT_REGIONS,
            endpoint=config.pagespeed.endpoint,
            strategy=config.pagespeed.strategy,
            timeout=config.pagespeed.timeout,
            failure_probability=config.pagespeed.failure_probability,
            api_key=config.pagespeed.api_key,
            rng=random.Random(config.sampler.seed),
        )
        _analyzer = Analyzer(sampler, history_capacity=config.pagespeed.history_capacity)
    return _analyzer


def reset_dependencies():
    """重置全局实例（主要用于测试）"""
    global _monitor, _analyzer
    _monitor = None
    _analyzer = None
