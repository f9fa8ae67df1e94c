"""
模拟采样器

按区域生成模拟加载耗时：基础延迟 [100, 300) × 区域系数 + 抖动 [0, 50)。
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from ..models import Measurement, MeasurementStatus, Region

logger = logging.getLogger(__name__)

GOOD_THRESHOLD_MS = 300
WARNING_THRESHOLD_MS = 500

# 区域 ID 包含该子串时视为近端区域
NEAR_REGION_TAG = "us"
NEAR_REGION_FACTOR = 1.0
FAR_REGION_FACTOR = 1.5


def classify_status(load_time_ms: int) -> MeasurementStatus:
    """
    按固定阈值分类

    <300 good，<500 warning，其余 poor
    """
    if load_time_ms < GOOD_THRESHOLD_MS:
        return MeasurementStatus.GOOD
    if load_time_ms < WARNING_THRESHOLD_MS:
        return MeasurementStatus.WARNING
    return MeasurementStatus.POOR


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyntheticSampler:
    """
    模拟多区域采样器

    Args:
        regions: 固定区域列表
        rng: 随机数发生器（测试时传入带种子的 random.Random）
        latency_model: 可选的延迟分布，签名 (region) -> float，覆盖默认模型
        probe_delay: 每个区域的模拟探测耗时（秒），0 表示不等待
        clock: 时间戳来源
    """

    def __init__(
        self,
        regions: Sequence[Region],
        rng: Optional[random.Random] = None,
        latency_model: Optional[Callable[[Region], float]] = None,
        probe_delay: float = 0.0,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.regions = list(regions)
        self._rng = rng or random.Random()
        self._latency_model = latency_model or self._default_latency
        self._probe_delay = probe_delay
        self._clock = clock

    def _default_latency(self, region: Region) -> float:
        base_latency = self._rng.uniform(100, 300)
        factor = NEAR_REGION_FACTOR if NEAR_REGION_TAG in region.id else FAR_REGION_FACTOR
        jitter = self._rng.uniform(0, 50)
        return base_latency * factor + jitter

    def _measure(self, region: Region) -> Measurement:
        try:
            load_time_ms = int(round(self._latency_model(region)))
            if load_time_ms < 0:
                raise ValueError(f"negative latency {load_time_ms}")
            status = classify_status(load_time_ms)
        except Exception as e:
            # 单个区域失败不影响整批
            logger.warning(f"Sampling region {region.id} failed: {e}")
            load_time_ms = 0
            status = MeasurementStatus.ERROR

        return Measurement(
            region_id=region.id,
            region_name=region.name,
            load_time_ms=load_time_ms,
            status=status,
            taken_at=self._clock(),
        )

    async def sample(self, target: str) -> List[Measurement]:
        """对目标执行一轮采样，每个区域一条测量"""
        batch = []
        for region in self.regions:
            if self._probe_delay > 0:
                await asyncio.sleep(self._probe_delay)
            batch.append(self._measure(region))

        logger.debug(f"Sampled {len(batch)} regions for {target}")
        return batch
