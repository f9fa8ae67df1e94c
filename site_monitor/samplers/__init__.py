"""
采样器模块

包含模拟采样器与 PageSpeed 报告采样器
"""

import random
from typing import Union

from ..config import AppConfig
from ..regions import regions_for_variant
from .pagespeed import PageSpeedSampler, ReportError, parse_duration, parse_report
from .synthetic import SyntheticSampler, classify_status

Sampler = Union[SyntheticSampler, PageSpeedSampler]


def create_sampler(config: AppConfig) -> Sampler:
    """按配置中的 sampler.variant 创建采样器"""
    variant = config.sampler.variant
    regions = regions_for_variant(variant)
    rng = random.Random(config.sampler.seed)

    if variant == "pagespeed":
        return PageSpeedSampler(
            regions=regions,
            endpoint=config.pagespeed.endpoint,
            strategy=config.pagespeed.strategy,
            timeout=config.pagespeed.timeout,
            failure_probability=config.pagespeed.failure_probability,
            api_key=config.pagespeed.api_key,
            rng=rng,
        )

    return SyntheticSampler(
        regions=regions,
        rng=rng,
        probe_delay=config.sampler.probe_delay,
    )


__all__ = [
    "Sampler",
    "SyntheticSampler",
    "PageSpeedSampler",
    "ReportError",
    "classify_status",
    "create_sampler",
    "parse_duration",
    "parse_report",
]
