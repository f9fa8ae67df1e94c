"""
PageSpeed 报告采样器

拉取一次外部性能报告，提取 LCP，再按区域派生加载耗时与在线状态。
"""

import logging
import math
import random
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from ..models import Measurement, MeasurementStatus, PageSpeedReport, Region

logger = logging.getLogger(__name__)

LCP_AUDIT = "largest-contentful-paint"

# 报告中展示的指标（audit id -> 展示名）
REPORT_METRICS = {
    "first-contentful-paint": "fcp",
    "largest-contentful-paint": "lcp",
    "total-blocking-time": "tbt",
    "cumulative-layout-shift": "cls",
    "speed-index": "speed_index",
}

LOAD_FACTOR_RANGE = (0.7, 1.2)

_DURATION_RE = re.compile(r"^\s*([0-9][0-9,]*(?:\.[0-9]+)?)\s*(ms|s)?\s*$", re.IGNORECASE)


class ReportError(Exception):
    """外部报告拉取或解析失败"""


def parse_duration(display_value: Optional[str]) -> Optional[int]:
    """
    解析报告中的时长字符串

    支持 "2.5 s"、"850 ms"、"1,234 ms"，以及 PageSpeed 使用的不换行空格。
    无法解析时返回 None。
    """
    if not display_value:
        return None

    text = display_value.replace("\u00a0", " ").replace("\u202f", " ")
    match = _DURATION_RE.match(text)
    if not match:
        return None

    value = float(match.group(1).replace(",", ""))
    unit = (match.group(2) or "s").lower()
    if unit == "s":
        value *= 1000
    return int(round(value))


def _is_valid_number(value: Any) -> bool:
    # bool 是 int 的子类，需要排除
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def parse_report(payload: Any) -> PageSpeedReport:
    """
    从 PageSpeed JSON 中提取得分、指标和 LCP

    Raises:
        ReportError: 顶层报告缺失、携带 error 字段，或 LCP 数值无效且无法从展示值回退
    """
    if not isinstance(payload, dict):
        raise ReportError("Performance report is not a JSON object")

    if payload.get("error"):
        error = payload["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise ReportError(f"Performance report failed: {message or 'unknown error'}")

    result = payload.get("lighthouseResult")
    if not isinstance(result, dict):
        raise ReportError("Performance report is missing lighthouseResult")

    categories = result.get("categories") or {}
    raw_score = (categories.get("performance") or {}).get("score")
    score = int(round(raw_score * 100)) if _is_valid_number(raw_score) else None

    audits = result.get("audits") or {}
    metrics = {}
    for audit_id, key in REPORT_METRICS.items():
        metrics[key] = (audits.get(audit_id) or {}).get("displayValue")

    lcp_audit = audits.get(LCP_AUDIT) or {}
    numeric = lcp_audit.get("numericValue")
    if _is_valid_number(numeric):
        lcp_ms = int(round(numeric))
    else:
        parsed = parse_duration(lcp_audit.get("displayValue"))
        if parsed is None and numeric is not None:
            raise ReportError(
                f"Performance report has an invalid largest-contentful-paint value: {numeric!r}"
            )
        lcp_ms = parsed or 0

    return PageSpeedReport(score=score, metrics=metrics, lcp_ms=lcp_ms)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PageSpeedSampler:
    """
    基于单份外部报告的区域采样器

    Args:
        regions: 固定区域列表
        endpoint: 报告接口地址
        strategy: 分析策略（mobile/desktop）
        timeout: 请求超时（秒）
        failure_probability: 每个区域独立判定为 down 的概率
        api_key: 可选 API Key
        rng: 随机数发生器
        transport: 可选 httpx 传输层（测试时注入 MockTransport）
    """

    def __init__(
        self,
        regions: Sequence[Region],
        endpoint: str,
        strategy: str = "mobile",
        timeout: float = 10.0,
        failure_probability: float = 0.1,
        api_key: Optional[str] = None,
        rng: Optional[random.Random] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.regions = list(regions)
        self.endpoint = endpoint
        self.strategy = strategy
        self.timeout = timeout
        self.failure_probability = failure_probability
        self._api_key = api_key
        self._rng = rng or random.Random()
        self._transport = transport
        self._clock = clock

    async def fetch_report(self, target: str) -> Dict[str, Any]:
        """
        拉取目标的性能报告原始 JSON

        Raises:
            ReportError: 网络错误、超时、非 2xx 响应或非 JSON 内容
        """
        params = {"url": target, "strategy": self.strategy}
        if self._api_key:
            params["key"] = self._api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.endpoint, params=params)
        except httpx.TimeoutException as e:
            raise ReportError(f"Performance report timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ReportError(f"Performance report request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ReportError(f"Performance report returned invalid JSON (HTTP {response.status_code})") from e

        if response.is_error:
            # 接口错误时通常仍返回 {"error": {...}}
            if isinstance(payload, dict) and payload.get("error"):
                parse_report(payload)
            raise ReportError(f"Performance report request failed with HTTP {response.status_code}")

        return payload

    def derive_batch(self, report: PageSpeedReport) -> List[Measurement]:
        """由报告 LCP 派生每个区域的加载耗时，并独立判定 up/down"""
        low, high = LOAD_FACTOR_RANGE
        batch = []
        for region in self.regions:
            load_time_ms = int(round(report.lcp_ms * self._rng.uniform(low, high)))
            down = self._rng.random() < self.failure_probability
            batch.append(Measurement(
                region_id=region.id,
                region_name=region.name,
                load_time_ms=load_time_ms,
                status=MeasurementStatus.DOWN if down else MeasurementStatus.UP,
                taken_at=self._clock(),
            ))
        return batch

    async def analyze(self, target: str) -> Tuple[PageSpeedReport, List[Measurement]]:
        """拉取并解析报告，返回报告与派生批次"""
        payload = await self.fetch_report(target)
        report = parse_report(payload)
        logger.info(f"Report for {target}: score={report.score}, lcp={report.lcp_ms}ms")
        return report, self.derive_batch(report)

    async def sample(self, target: str) -> List[Measurement]:
        _, batch = await self.analyze(target)
        return batch
