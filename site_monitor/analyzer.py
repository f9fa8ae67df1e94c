"""
一次性分析

拉取一次外部报告并派生区域数据；维护 loading/error 状态与有界历史。
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .aggregator import fold_history, make_history_point, summarize
from .models import AnalysisResult, AnalysisStateResponse, HistoryPoint
from .samplers.pagespeed import PageSpeedSampler, ReportError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Analyzer:
    """一次性 PageSpeed 分析，失败不保留部分结果，不自动重试"""

    def __init__(
        self,
        sampler: PageSpeedSampler,
        history_capacity: int = 10,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.sampler = sampler
        self.history_capacity = history_capacity
        self._clock = clock
        self._lock = asyncio.Lock()
        self.loading = False
        self.error: Optional[str] = None
        self.result: Optional[AnalysisResult] = None
        self.history: List[HistoryPoint] = []

    def state(self) -> AnalysisStateResponse:
        return AnalysisStateResponse(
            loading=self.loading,
            error=self.error,
            result=self.result,
            history=list(self.history),
        )

    async def analyze(self, target: str) -> AnalysisResult:
        """
        分析目标 URL

        Raises:
            ReportError: 报告拉取或解析失败（同时记录到 self.error）
        """
        async with self._lock:
            self.loading = True
            self.error = None
            self.result = None
            try:
                report, batch = await self.sampler.analyze(target)
                analyzed_at = self._clock()
                stats = summarize(batch)
                point = make_history_point(
                    stats,
                    analyzed_at,
                    score=report.score,
                    load_time_ms=report.lcp_ms,
                )
                self.result = AnalysisResult(
                    target=target,
                    report=report,
                    batch=batch,
                    stats=stats,
                    history_point=point,
                    analyzed_at=analyzed_at,
                )
                self.history = fold_history(self.history, point, self.history_capacity)
                return self.result
            except ReportError as e:
                logger.warning(f"Analysis of {target} failed: {e}")
                self.error = str(e)
                raise
            finally:
                self.loading = False
