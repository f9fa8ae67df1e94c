"""
批次聚合

将一批区域测量归约为 mean/min/max/p95，并维护有界的历史曲线。
"""

import math
from datetime import datetime
from typing import List, Optional, Sequence

from .models import HistoryPoint, Measurement, SummaryStats

P95_RATIO = 0.95
LABEL_FORMAT = "%H:%M:%S"


def summarize(batch: Sequence[Measurement]) -> SummaryStats:
    """
    计算汇总统计

    Args:
        batch: 一批测量（可包含 load_time_ms 为 0 的失败项）

    Returns:
        SummaryStats；没有正值样本时全部为 0
    """
    times = sorted(m.load_time_ms for m in batch if m.load_time_ms > 0)
    if not times:
        return SummaryStats()

    max_value = times[-1]
    p95_index = math.floor(len(times) * P95_RATIO)
    p95 = times[p95_index] if p95_index < len(times) else max_value

    return SummaryStats(
        mean=int(round(sum(times) / len(times))),
        min=times[0],
        max=max_value,
        p95=p95,
    )


def fold_history(
    history: Sequence[HistoryPoint],
    point: HistoryPoint,
    capacity: int
) -> List[HistoryPoint]:
    """
    追加一个历史点并只保留最近 capacity 个

    不修改传入的 history，返回新列表。
    """
    if capacity < 1:
        raise ValueError(f"capacity must be >= 1, got {capacity}")

    folded = list(history)
    folded.append(point)
    return folded[-capacity:]


def make_history_point(
    stats: SummaryStats,
    taken_at: datetime,
    score: Optional[int] = None,
    load_time_ms: Optional[int] = None
) -> HistoryPoint:
    """
    构造历史点

    模拟采样传入 stats，曲线值取批次平均；报告采样额外传入 score 和报告 LCP。
    """
    label = taken_at.astimezone().strftime(LABEL_FORMAT) if taken_at.tzinfo else taken_at.strftime(LABEL_FORMAT)

    if score is not None or load_time_ms is not None:
        return HistoryPoint(
            label=label,
            score=score,
            load_time_ms=load_time_ms if load_time_ms is not None else stats.mean,
        )

    return HistoryPoint(label=label, mean=stats.mean, load_time_ms=stats.mean)
