"""
数据模型定义

包括：
- 领域模型（区域、测量值、统计、历史点、快照）
- 外部报告解析结果
- API 请求/响应模型
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# 领域模型
# =============================================================================

class Region(BaseModel):
    """测量区域（进程启动时固定）"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    lat: float
    lng: float

    @property
    def geo_hint(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


class MeasurementStatus(str, Enum):
    """测量状态"""
    GOOD = "good"
    WARNING = "warning"
    POOR = "poor"
    ERROR = "error"
    UP = "up"
    DOWN = "down"


class Measurement(BaseModel):
    """单个区域的一次测量"""
    model_config = ConfigDict(frozen=True)

    region_id: str
    region_name: str
    load_time_ms: int = Field(..., ge=0, description="加载耗时（毫秒），失败时为 0")
    status: MeasurementStatus
    taken_at: datetime


class SummaryStats(BaseModel):
    """一批测量的汇总统计（仅统计正值）"""
    model_config = ConfigDict(frozen=True)

    mean: int = 0
    min: int = 0
    max: int = 0
    p95: int = 0


class HistoryPoint(BaseModel):
    """历史曲线上的一个点"""
    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="时间标签 HH:MM:SS")
    mean: Optional[int] = None   # 模拟采样：批次平均值
    score: Optional[int] = None  # 报告采样：性能得分 0-100
    load_time_ms: int = 0


class MonitorState(str, Enum):
    """刷新循环状态"""
    IDLE = "idle"
    MONITORING = "monitoring"


class Snapshot(BaseModel):
    """每次刷新交给展示层的只读快照"""
    model_config = ConfigDict(frozen=True)

    target: Optional[str] = None
    state: MonitorState = MonitorState.IDLE
    batch: Tuple[Measurement, ...] = ()
    stats: SummaryStats = Field(default_factory=SummaryStats)
    history: Tuple[HistoryPoint, ...] = ()
    taken_at: Optional[datetime] = None
    last_error: Optional[str] = None


class PageSpeedReport(BaseModel):
    """外部性能报告中提取出的字段"""
    score: Optional[int] = Field(None, description="性能得分 0-100")
    metrics: Dict[str, Optional[str]] = Field(default_factory=dict, description="指标展示字符串")
    lcp_ms: int = Field(0, description="Largest Contentful Paint（毫秒）")


class AnalysisResult(BaseModel):
    """一次性分析结果"""
    target: str
    report: PageSpeedReport
    batch: List[Measurement] = Field(default_factory=list)
    stats: SummaryStats = Field(default_factory=SummaryStats)
    history_point: HistoryPoint
    analyzed_at: datetime


# =============================================================================
# API 请求/响应模型
# =============================================================================

class TargetRequest(BaseModel):
    """启动监控 / 发起分析请求"""
    url: str

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")) or len(value.split("://", 1)[1]) == 0:
            raise ValueError("url must be an http(s) URL")
        return value


class AnalysisStateResponse(BaseModel):
    """GET /api/analysis 响应"""
    loading: bool = False
    error: Optional[str] = None
    result: Optional[AnalysisResult] = None
    history: List[HistoryPoint] = Field(default_factory=list)
