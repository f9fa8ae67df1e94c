"""
分析 API

一次性 PageSpeed 分析。
"""

from fastapi import APIRouter, Depends, HTTPException, status

from ...analyzer import Analyzer
from ...models import AnalysisResult, AnalysisStateResponse, TargetRequest
from ...samplers import ReportError
from ..dependencies import get_analyzer

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


@router.post("", response_model=AnalysisResult)
async def run_analysis(req: TargetRequest, analyzer: Analyzer = Depends(get_analyzer)):
    """
    分析目标 URL

    报告拉取或解析失败时返回 502 和错误描述，不返回部分结果。
    """
    try:
        return await analyzer.analyze(req.url)
    except ReportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("", response_model=AnalysisStateResponse)
async def get_analysis_state(analyzer: Analyzer = Depends(get_analyzer)):
    """当前 loading/error 状态、最近结果与得分历史"""
    return analyzer.state()
