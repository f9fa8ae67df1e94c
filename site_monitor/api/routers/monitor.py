"""
监控 API

启动/停止刷新循环，读取当前快照。
"""

from typing import List

from fastapi import APIRouter, Depends

from ...models import Region, Snapshot, TargetRequest
from ...monitor import RefreshLoop
from ..dependencies import get_monitor

router = APIRouter(prefix="/api", tags=["monitor"])


@router.get("/regions", response_model=List[Region])
async def list_regions(monitor: RefreshLoop = Depends(get_monitor)):
    """当前采样器使用的区域列表"""
    return monitor.sampler.regions


@router.post("/monitor/start", response_model=Snapshot)
async def start_monitoring(req: TargetRequest, monitor: RefreshLoop = Depends(get_monitor)):
    """
    开始监控

    立即完成第一轮采样并返回快照，之后按配置周期刷新。
    """
    return await monitor.start(req.url)


@router.post("/monitor/stop", response_model=Snapshot)
async def stop_monitoring(monitor: RefreshLoop = Depends(get_monitor)):
    """停止监控，返回最后一次快照"""
    return await monitor.stop()


@router.get("/monitor/snapshot", response_model=Snapshot)
async def get_snapshot(monitor: RefreshLoop = Depends(get_monitor)):
    return monitor.snapshot()
