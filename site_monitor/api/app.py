"""
FastAPI 应用配置

配置 CORS、路由注册，以及关闭时停止刷新循环。
"""

import inspect
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_config
from .dependencies import get_monitor
from .routers import analysis, monitor

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    创建 FastAPI 应用实例

    配置：
    - CORS 中间件
    - API 路由
    """
    config = get_config()

    app = FastAPI(
        title="Site Monitor",
        description="多区域网站性能采样与统计",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(monitor.router)
    app.include_router(analysis.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Site Monitor starting up...")

    @app.on_event("shutdown")
    async def shutdown_event():
        # 依赖覆盖时以覆盖后的实例为准
        provider = app.dependency_overrides.get(get_monitor, get_monitor)
        monitor_loop = provider()
        if inspect.isawaitable(monitor_loop):
            monitor_loop = await monitor_loop
        await monitor_loop.stop()
        logger.info("Site Monitor shutting down...")

    return app
