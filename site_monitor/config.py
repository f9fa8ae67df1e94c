"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。
"""

from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SamplerConfig(BaseModel):
    """采样器配置"""
    variant: Literal["synthetic", "pagespeed"] = "synthetic"
    probe_delay: float = Field(default=0.05, ge=0, description="每个区域模拟探测耗时（秒）")
    seed: Optional[int] = Field(default=None, description="随机种子，None 表示不固定")


class MonitorConfig(BaseModel):
    """刷新循环配置"""
    interval: float = Field(default=5, gt=0, description="刷新周期（秒）")
    history_capacity: int = Field(default=20, ge=1, description="历史曲线保留点数")


class PageSpeedConfig(BaseModel):
    """外部 PageSpeed 报告配置"""
    endpoint: str = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    strategy: str = "mobile"
    timeout: float = Field(default=10, gt=0)
    failure_probability: float = Field(default=0.1, ge=0, le=1)
    history_capacity: int = Field(default=10, ge=1)
    api_key: Optional[str] = None


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """应用配置（完整配置）"""
    sampler: SamplerConfig = Field(default_factory=SamplerConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    pagespeed: PageSpeedConfig = Field(default_factory=PageSpeedConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EnvSettings(BaseSettings):
    """环境变量覆盖项（前缀 SITE_MONITOR_）"""

    model_config = SettingsConfigDict(env_prefix="SITE_MONITOR_")

    config_path: str = "config.yaml"
    pagespeed_api_key: Optional[str] = None
    log_level: Optional[str] = None


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 SITE_MONITOR_CONFIG_PATH
    3. 默认路径 config.yaml

    配置文件不存在时使用默认配置，环境变量中的 API Key 与日志级别最后覆盖。
    """
    env = EnvSettings()
    if config_path is None:
        config_path = env.config_path

    raw_config = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}

    if env.pagespeed_api_key:
        raw_config.setdefault("pagespeed", {})
        raw_config["pagespeed"]["api_key"] = env.pagespeed_api_key

    if env.log_level:
        raw_config.setdefault("logging", {})
        raw_config["logging"]["level"] = env.log_level

    return AppConfig(**raw_config)


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
