"""
Site Monitor - 多区域网站性能监控

负责：
- 按区域采样目标 URL 的加载耗时（模拟或基于 PageSpeed 报告派生）
- 计算 mean/min/max/p95 汇总统计
- 每 5s 刷新一次，维护有界历史曲线
- 提供 REST API 给前端
"""

__version__ = "1.0.0"
