"""
Site Monitor 主程序入口

使用方式:
    python -m site_monitor
    或
    site-monitor
"""

from .main import cli

if __name__ == "__main__":
    cli()
