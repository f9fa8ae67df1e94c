"""
固定测量区域

模拟采样使用 5 个区域，报告派生采样使用 4 个大区。
"""

from typing import List

from .models import Region

SYNTHETIC_REGIONS: List[Region] = [
    Region(id="us-east", name="US East", lat=40.7128, lng=-74.0060),
    Region(id="us-west", name="US West", lat=37.7749, lng=-122.4194),
    Region(id="eu-west", name="EU West", lat=51.5074, lng=-0.1278),
    Region(id="ap-south", name="AP South", lat=1.3521, lng=103.8198),
    Region(id="ap-northeast", name="AP Northeast", lat=35.6762, lng=139.6503),
]

REPORT_REGIONS: List[Region] = [
    Region(id="us-east", name="North America", lat=39.0438, lng=-77.4874),
    Region(id="eu-west", name="Europe", lat=53.3498, lng=-6.2603),
    Region(id="ap-southeast", name="Asia Pacific", lat=1.3521, lng=103.8198),
    Region(id="sa-east", name="South America", lat=-23.5505, lng=-46.6333),
]


def regions_for_variant(variant: str) -> List[Region]:
    """按采样方式返回区域列表"""
    if variant == "pagespeed":
        return list(REPORT_REGIONS)
    return list(SYNTHETIC_REGIONS)
