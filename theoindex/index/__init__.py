"""Index module - daily points, gap-fill recovery and composition weights."""

from .models import AssetPerformance, Constituent, DailyReturn, GapFillResult, WeightingScheme
from .calendar import MarketCalendar
from .points import IndexPointsEngine
from .gapfill import GapFillService
from .performance import calculate_asset_performance

__all__ = [
    "AssetPerformance",
    "Constituent",
    "DailyReturn",
    "GapFillResult",
    "WeightingScheme",
    "MarketCalendar",
    "IndexPointsEngine",
    "GapFillService",
    "calculate_asset_performance",
]
