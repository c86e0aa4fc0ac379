"""Scheduling: which layout should be on screen right now."""

from .configuration_cache import ConfigurationCache
from .engine import SchedulingEngine
from .layout_transformer import ActiveLayout, RegionLayout, to_layout
from .preloader import AssetCache, NullAssetCache, preload_layout_media
from .recurrence import (
    CroniterRecurrenceMath,
    RecurrenceEvaluator,
    RecurrenceExpression,
    RecurrenceMath,
    parse_expression,
)
from .selector import ScheduleFire, ScheduleSelector

__all__ = [
    "ActiveLayout",
    "AssetCache",
    "ConfigurationCache",
    "CroniterRecurrenceMath",
    "NullAssetCache",
    "RecurrenceEvaluator",
    "RecurrenceExpression",
    "RecurrenceMath",
    "RegionLayout",
    "ScheduleFire",
    "ScheduleSelector",
    "SchedulingEngine",
    "parse_expression",
    "preload_layout_media",
    "to_layout",
]
