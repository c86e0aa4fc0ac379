"""Domain value types for configurations, schedules, regions and media."""

from .entities import (
    Configuration,
    MediaDescriptor,
    MediaType,
    Region,
    Schedule,
)

__all__ = [
    "Configuration",
    "MediaDescriptor",
    "MediaType",
    "Region",
    "Schedule",
]
