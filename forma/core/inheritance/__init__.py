from .tracking import (
    PropertySource,
    PropertyTracker,
    SourceType,
    merge_with_tracking,
    resolve_with_tracking,
)

__all__ = [
    "PropertySource",
    "PropertyTracker",
    "SourceType",
    "merge_with_tracking",
    "resolve_with_tracking",
]
