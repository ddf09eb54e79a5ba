from .classifier import classify_element_properties, classify_property, filter_by_confidence
from .models import Classification, ClassifiedProperties, Level, UsageStatistics
from .reconciliation import (
    MergeStrategy,
    ReconciliationResult,
    detect_changes,
    detect_conflicts,
    generate_diff_report,
    preview_reconciliation,
    reconcile,
)
from .statistics import build_usage_statistics

__all__ = [
    "classify_element_properties",
    "classify_property",
    "filter_by_confidence",
    "Classification",
    "ClassifiedProperties",
    "Level",
    "UsageStatistics",
    "MergeStrategy",
    "ReconciliationResult",
    "detect_changes",
    "detect_conflicts",
    "generate_diff_report",
    "preview_reconciliation",
    "reconcile",
    "build_usage_statistics",
]
