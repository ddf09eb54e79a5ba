"""Assign a hierarchy level to each property of a flattened element population.

Used when rebuilding a multi-level project from flat HTML/JSX: properties that
recur with few distinct values are lifted to global or component level, while
one-off values stay on the page.

Rules are evaluated in order and the first match wins. The thresholds and
confidences are heuristics, not fitted values; they are kept as named
constants so they can be recalibrated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .models import (
    LEVEL_ORDER,
    Classification,
    ClassifiedProperties,
    Level,
    PropsMap,
    UsageStatistics,
)
from .statistics import element_properties

BASE_CLASS_MIN_RATIO = 0.8
GLOBAL_MIN_RATIO = 0.5
COMPONENT_MIN_RATIO = 0.3
CONSISTENT_MAX_UNIQUE = 3
HIGH_VARIANCE_UNIQUE_SHARE = 0.7

METADATA_CONFIDENCE = 1.0
TOKEN_CONFIDENCE = 0.95
BASE_CLASS_CONFIDENCE = 0.9
GLOBAL_CONFIDENCE = 0.8
COMPONENT_CONFIDENCE = 0.7
HIGH_VARIANCE_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.6


@dataclass(frozen=True)
class PropertyContext:
    key: str
    value: Any
    element_type: Any
    frequency: int
    frequency_ratio: float
    unique_values: int
    variance: float
    hinted_level: Optional[str] = None
    token_ref: Optional[str] = None

    @property
    def consistent(self) -> bool:
        return self.unique_values <= CONSISTENT_MAX_UNIQUE


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    predicate: Callable[[PropertyContext], bool]
    result: Callable[[PropertyContext], Classification]


def _fixed(level: Level, confidence: float, reason: Callable[[PropertyContext], str]):
    return lambda ctx: Classification(level=level.value, confidence=confidence, reason=reason(ctx))


DEFAULT_RULES: List[ClassificationRule] = [
    ClassificationRule(
        "metadata-hint",
        lambda ctx: ctx.hinted_level is not None,
        lambda ctx: Classification(
            level=ctx.hinted_level,
            confidence=METADATA_CONFIDENCE,
            reason="Explicit metadata from sync mode",
        ),
    ),
    ClassificationRule(
        "token-reference",
        lambda ctx: ctx.token_ref is not None,
        _fixed(Level.GLOBAL, TOKEN_CONFIDENCE, lambda ctx: f"Token reference: {ctx.token_ref}"),
    ),
    ClassificationRule(
        "base-class",
        lambda ctx: ctx.key == "class" and ctx.frequency_ratio >= BASE_CLASS_MIN_RATIO,
        _fixed(Level.COMPONENTS, BASE_CLASS_CONFIDENCE, lambda ctx: "Base class (present in 80%+ instances)"),
    ),
    ClassificationRule(
        "high-frequency-consistent",
        lambda ctx: ctx.frequency_ratio >= GLOBAL_MIN_RATIO and ctx.consistent,
        _fixed(
            Level.GLOBAL,
            GLOBAL_CONFIDENCE,
            lambda ctx: f"High frequency ({ctx.frequency_ratio * 100:.0f}%) "
                        f"with consistent value ({ctx.unique_values} unique)",
        ),
    ),
    ClassificationRule(
        "medium-frequency-consistent",
        lambda ctx: ctx.frequency_ratio >= COMPONENT_MIN_RATIO and ctx.consistent,
        _fixed(
            Level.COMPONENTS,
            COMPONENT_CONFIDENCE,
            lambda ctx: f"Medium frequency ({ctx.frequency_ratio * 100:.0f}%) with consistent value",
        ),
    ),
    ClassificationRule(
        "high-variance",
        lambda ctx: ctx.unique_values >= ctx.frequency * HIGH_VARIANCE_UNIQUE_SHARE,
        _fixed(
            Level.PAGES,
            HIGH_VARIANCE_CONFIDENCE,
            lambda ctx: f"High variance ({ctx.unique_values} unique values / {ctx.frequency} uses)",
        ),
    ),
    ClassificationRule(
        "fallback",
        lambda ctx: True,
        _fixed(Level.PAGES, FALLBACK_CONFIDENCE, lambda ctx: "Default classification (insufficient data)"),
    ),
]


def _hinted_level(metadata: Optional[Mapping[str, Any]], key: str) -> Optional[str]:
    sources = (metadata or {}).get("property_sources") or {}
    hint = sources.get(key)
    if isinstance(hint, Mapping):
        level = str(getattr(hint.get("level"), "value", hint.get("level")))
        return level if level in LEVEL_ORDER else None
    return None


def _token_ref(metadata: Optional[Mapping[str, Any]], key: str) -> Optional[str]:
    ref = ((metadata or {}).get("token_provenance") or {}).get(key)
    return str(ref) if ref else None


def build_property_context(
    key: str,
    value: Any,
    element_type: Any,
    stats: UsageStatistics,
    metadata: Optional[Mapping[str, Any]] = None,
) -> PropertyContext:
    usage = stats.usage(key, element_type)
    total = stats.element_count(element_type) or 1
    return PropertyContext(
        key=key,
        value=value,
        element_type=element_type,
        frequency=usage.frequency,
        frequency_ratio=usage.frequency / total,
        unique_values=len(usage.values),
        variance=usage.variance,
        hinted_level=_hinted_level(metadata, key),
        token_ref=_token_ref(metadata, key),
    )


def classify_property(
    key: str,
    value: Any,
    element_type: Any,
    stats: UsageStatistics,
    metadata: Optional[Mapping[str, Any]] = None,
    *,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> Classification:
    ctx = build_property_context(key, value, element_type, stats, metadata)
    for rule in rules:
        if rule.predicate(ctx):
            return rule.result(ctx)
    # an injected rule list without a catch-all
    return Classification(level=Level.PAGES.value, confidence=FALLBACK_CONFIDENCE, reason="No rule matched")


def classify_element_properties(
    element: Mapping[str, Any],
    stats: UsageStatistics,
    metadata: Optional[Mapping[str, Any]] = None,
    *,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> ClassifiedProperties:
    """Bucket every non-structural property of ``element`` by level, with a full ledger."""
    element_type = element.get("type")
    out = ClassifiedProperties()
    for key, value in element_properties(element).items():
        c = classify_property(key, value, element_type, stats, metadata, rules=rules)
        out.buckets.setdefault(c.level, {})[key] = value
        out.classifications[key] = c
    return out


def filter_by_level(classified: ClassifiedProperties, level: str) -> PropsMap:
    return dict(classified.buckets.get(str(getattr(level, "value", level)), {}))


def filter_by_confidence(classified: ClassifiedProperties, min_confidence: float) -> Dict[str, PropsMap]:
    """Level buckets keeping only properties classified with at least ``min_confidence``."""
    out: Dict[str, PropsMap] = {lvl: {} for lvl in LEVEL_ORDER}
    for key, c in classified.classifications.items():
        if c.confidence >= min_confidence:
            out.setdefault(c.level, {})[key] = classified.buckets[c.level][key]
    return out


def summarize_classifications(classified: ClassifiedProperties) -> Dict[str, Any]:
    by_level: Dict[str, int] = {}
    by_confidence = {"high": 0, "medium": 0, "low": 0}
    for c in classified.classifications.values():
        by_level[c.level] = by_level.get(c.level, 0) + 1
        if c.confidence >= 0.8:
            by_confidence["high"] += 1
        elif c.confidence >= 0.6:
            by_confidence["medium"] += 1
        else:
            by_confidence["low"] += 1
    return {
        "total": len(classified.classifications),
        "by_level": by_level,
        "by_confidence": by_confidence,
    }


def format_classification_report(classified: ClassifiedProperties) -> str:
    """Markdown report of a classification run."""
    summary = summarize_classifications(classified)
    lines = [
        "# Property Classification Report",
        "",
        "## Summary",
        f"- **Total properties**: {summary['total']}",
    ]
    for lvl in LEVEL_ORDER:
        lines.append(f"- **{lvl.capitalize()}**: {summary['by_level'].get(lvl, 0)}")
    lines += [
        "",
        "## Confidence Distribution",
        f"- **High (>=80%)**: {summary['by_confidence']['high']}",
        f"- **Medium (60-79%)**: {summary['by_confidence']['medium']}",
        f"- **Low (<60%)**: {summary['by_confidence']['low']}",
        "",
        "## Detailed Classifications",
        "",
    ]
    ordered = sorted(classified.classifications.items(), key=lambda kv: (kv[1].level, kv[1].confidence, kv[0]))
    for key, c in ordered:
        lines.append(f"- `{key}` -> **{c.level}** ({c.confidence * 100:.0f}% confidence)")
        lines.append(f"  - {c.reason}")
    return "\n".join(lines) + "\n"
