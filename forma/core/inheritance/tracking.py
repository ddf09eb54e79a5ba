"""Provenance tracking for resolved properties.

Records, per property, whether the final value was set explicitly on the
element or inherited from a hierarchy level. Code generators use this to emit
only explicitly-set CSS (``only_extract_explicit``) instead of repeating
inherited values inline.

One tracker per compilation pass; a tracker must not be shared by concurrent
passes writing the same keys.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from forma.core.hierarchy.models import PropsMap


class SourceType(str, Enum):
    EXPLICIT = "explicit"
    INHERITED = "inherited"


EXPLICIT_LEVEL = "explicit"


@dataclass(frozen=True)
class PropertySource:
    property: str
    value: Any
    source_type: SourceType
    source_level: str
    source_file: Optional[str] = None
    overrides: Optional[Dict[str, Any]] = None


class PropertyTracker:
    def __init__(self) -> None:
        self._sources: Dict[str, PropertySource] = {}

    def track(
        self,
        key: str,
        value: Any,
        source_type: SourceType,
        source_level: str,
        *,
        source_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> PropertySource:
        source = PropertySource(
            property=key,
            value=value,
            source_type=SourceType(source_type),
            source_level=str(getattr(source_level, "value", source_level)),
            source_file=source_file,
            overrides=overrides,
        )
        self._sources[key] = source
        return source

    def get(self, key: str) -> Optional[PropertySource]:
        return self._sources.get(key)

    def is_explicit(self, key: str) -> bool:
        src = self._sources.get(key)
        return src is not None and src.source_type == SourceType.EXPLICIT

    def explicit_properties(self) -> List[PropertySource]:
        return [s for s in self._sources.values() if s.source_type == SourceType.EXPLICIT]

    def inherited_properties(self) -> List[PropertySource]:
        return [s for s in self._sources.values() if s.source_type == SourceType.INHERITED]

    def all_tracked(self) -> List[PropertySource]:
        return list(self._sources.values())

    def forget_nested(self, key: str) -> None:
        """Drop records under ``key.`` once ``key`` has been replaced as a whole."""
        prefix = f"{key}."
        for tracked in [k for k in self._sources if k.startswith(prefix)]:
            del self._sources[tracked]

    def __len__(self) -> int:
        return len(self._sources)


def merge_with_tracking(
    lower: Mapping[str, Any],
    higher: Mapping[str, Any],
    tracker: Optional[PropertyTracker],
    source_level: str,
    source_type: SourceType,
    *,
    _prefix: str = "",
) -> PropsMap:
    """
    Deep-merge ``higher`` over ``lower``, recording every key written from ``higher``.

    Nested maps on both sides are merged recursively; any other combination is
    a full overwrite by ``higher``. Each written key is tracked with its merged
    value, nested keys under dotted paths (``border.color``). A full overwrite
    drops the stale dotted records below the replaced key.
    """
    merged: PropsMap = dict(lower)
    for key, value in higher.items():
        path = f"{_prefix}{key}"
        previous = lower.get(key)

        if isinstance(previous, Mapping) and isinstance(value, Mapping):
            merged_value: Any = merge_with_tracking(
                previous, value, tracker, source_level, source_type, _prefix=f"{path}."
            )
        else:
            merged_value = value
            if tracker is not None:
                tracker.forget_nested(path)

        merged[key] = merged_value
        if tracker is not None:
            overrides = None
            if key in lower and previous != value:
                overrides = {"previous_value": previous}
            tracker.track(path, merged_value, source_type, source_level, overrides=overrides)
    return merged


def resolve_with_tracking(
    ordered_levels: Sequence[Tuple[str, Mapping[str, Any]]],
    explicit_props: Optional[Mapping[str, Any]],
    tracker: Optional[PropertyTracker],
) -> PropsMap:
    """Fold ``(level, props)`` pairs low->high as inherited, then apply explicit props."""
    inherited: PropsMap = {}
    for level, data in ordered_levels:
        inherited = merge_with_tracking(inherited, data or {}, tracker, level, SourceType.INHERITED)
    return merge_with_tracking(inherited, explicit_props or {}, tracker, EXPLICIT_LEVEL, SourceType.EXPLICIT)


# --------------------------------------------------------------------------------------
# CSS extraction
# --------------------------------------------------------------------------------------

CSS_PROPERTIES = frozenset({
    "background", "background-color", "color", "font-size", "font-weight", "font-family",
    "padding", "padding-top", "padding-right", "padding-bottom", "padding-left",
    "margin", "margin-top", "margin-right", "margin-bottom", "margin-left",
    "border", "border-color", "border-width", "border-radius",
    "width", "height", "min-width", "min-height", "max-width", "max-height",
    "display", "flex-direction", "justify-content", "align-items",
    "position", "top", "right", "bottom", "left",
    "z-index", "opacity", "transform", "transition",
})


def filter_explicit_properties(
    props: Mapping[str, Any],
    tracker: Optional[PropertyTracker],
    *,
    only_extract_explicit: bool = False,
    always_extract: Iterable[str] = (),
    css_properties_only: bool = True,
) -> PropsMap:
    always = set(always_extract)
    out: PropsMap = {}
    for key, value in props.items():
        if css_properties_only and key not in CSS_PROPERTIES:
            continue
        if only_extract_explicit and tracker is not None:
            if not (tracker.is_explicit(key) or key in always):
                continue
        out[key] = value
    return out


def extraction_preview(
    props: Mapping[str, Any],
    tracker: Optional[PropertyTracker],
    *,
    only_extract_explicit: bool = False,
    always_extract: Iterable[str] = (),
) -> Dict[str, Any]:
    extracted = filter_explicit_properties(
        props, tracker, only_extract_explicit=only_extract_explicit, always_extract=always_extract
    )
    all_css = filter_explicit_properties(props, tracker, only_extract_explicit=False)
    excluded = {k: v for k, v in all_css.items() if k not in extracted}
    return {
        "extracted": extracted,
        "excluded": excluded,
        "extraction_mode": "explicit-only" if only_extract_explicit else "all",
        "total_css_props": len(all_css),
        "extracted_count": len(extracted),
        "excluded_count": len(excluded),
    }


def attach_property_metadata(props: Mapping[str, Any], tracker: Optional[PropertyTracker]) -> PropsMap:
    if tracker is None:
        return dict(props)
    out = dict(props)
    meta = dict(out.get("meta") or {})
    meta["property_sources"] = {
        src.property: {
            "source_type": src.source_type.value,
            "source_level": src.source_level,
            "source_file": src.source_file,
        }
        for src in tracker.all_tracked()
    }
    out["meta"] = meta
    return out


def property_source_report(tracker: PropertyTracker) -> str:
    all_props = sorted(tracker.all_tracked(), key=lambda s: s.property)
    by_level: Dict[str, int] = defaultdict(int)
    for src in all_props:
        by_level[src.source_level] += 1

    lines = [
        "=== PROPERTY SOURCE REPORT ===",
        f"Total Properties: {len(all_props)}",
        f"Explicit: {len(tracker.explicit_properties())}",
        f"Inherited: {len(tracker.inherited_properties())}",
        "",
        "By Level:",
    ]
    lines += [f"  {level}: {n} properties" for level, n in sorted(by_level.items())]
    lines += ["", "Explicit Properties:"]
    lines += [f"  {s.property} = {s.value!r}" for s in all_props if s.source_type == SourceType.EXPLICIT]
    lines += ["", "Inherited Properties:"]
    lines += [
        f"  {s.property} = {s.value!r} (from {s.source_level})"
        for s in all_props
        if s.source_type == SourceType.INHERITED
    ]
    return "\n".join(lines) + "\n"


def create_tracker_if_needed(context: Mapping[str, Any]) -> Optional[PropertyTracker]:
    opts = context.get("styling_options") or {}
    debug = context.get("debug") or {}
    if opts.get("only_extract_explicit") or opts.get("track_property_sources") or debug.get("track_properties"):
        return PropertyTracker()
    return None


def merge_styles(explicit: Optional[str], resolved: Optional[str]) -> Optional[str]:
    """Join two inline style strings, leaving at most one trailing semicolon."""
    parts = []
    for s in (explicit, resolved):
        if s is None:
            continue
        s = str(s).strip().rstrip(";").rstrip()
        if s:
            parts.append(s)
    if not parts:
        return None
    return "; ".join(parts) + ";"
