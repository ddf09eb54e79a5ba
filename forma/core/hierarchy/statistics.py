"""Usage statistics over a flattened element tree.

Accepts the shapes produced by the HTML/JSX parsers:

  {"type": "button", "background": "#fff", "children": [...]}   element map
  ["button", {"background": "#fff"}, child, ...]                 hiccup list
  {"page": {"content": [...]}}                                   container map
  [elem, elem, ...]                                              plain list
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Mapping

from .models import STRUCTURAL_KEYS, PropertyUsage, UsageStatistics

CHILD_KEYS = ("children", "content")


def _is_hiccup(node: Any) -> bool:
    if not isinstance(node, (list, tuple)) or not node or not isinstance(node[0], str):
        return False
    return len(node) == 1 or isinstance(node[1], (dict, list, tuple))


def _iter_children(value: Any) -> Iterator[Dict[str, Any]]:
    # a children list holds nodes, it is never a hiccup element itself
    if isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_elements(item)
    elif isinstance(value, Mapping):
        yield from _iter_elements(value)


def _iter_elements(node: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(node, Mapping) and "type" in node:
        yield dict(node)
        for key in CHILD_KEYS:
            yield from _iter_children(node.get(key))
    elif _is_hiccup(node):
        tag = node[0]
        rest = list(node[1:])
        props = rest.pop(0) if rest and isinstance(rest[0], Mapping) else {}
        yield {**props, "type": tag}
        for child in rest:
            yield from _iter_elements(child)
    elif isinstance(node, Mapping):
        for k, v in node.items():
            if k in CHILD_KEYS:
                yield from _iter_children(v)
            else:
                yield from _iter_elements(v)
    elif isinstance(node, (list, tuple)):
        for item in node:
            yield from _iter_elements(item)


def extract_elements(tree: Any) -> List[Dict[str, Any]]:
    """All elements in document order (parents before children)."""
    return list(_iter_elements(tree))


def element_properties(element: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in element.items() if k not in STRUCTURAL_KEYS}


def hashable_value(value: Any) -> Any:
    """Stable hashable form for set membership; nested maps/lists become canonical JSON."""
    if isinstance(value, (dict, list, tuple, set)):
        return json.dumps(value, sort_keys=True, default=str)
    return value


def _record(usage: Dict[str, PropertyUsage], key: str, value: Any) -> None:
    u = usage.setdefault(key, PropertyUsage())
    u.frequency += 1
    u.values.add(hashable_value(value))


def _finish_variance(usage: Dict[str, PropertyUsage]) -> None:
    for u in usage.values():
        u.variance = (len(u.values) / u.frequency) if u.frequency else 0.0


def build_usage_statistics(tree: Any) -> UsageStatistics:
    """
    Count element instances per type and, per property key, its frequency,
    distinct values and variance (distinct / occurrences, 0.0 when unused).

    Property usage is kept both across all elements and per element type.
    """
    stats = UsageStatistics()
    for elem in _iter_elements(tree):
        elem_type = elem.get("type")
        stats.elements[elem_type] = stats.elements.get(elem_type, 0) + 1
        per_type = stats.by_type.setdefault(elem_type, {})
        for key, value in element_properties(elem).items():
            _record(stats.properties, key, value)
            _record(per_type, key, value)

    _finish_variance(stats.properties)
    for usage in stats.by_type.values():
        _finish_variance(usage)
    return stats
