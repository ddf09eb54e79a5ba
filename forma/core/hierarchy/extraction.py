"""In-memory assembly of per-level project data from classified elements.

The file writer (out of this package) turns these structures into one file per
hierarchy level; naming and layout on disk are its concern.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .classifier import classify_element_properties
from .models import ClassifiedProperties, Level, PropsMap, UsageStatistics
from .statistics import build_usage_statistics, element_properties, extract_elements


@dataclass
class ClassifiedElement:
    type: Any
    properties: PropsMap
    classified: ClassifiedProperties

    def bucket(self, level: Level) -> PropsMap:
        return self.classified.buckets.get(level.value, {})


def classify_tree(
    tree: Any,
    metadata: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Tuple[UsageStatistics, List[ClassifiedElement]]:
    """
    Build statistics for ``tree`` and classify every element in it.

    ``metadata`` is keyed by element ``id``; elements without an id (or
    without an entry) are classified from statistics alone.
    """
    stats = build_usage_statistics(tree)
    out: List[ClassifiedElement] = []
    for elem in extract_elements(tree):
        elem_meta = (metadata or {}).get(elem.get("id")) if elem.get("id") is not None else None
        out.append(ClassifiedElement(
            type=elem.get("type"),
            properties=element_properties(elem),
            classified=classify_element_properties(elem, stats, elem_meta),
        ))
    return stats, out


def extract_components(elements: Sequence[ClassifiedElement]) -> Dict[Any, Dict[str, Any]]:
    """
    {type: {"base": {...}, "variants": {variant: {...}}}} from component-level properties.

    Later instances of a type override earlier ones key by key.
    """
    components: Dict[Any, Dict[str, Any]] = {}
    for elem in elements:
        entry = components.setdefault(elem.type, {"base": {}})
        component_props = elem.bucket(Level.COMPONENTS)
        entry["base"].update(component_props)
        variant = elem.properties.get("variant")
        if variant is not None:
            entry.setdefault("variants", {})[variant] = dict(component_props)
    return components


def extract_global_defaults(token_registry: Mapping[str, Any], elements: Sequence[ClassifiedElement]) -> Dict[str, Any]:
    defaults: Dict[Any, PropsMap] = {}
    for elem in elements:
        global_props = elem.bucket(Level.GLOBAL)
        if global_props:
            defaults.setdefault(elem.type, {}).update(global_props)
    return {"tokens": dict(token_registry), "defaults": defaults}


def extract_page_instance(elements: Sequence[ClassifiedElement]) -> Dict[str, List[Any]]:
    content: List[Any] = []
    for elem in elements:
        page_props = dict(elem.bucket(Level.PAGES))
        variant = elem.properties.get("variant")
        if page_props:
            if variant is not None:
                page_props["variant"] = variant
            content.append([elem.type, page_props])
        else:
            content.append([elem.type])
    return {"content": content}


def extract_pages(page_definitions: Sequence[Mapping[str, Any]]) -> Dict[str, Dict[str, List[Any]]]:
    """``[{"name": ..., "elements": [ClassifiedElement, ...]}]`` -> {name: {"content": [...]}}."""
    return {page["name"]: extract_page_instance(page.get("elements") or []) for page in page_definitions}
