from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Set, Union

PropsValue = Union[str, int, float, bool, None, List[Any], "PropsMap"]
PropsMap = Dict[str, PropsValue]
Snapshot = Dict[str, PropsMap]


class Level(str, Enum):
    """Content hierarchy, broadest first. Folding runs global -> pages."""

    GLOBAL = "global"
    COMPONENTS = "components"
    SECTIONS = "sections"
    TEMPLATES = "templates"
    PAGES = "pages"


LEVEL_ORDER: List[str] = [lvl.value for lvl in Level]

# Keys that describe tree structure rather than styling/content.
STRUCTURAL_KEYS = frozenset({"type", "children", "content"})


@dataclass
class PropertyUsage:
    frequency: int = 0
    values: Set[Any] = field(default_factory=set)
    variance: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency,
            "values": sorted(self.values, key=repr),
            "variance": self.variance,
        }


@dataclass
class UsageStatistics:
    properties: Dict[str, PropertyUsage] = field(default_factory=dict)
    elements: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, Dict[str, PropertyUsage]] = field(default_factory=dict)

    def element_count(self, element_type: Any) -> int:
        return self.elements.get(element_type, 0)

    def usage(self, key: str, element_type: Any = None) -> PropertyUsage:
        """Per-type usage when the type was seen, otherwise usage across all elements."""
        per_type = self.by_type.get(element_type)
        if per_type is not None:
            return per_type.get(key) or PropertyUsage()
        return self.properties.get(key) or PropertyUsage()


@dataclass(frozen=True)
class Classification:
    level: str
    confidence: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "confidence": self.confidence, "reason": self.reason}


@dataclass
class ClassifiedProperties:
    buckets: Dict[str, PropsMap] = field(default_factory=lambda: {lvl: {} for lvl in LEVEL_ORDER})
    classifications: Dict[str, Classification] = field(default_factory=dict)

    def level_of(self, key: str) -> Union[str, None]:
        c = self.classifications.get(key)
        return c.level if c else None

    def confidence_of(self, key: str) -> Union[float, None]:
        c = self.classifications.get(key)
        return c.confidence if c else None
