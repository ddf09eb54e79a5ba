from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


ClassList = Union[str, List[str], None]


class ElementStyles(BaseModel):
    base: ClassList = None
    # {dimension: {value: classes}} or legacy flat {value: classes} for "variant"
    variants: Dict[str, Any] = Field(default_factory=dict)
    variant_order: Optional[List[str]] = None
    styling_config: Dict[str, Any] = Field(default_factory=dict)


class StylingSystem(BaseModel):
    name: str
    elements: Dict[str, ElementStyles] = Field(default_factory=dict)
    extends: Union[str, List[str], None] = None
    styling_config: Dict[str, Any] = Field(default_factory=dict)

    def parents(self) -> List[str]:
        if self.extends is None:
            return []
        if isinstance(self.extends, str):
            return [self.extends]
        return list(self.extends)

    def element(self, element_type: str) -> Optional[ElementStyles]:
        return self.elements.get(element_type)


class ContributionSource(str, Enum):
    BASE = "base"
    VARIANT = "variant"
    EXPLICIT = "explicit"


@dataclass(frozen=True)
class ClassContribution:
    class_name: str
    source: ContributionSource
    system: Optional[str] = None
    dimension: Optional[str] = None
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"source": self.source.value}
        if self.system is not None:
            out["system"] = self.system
        if self.dimension is not None:
            out["dimension"] = self.dimension
            out["value"] = self.value
        return out


@dataclass
class ClassAggregation:
    order: List[str] = field(default_factory=list)
    provenance: Dict[str, List[ClassContribution]] = field(default_factory=dict)

    @property
    def class_string(self) -> str:
        return " ".join(self.order)

    def provenance_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {cls: [c.to_dict() for c in contribs] for cls, contribs in self.provenance.items()}
