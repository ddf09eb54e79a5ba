"""Compose the final class list for an element from a stack of styling systems.

Output order, before deduplication:

  system[0] base, system[0] variants (declared dimension order),
  system[1] base, system[1] variants, ...,
  explicit classes

Deduplication keeps the first occurrence of each class name; every
occurrence is still recorded in the provenance map.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from forma.core.config.settings import DEFAULT_VARIANT_ORDER

from .diagnostics import detect_duplicate_classes
from .models import ClassAggregation, ClassContribution, ContributionSource, ElementStyles, StylingSystem

_log = logging.getLogger("forma.styling")


def classes_to_seq(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        out: List[str] = []
        for v in value:
            out.extend(classes_to_seq(v))
        return out
    if isinstance(value, str):
        return value.split()
    return [str(value)]


def _variant_classes(variants: Mapping[str, Any], dimension: str, value: Any) -> Any:
    variant_def = variants.get(dimension)
    if isinstance(variant_def, Mapping):
        if value in variant_def:
            return variant_def[value]
        return variant_def.get(str(value))
    # legacy flat shape: {"variants": {"primary": [...]}}
    if dimension == "variant" and variant_def is None:
        flat = variants.get(value) if isinstance(value, str) else None
        if flat is not None and not isinstance(flat, Mapping):
            return flat
    return None


def collect_variant_contributions(
    styles: ElementStyles,
    resolved_props: Mapping[str, Any],
    system_name: str,
    *,
    variant_order: Optional[Sequence[str]] = None,
) -> List[ClassContribution]:
    dimensions = styles.variant_order or list(variant_order or DEFAULT_VARIANT_ORDER)
    out: List[ClassContribution] = []
    for dimension in dimensions:
        value = resolved_props.get(dimension)
        if value is None:
            continue
        for cls in classes_to_seq(_variant_classes(styles.variants, dimension, value)):
            out.append(ClassContribution(
                class_name=cls,
                source=ContributionSource.VARIANT,
                system=system_name,
                dimension=dimension,
                value=value,
            ))
    return out


def collect_contributions(
    element_type: str,
    systems: Sequence[StylingSystem],
    resolved_props: Mapping[str, Any],
    *,
    variant_order: Optional[Sequence[str]] = None,
) -> List[ClassContribution]:
    contributions: List[ClassContribution] = []
    for system in systems:
        styles = system.element(element_type)
        if styles is None:
            continue
        for cls in classes_to_seq(styles.base):
            contributions.append(ClassContribution(
                class_name=cls, source=ContributionSource.BASE, system=system.name
            ))
        contributions.extend(
            collect_variant_contributions(styles, resolved_props, system.name, variant_order=variant_order)
        )

    for cls in classes_to_seq(resolved_props.get("class")):
        contributions.append(ClassContribution(class_name=cls, source=ContributionSource.EXPLICIT))
    return contributions


def aggregate_classes(contributions: Iterable[ClassContribution], *, dedupe: bool = True) -> ClassAggregation:
    agg = ClassAggregation()
    seen = set()
    for c in contributions:
        agg.provenance.setdefault(c.class_name, []).append(c)
        if dedupe and c.class_name in seen:
            continue
        seen.add(c.class_name)
        agg.order.append(c.class_name)
    return agg


def _apply_contributions(
    props: Mapping[str, Any],
    element_type: str,
    systems_count: int,
    contributions: Sequence[ClassContribution],
    *,
    dedupe: bool,
    record_provenance: bool,
) -> Dict[str, Any]:
    agg = aggregate_classes(contributions, dedupe=dedupe)

    out = dict(props)
    if agg.order:
        out["class"] = agg.class_string
    if record_provenance:
        meta = dict(out.get("meta") or {})
        meta["class_provenance"] = agg.provenance_dict()
        out["meta"] = meta

    _log.debug(
        "styling.apply element=%s systems=%s contributions=%s classes=%s",
        element_type,
        systems_count,
        len(contributions),
        len(agg.order),
    )
    return out


def apply_styling_from_stack(
    props: Mapping[str, Any],
    element_type: str,
    systems: Sequence[StylingSystem],
    resolved_props: Mapping[str, Any],
    *,
    dedupe: bool = True,
    record_provenance: bool = False,
    variant_order: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Returns a copy of ``props`` with ``class`` set to the aggregated class string.

    ``class`` is only written when the result is non-empty. With
    ``record_provenance`` the class -> contributions map is attached under
    ``meta.class_provenance``.
    """
    contributions = collect_contributions(element_type, systems, resolved_props, variant_order=variant_order)
    return _apply_contributions(
        props,
        element_type,
        len(systems),
        contributions,
        dedupe=dedupe,
        record_provenance=record_provenance,
    )


def apply_styling_with_options(
    props: Mapping[str, Any],
    element_type: str,
    systems: Sequence[StylingSystem],
    resolved_props: Mapping[str, Any],
    styling_options: Mapping[str, Any],
    *,
    variant_order: Optional[Sequence[str]] = None,
) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Apply the stack using options resolved by the precedence chain.

    Returns (props, warnings). Duplicate-class warnings are only produced when
    ``record_duplicate_classes`` is set.
    """
    contributions = collect_contributions(element_type, systems, resolved_props, variant_order=variant_order)
    out = _apply_contributions(
        props,
        element_type,
        len(systems),
        contributions,
        dedupe=bool(styling_options.get("dedupe_classes", True)),
        record_provenance=bool(styling_options.get("record_provenance", False)),
    )

    warnings: List[Dict[str, Any]] = []
    if styling_options.get("record_duplicate_classes"):
        warnings = detect_duplicate_classes([[c.class_name for c in contributions]])

    if styling_options.get("blank_class_to_none", True) and not str(out.get("class") or "").strip():
        out.pop("class", None)
    return out, warnings
