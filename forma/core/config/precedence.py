"""Configuration precedence resolution.

Every configuration option is looked up across an ordered chain of scopes,
highest first:

  1. element-override      per-instance ``styling_options`` in element props
  2. project               project config ``styling`` section
  3. styling-global        styling system ``styling_config``
  4. component-specific    ``components[<type>].styling_config`` in the styling system
  5. default               compiler / settings defaults

A scope wins when it *contains* the key, so an override of ``False`` or ``0``
beats a lower scope's truthy value.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Scope(str, Enum):
    ELEMENT_OVERRIDE = "element-override"
    PROJECT = "project"
    STYLING_GLOBAL = "styling-global"
    COMPONENT_SPECIFIC = "component-specific"
    DEFAULT = "default"


ScopeSources = Mapping[str, Mapping[str, Any]]


class PrecedenceConfig(BaseModel):
    """Immutable precedence chain plus option defaults, passed into every resolver call."""

    model_config = ConfigDict(frozen=True)

    scope_order: Tuple[str, ...] = tuple(s.value for s in Scope)
    option_defaults: Dict[str, Any] = Field(default_factory=dict)


# Hardcoded fallbacks for the common styling options; settings may overlay them.
STYLING_OPTION_DEFAULTS: Dict[str, Any] = {
    "apply_base_when_explicit": True,
    "dedupe_classes": True,
    "blank_class_to_none": True,
    "record_duplicate_classes": False,
    "merge_explicit_style": False,
    "only_extract_explicit": False,
    "class_conflict_warnings": False,
    "allow_stacking": False,
    "record_provenance": False,
}

COMMON_STYLING_OPTIONS: List[str] = list(STYLING_OPTION_DEFAULTS.keys())

DEFAULT_PRECEDENCE = PrecedenceConfig(option_defaults=STYLING_OPTION_DEFAULTS)


def _scope_name(scope: Any) -> str:
    return scope.value if isinstance(scope, Scope) else str(scope)


def _normalize_sources(scope_sources: Optional[ScopeSources]) -> Dict[str, Mapping[str, Any]]:
    out: Dict[str, Mapping[str, Any]] = {}
    for scope, source in (scope_sources or {}).items():
        if isinstance(source, Mapping):
            out[_scope_name(scope)] = source
    return out


def resolve_option(
    option_key: str,
    scope_sources: Optional[ScopeSources],
    *,
    default: Any = None,
    config: PrecedenceConfig = DEFAULT_PRECEDENCE,
) -> Any:
    """Value from the highest-ranked scope where ``option_key`` is present, else ``default``.

    Scope names that are not part of ``config.scope_order`` are ignored.
    """
    sources = _normalize_sources(scope_sources)
    for scope in config.scope_order:
        source = sources.get(scope)
        if source is not None and option_key in source:
            return source[option_key]
    return default


def resolve_options(
    option_keys: Iterable[str],
    scope_sources: Optional[ScopeSources],
    *,
    defaults: Optional[Mapping[str, Any]] = None,
    config: PrecedenceConfig = DEFAULT_PRECEDENCE,
) -> Dict[str, Any]:
    defaults = config.option_defaults if defaults is None else defaults
    return {
        key: resolve_option(key, scope_sources, default=defaults.get(key), config=config)
        for key in option_keys
    }


def build_precedence_context(
    option_keys: Iterable[str],
    scope_sources: Optional[ScopeSources],
    *,
    defaults: Optional[Mapping[str, Any]] = None,
    config: PrecedenceConfig = DEFAULT_PRECEDENCE,
) -> Dict[str, Dict[str, Any]]:
    """
    Debug view of the chain: for every option, the value seen at every scope and the winner.

    {option: {"sources": [{"scope": ..., "value": ..., "present": bool}, ...],
              "resolved": value,
              "source": winning scope name ("default" when no scope had the key)}}
    """
    sources = _normalize_sources(scope_sources)
    defaults = config.option_defaults if defaults is None else defaults

    context: Dict[str, Dict[str, Any]] = {}
    for key in option_keys:
        entries: List[Dict[str, Any]] = []
        winner: Optional[str] = None
        resolved = defaults.get(key)
        for scope in config.scope_order:
            source = sources.get(scope) or {}
            present = key in source
            entries.append({"scope": scope, "value": source.get(key), "present": present})
            if present and winner is None:
                winner = scope
                resolved = source[key]
        context[key] = {
            "sources": entries,
            "resolved": resolved,
            "source": winner or Scope.DEFAULT.value,
        }
    return context


def precedence_report(context: Mapping[str, Mapping[str, Any]]) -> str:
    blocks: List[str] = []
    for key in sorted(context.keys()):
        entry = context[key]
        lines = [f"{key} = {entry['resolved']!r} (from {entry['source']})"]
        for src in entry["sources"]:
            shown = f"{src['value']!r} (set)" if src["present"] else "not set"
            lines.append(f"  {src['scope']}: {shown}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def scope_sources_for_element(
    element_props: Optional[Mapping[str, Any]],
    project_config: Optional[Mapping[str, Any]],
    styling_config: Optional[Mapping[str, Any]],
    element_type: Optional[str],
    *,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Mapping[str, Any]]:
    """Build the five-scope mapping from the raw element/project/styling shapes."""
    element_props = element_props or {}
    project_config = project_config or {}
    styling_config = styling_config or {}

    components = styling_config.get("components") or styling_config.get("elements") or {}
    component = components.get(element_type) if isinstance(components, Mapping) and element_type else None

    return {
        Scope.ELEMENT_OVERRIDE.value: element_props.get("styling_options") or {},
        Scope.PROJECT.value: project_config.get("styling") or {},
        Scope.STYLING_GLOBAL.value: styling_config.get("styling_config") or {},
        Scope.COMPONENT_SPECIFIC.value: (component or {}).get("styling_config") or {},
        Scope.DEFAULT.value: dict(defaults or {}),
    }


def get_styling_options(
    element_props: Optional[Mapping[str, Any]],
    project_config: Optional[Mapping[str, Any]],
    styling_config: Optional[Mapping[str, Any]],
    element_type: Optional[str],
    settings_defaults: Optional[Mapping[str, Any]] = None,
    *,
    config: PrecedenceConfig = DEFAULT_PRECEDENCE,
) -> Dict[str, Any]:
    """Resolve all common styling options for one element."""
    defaults: Dict[str, Any] = {**config.option_defaults, **(settings_defaults or {})}
    sources = scope_sources_for_element(
        element_props, project_config, styling_config, element_type, defaults=defaults
    )
    return resolve_options(COMMON_STYLING_OPTIONS, sources, defaults=defaults, config=config)


def override_element_option(element_props: Mapping[str, Any], option_key: str, value: Any) -> Dict[str, Any]:
    out = dict(element_props)
    out["styling_options"] = {**(element_props.get("styling_options") or {}), option_key: value}
    return out


def merge_element_overrides(element_props: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(element_props)
    out["styling_options"] = {**(element_props.get("styling_options") or {}), **overrides}
    return out
