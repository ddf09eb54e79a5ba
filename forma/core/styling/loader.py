from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from forma.core.config.settings import FormaSettings, parse_mapping_text
from forma.core.errors import ConfigurationError

from .models import StylingSystem

_log = logging.getLogger("forma.styling")

ResourceLoader = Callable[[str], Optional[Mapping[str, Any]]]

_STYLE_SUFFIXES = (".json", ".yaml", ".yml")


def deep_merge(a: Any, b: Any) -> Any:
    """Merge ``b`` over ``a``; nested maps merge, anything else is replaced by ``b``."""
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        out = dict(a)
        for k, v in b.items():
            out[k] = deep_merge(a[k], v) if k in a else v
        return out
    return b


def file_resource_loader(styles_dir: Path) -> ResourceLoader:
    """
    Loader reading <styles_dir>/<name>.json|.yaml|.yml.

    Missing systems resolve to None; unparseable files are skipped with a warning.
    """
    styles_dir = Path(styles_dir)

    def _load(name: str) -> Optional[Mapping[str, Any]]:
        for suffix in _STYLE_SUFFIXES:
            p = styles_dir / f"{name}{suffix}"
            if not p.exists():
                continue
            try:
                text = p.read_text(encoding="utf-8")
            except OSError as exc:
                _log.warning("Cannot read styling system %s: %s", p, exc)
                return None
            return parse_mapping_text(text, source=str(p))
        return None

    return _load


def _normalize_raw(name: str, raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    data = dict(raw or {})
    # legacy definitions call the element table "components"
    if "elements" not in data and isinstance(data.get("components"), Mapping):
        data["elements"] = data.pop("components")
    data.setdefault("name", name)
    return data


def _parents_of(raw: Mapping[str, Any]) -> List[str]:
    extends = raw.get("extends")
    if extends is None:
        return []
    if isinstance(extends, str):
        return [extends]
    return [str(e) for e in extends]


def _load_raw(
    name: str,
    load_resource: ResourceLoader,
    visiting: List[str],
    skip: frozenset,
) -> Dict[str, Any]:
    if name in visiting:
        raise ConfigurationError("Styling system cycle detected", cycle=[*visiting, name])

    raw = _normalize_raw(name, load_resource(name))
    merged: Dict[str, Any] = {}
    for parent in _parents_of(raw):
        if parent in skip:
            continue
        merged = deep_merge(merged, _load_raw(parent, load_resource, [*visiting, name], skip))
    merged = deep_merge(merged, raw)
    merged["name"] = name
    return merged


def load_styling_system(
    name: str,
    load_resource: ResourceLoader,
    *,
    skip_parents: Sequence[str] = (),
) -> StylingSystem:
    """
    Load a styling system, resolving ``extends`` depth-first (parents first, child wins).

    ``skip_parents`` names systems whose definitions must not be folded in
    (used when they are already present earlier in a stack). Their names still
    appear in ``extends``.

    Raises ConfigurationError with the full chain when ``extends`` loops back.
    """
    raw = _load_raw(name, load_resource, [], frozenset(skip_parents))
    try:
        return StylingSystem(**raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid styling system '{name}': {exc}") from exc


def detect_extension_overlap(stack: Sequence[str], systems: Sequence[StylingSystem]) -> List[Dict[str, Any]]:
    """Systems in the stack that extend a system placed earlier in the same stack."""
    overlaps: List[Dict[str, Any]] = []
    for idx, system in enumerate(systems):
        for parent in system.parents():
            if parent in stack[:idx]:
                overlaps.append({
                    "system": stack[idx],
                    "extends": parent,
                    "position_in_stack": list(stack).index(parent),
                })
    return overlaps


def load_styling_stack(
    stack: Sequence[str],
    load_resource: ResourceLoader,
    *,
    warn_on_overlap: bool = True,
    allow_stacking: bool = False,
    dedupe_extensions: bool = True,
) -> List[StylingSystem]:
    """
    Load every system in ``stack`` (order preserved).

    With ``dedupe_extensions`` a system extending one already earlier in the
    stack is reloaded without that parent folded in, so the parent's classes
    are emitted once, at the parent's position.
    """
    stack = list(stack)
    systems = [load_styling_system(name, load_resource) for name in stack]
    overlaps = detect_extension_overlap(stack, systems)

    if overlaps and warn_on_overlap and not allow_stacking:
        for o in overlaps:
            _log.warning(
                "Styling system '%s' extends '%s' which is already in the stack.%s",
                o["system"],
                o["extends"],
                " Extension will be deduplicated automatically." if dedupe_extensions
                else " This may cause duplicate classes.",
            )

    if overlaps and dedupe_extensions:
        for idx, name in enumerate(stack):
            earlier = [p for p in systems[idx].parents() if p in stack[:idx]]
            if earlier:
                systems[idx] = load_styling_system(name, load_resource, skip_parents=earlier)

    _log.debug("styling.stack loaded=%s overlaps=%s", stack, len(overlaps))
    return systems


def load_stack_from_settings(
    stack: Sequence[str],
    settings: FormaSettings,
    *,
    load_resource: Optional[ResourceLoader] = None,
    allow_stacking: bool = False,
) -> List[StylingSystem]:
    """``load_styling_stack`` with overlap handling and the styles directory taken from settings."""
    if load_resource is None:
        if not settings.styles_dir:
            raise ConfigurationError("No styles_dir configured and no resource loader given")
        load_resource = file_resource_loader(Path(settings.styles_dir))
    return load_styling_stack(
        stack,
        load_resource,
        warn_on_overlap=settings.warn_on_overlap,
        allow_stacking=allow_stacking,
        dedupe_extensions=settings.dedupe_extensions,
    )
