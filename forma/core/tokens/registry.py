"""Design-token registry reconstruction and reverse lookup.

Imports of flattened HTML/JSX carry literal values only. This module
re-derives a token tree from them: values bound by preserved round-trip
metadata (``"$colors.primary"``) are taken as-is, and frequent unlabeled
literals get deterministic synthetic names. Reverse lookup maps a literal back
to a token path, with lower confidence when several tokens share a value.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from forma.core.hierarchy.statistics import hashable_value
from forma.core.observability.metrics import inc_token_lookup

_log = logging.getLogger("forma.tokens")

TokenPath = Tuple[str, ...]

UNIQUE_MATCH_CONFIDENCE = 0.95
COLLISION_CONFIDENCE = 0.7
NO_MATCH_CONFIDENCE = 0.0
SUBSTITUTION_MIN_CONFIDENCE = 0.7


@dataclass(frozen=True)
class TokenPattern:
    regex: "re.Pattern[str]"
    min_frequency: int
    category: TokenPath


TOKEN_PATTERNS: Dict[str, TokenPattern] = {
    "color": TokenPattern(
        re.compile(r"^(#[0-9a-fA-F]{3,8}|rgba?\([^)]+\)|hsla?\([^)]+\))$"), 5, ("colors",)
    ),
    "spacing": TokenPattern(re.compile(r"^-?\d+(\.\d+)?(rem|px|em)$"), 5, ("spacing",)),
    "font-size": TokenPattern(re.compile(r"^\d+(\.\d+)?(rem|px|em|pt)$"), 3, ("typography", "sizes")),
    "font-family": TokenPattern(re.compile(r"^[\w\s,'-]+$"), 2, ("typography", "families")),
    "border-radius": TokenPattern(re.compile(r"^\d+(\.\d+)?(rem|px|em|%)$"), 5, ("borders", "radius")),
    "shadow": TokenPattern(re.compile(r"^[\d\w\s#(),.-]+$"), 3, ("effects", "shadows")),
}

# Freeform patterns match almost any text; they only apply through the property table.
SHAPE_FALLBACK_PATTERNS = ("color", "spacing", "font-size", "border-radius")

PROPERTY_TO_PATTERN: Dict[str, str] = {
    "background": "color",
    "background-color": "color",
    "color": "color",
    "border-color": "color",
    "fill": "color",
    "stroke": "color",
    "padding": "spacing",
    "margin": "spacing",
    "gap": "spacing",
    "padding-top": "spacing",
    "padding-right": "spacing",
    "padding-bottom": "spacing",
    "padding-left": "spacing",
    "margin-top": "spacing",
    "margin-right": "spacing",
    "margin-bottom": "spacing",
    "margin-left": "spacing",
    "font-size": "font-size",
    "font-family": "font-family",
    "border-radius": "border-radius",
    "box-shadow": "shadow",
}


def matches_pattern(value: Any, pattern_type: str) -> bool:
    pattern = TOKEN_PATTERNS.get(pattern_type)
    return pattern is not None and isinstance(value, str) and pattern.regex.match(value) is not None


def detect_pattern_type(value: Any) -> Optional[str]:
    for pattern_type in SHAPE_FALLBACK_PATTERNS:
        if matches_pattern(value, pattern_type):
            return pattern_type
    return None


def infer_pattern_type(property_key: str, value: Any) -> Optional[str]:
    """Property table first; value shape only for properties the table does not know."""
    mapped = PROPERTY_TO_PATTERN.get(property_key)
    if mapped is not None:
        return mapped if matches_pattern(value, mapped) else None
    return detect_pattern_type(value)


# --------------------------------------------------------------------------------------
# Frequency analysis
# --------------------------------------------------------------------------------------


@dataclass
class TokenCandidate:
    type: str
    value: str
    frequency: int
    category: TokenPath
    properties: List[str] = field(default_factory=list)


def _iter_property_maps(node: Any) -> Iterator[Mapping[str, Any]]:
    if isinstance(node, Mapping):
        yield node
        for v in node.values():
            yield from _iter_property_maps(v)
    elif isinstance(node, (list, tuple)):
        for item in node:
            yield from _iter_property_maps(item)


def detect_token_patterns(tree: Any) -> List[TokenCandidate]:
    """
    Literal values frequent enough to be tokens.

    Occurrences are pooled per (pattern, value) across properties, so a colour
    used both as ``color`` and ``border-color`` counts once per use.
    """
    found: Dict[Tuple[str, str], TokenCandidate] = {}
    for props in _iter_property_maps(tree):
        for key, value in props.items():
            if not isinstance(key, str) or not isinstance(value, str):
                continue
            pattern_type = infer_pattern_type(key, value)
            if pattern_type is None:
                continue
            cand = found.get((pattern_type, value))
            if cand is None:
                cand = TokenCandidate(
                    type=pattern_type,
                    value=value,
                    frequency=0,
                    category=TOKEN_PATTERNS[pattern_type].category,
                )
                found[(pattern_type, value)] = cand
            cand.frequency += 1
            if key not in cand.properties:
                cand.properties.append(key)

    out = [c for c in found.values() if c.frequency >= TOKEN_PATTERNS[c.type].min_frequency]
    out.sort(key=lambda c: (c.category, -c.frequency, c.value))
    return out


# --------------------------------------------------------------------------------------
# Registry construction
# --------------------------------------------------------------------------------------


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:6]


def synthetic_token_name(category: TokenPath, value: str) -> str:
    if category[0] == "colors":
        return f"color-{_digest(value)}"
    if category[0] == "spacing":
        return value.replace(".", "-")
    return f"token-{_digest(value)}"


def _assoc_in(tree: Dict[str, Any], path: TokenPath, value: Any) -> None:
    node = tree
    for key in path[:-1]:
        nxt = node.get(key)
        if not isinstance(nxt, dict):
            nxt = {}
            node[key] = nxt
        node = nxt
    node[path[-1]] = value


def parse_token_ref(ref: Any) -> Optional[TokenPath]:
    """``"$colors.primary"`` -> ("colors", "primary"); anything else -> None."""
    if not isinstance(ref, str) or not ref.startswith("$") or len(ref) < 2:
        return None
    parts = tuple(p for p in ref[1:].split(".") if p)
    return parts or None


def format_token_path(path: TokenPath) -> str:
    return "$" + ".".join(path)


def extract_tokens_from_metadata(metadata: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Token bindings preserved by sync-mode metadata.

    ``{elem_id: {"token_provenance": {prop: "$path"}, "properties": {prop: value}}}``
    """
    tokens: Dict[str, Any] = {}
    for elem_id in sorted(metadata.keys(), key=str):
        elem_meta = metadata[elem_id] or {}
        resolved = elem_meta.get("properties") or {}
        for prop, ref in sorted((elem_meta.get("token_provenance") or {}).items()):
            path = parse_token_ref(ref)
            value = resolved.get(prop)
            if path is not None and value is not None:
                _assoc_in(tokens, path, value)
    return tokens


def extract_tokens_from_frequency(tree: Any, *, exclude_values: Optional[set] = None) -> Dict[str, Any]:
    tokens: Dict[str, Any] = {}
    exclude_values = exclude_values or set()
    for cand in detect_token_patterns(tree):
        if cand.value in exclude_values:
            continue
        _assoc_in(tokens, cand.category + (synthetic_token_name(cand.category, cand.value),), cand.value)
    return tokens


def build_token_registry(tree: Any, metadata: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Dict[str, Any]:
    """
    Token tree for a flattened document.

    Metadata bindings always win; frequent values already bound by metadata
    get no synthetic duplicate.
    """
    metadata_tokens = extract_tokens_from_metadata(metadata) if metadata else {}
    bound = {hashable_value(v) for v in flatten_token_paths(metadata_tokens).values()}
    frequency_tokens = extract_tokens_from_frequency(tree, exclude_values=bound)

    tokens: Dict[str, Any] = {}
    for path, value in flatten_token_paths(frequency_tokens).items():
        _assoc_in(tokens, path, value)
    for path, value in flatten_token_paths(metadata_tokens).items():
        _assoc_in(tokens, path, value)

    _log.debug(
        "tokens.build metadata_tokens=%s frequency_tokens=%s",
        len(flatten_token_paths(metadata_tokens)),
        len(flatten_token_paths(frequency_tokens)),
    )
    return tokens


# --------------------------------------------------------------------------------------
# Reverse lookup
# --------------------------------------------------------------------------------------


def flatten_token_paths(tokens: Mapping[str, Any], prefix: TokenPath = ()) -> Dict[TokenPath, Any]:
    """{"colors": {"primary": "#fff"}} -> {("colors", "primary"): "#fff"}"""
    out: Dict[TokenPath, Any] = {}
    for key, value in tokens.items():
        path = prefix + (str(key),)
        if isinstance(value, Mapping):
            out.update(flatten_token_paths(value, path))
        else:
            out[path] = value
    return out


def index_key(value: Any) -> Tuple[str, Any]:
    """Reverse-index key; the type name keeps True, 1 and 1.0 apart."""
    return type(value).__name__, hashable_value(value)


def build_reverse_index(tokens: Mapping[str, Any]) -> Dict[Tuple[str, Any], List[TokenPath]]:
    index: Dict[Tuple[str, Any], List[TokenPath]] = {}
    for path, value in flatten_token_paths(tokens).items():
        index.setdefault(index_key(value), []).append(path)
    for paths in index.values():
        paths.sort()
    return index


@dataclass(frozen=True)
class TokenLookup:
    token_path: Optional[str]
    confidence: float
    alternatives: Tuple[str, ...] = ()


def _lookup(value: Any, index: Mapping[Tuple[str, Any], List[TokenPath]]) -> TokenLookup:
    try:
        paths = index.get(index_key(value)) or []
    except TypeError:
        paths = []

    if not paths:
        inc_token_lookup("miss")
        return TokenLookup(token_path=None, confidence=NO_MATCH_CONFIDENCE)
    if len(paths) == 1:
        inc_token_lookup("unique")
        return TokenLookup(token_path=format_token_path(paths[0]), confidence=UNIQUE_MATCH_CONFIDENCE)
    inc_token_lookup("collision")
    return TokenLookup(
        token_path=format_token_path(paths[0]),
        confidence=COLLISION_CONFIDENCE,
        alternatives=tuple(format_token_path(p) for p in paths[1:]),
    )


class TokenRegistry:
    """A token tree with its reverse index built once."""

    def __init__(self, tokens: Mapping[str, Any]):
        self.tokens: Dict[str, Any] = dict(tokens)
        self._index = build_reverse_index(self.tokens)

    @classmethod
    def from_document(cls, tree: Any, metadata: Optional[Mapping[str, Mapping[str, Any]]] = None) -> "TokenRegistry":
        return cls(build_token_registry(tree, metadata))

    def paths(self) -> Dict[TokenPath, Any]:
        return flatten_token_paths(self.tokens)

    def lookup(self, value: Any) -> TokenLookup:
        return _lookup(value, self._index)

    def reconstruct(self, props: Mapping[str, Any]) -> Dict[str, Any]:
        """Swap literals for token references where lookup confidence is at least 0.7."""
        out: Dict[str, Any] = {}
        for key, value in props.items():
            if isinstance(value, (Mapping, list, tuple)):
                out[key] = value
                continue
            hit = self.lookup(value)
            if hit.token_path is not None and hit.confidence >= SUBSTITUTION_MIN_CONFIDENCE:
                out[key] = hit.token_path
            else:
                out[key] = value
        return out


def reverse_lookup_token(value: Any, tokens: Mapping[str, Any]) -> TokenLookup:
    return TokenRegistry(tokens).lookup(value)


def reconstruct_token_references(props: Mapping[str, Any], tokens: Mapping[str, Any]) -> Dict[str, Any]:
    return TokenRegistry(tokens).reconstruct(props)
