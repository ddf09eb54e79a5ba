from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Sequence


def detect_duplicate_classes(class_seqs: Iterable[Iterable[str]]) -> List[Dict[str, Any]]:
    """One finding per class name occurring more than once across ``class_seqs``."""
    counts: Counter = Counter()
    for seq in class_seqs:
        counts.update(seq)
    return [
        {"type": "duplicate-class", "class": name, "occurrences": n}
        for name, n in sorted(counts.items())
        if n > 1
    ]


def stacked_extension_warnings(stack: Sequence[str], extension_map: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Adjacent stack pairs where the later system extends the earlier one."""
    issues: List[Dict[str, Any]] = []
    for base, extender in zip(stack, stack[1:]):
        parents = extension_map.get(extender)
        if isinstance(parents, str):
            parents = [parents]
        if base in (parents or []):
            issues.append({"type": "redundant-stack", "base": base, "extender": extender})
    return issues
