"""3-way reconciliation of property snapshots (BASE / THEIRS / OURS).

BASE is the snapshot as last exported, THEIRS carries external edits made in
the target platform, OURS is the current project state. Every
(element_id, property_key) pair resolves to exactly one of unchanged,
auto-mergeable or conflicting. Conflicts are data, never exceptions.

All iteration is over sorted ids and keys so results and reports are
identical across runs for the same input.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from forma.core.errors import StrategyMisuseError
from forma.core.observability.metrics import inc_conflict, inc_reconciliation

from .models import PropsMap, Snapshot

_log = logging.getLogger("forma.reconcile")


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class ConflictType(str, Enum):
    BOTH_MODIFIED = "both-modified"
    THEIRS_ADDED_OURS_CHANGED = "theirs-added-ours-changed"
    OURS_ADDED_THEIRS_CHANGED = "ours-added-theirs-changed"
    THEIRS_DELETED_OURS_MODIFIED = "theirs-deleted-ours-modified"
    OURS_DELETED_THEIRS_MODIFIED = "ours-deleted-theirs-modified"


class MergeStrategy(str, Enum):
    AUTO = "auto"
    THEIRS_WINS = "theirs-wins"
    OURS_WINS = "ours-wins"
    MANUAL = "manual"


VALID_STRATEGIES: List[str] = [s.value for s in MergeStrategy]


@dataclass(frozen=True)
class Change:
    type: ChangeType
    base_value: Any = None
    target_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "base_value": self.base_value, "target_value": self.target_value}


@dataclass(frozen=True)
class Conflict:
    conflict_type: ConflictType
    base_value: Any = None
    theirs_value: Any = None
    ours_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflict_type": self.conflict_type.value,
            "base_value": self.base_value,
            "theirs_value": self.theirs_value,
            "ours_value": self.ours_value,
        }


ChangeSet = Dict[str, Dict[str, Change]]
ConflictSet = Dict[str, Dict[str, Conflict]]
ResolveFn = Callable[[str, str, Dict[str, Any]], Any]


@dataclass
class MergeStats:
    auto_merged_count: int = 0
    conflict_count: int = 0
    theirs_accepted: int = 0
    ours_accepted: int = 0
    manual_resolved_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "auto_merged_count": self.auto_merged_count,
            "conflict_count": self.conflict_count,
            "theirs_accepted": self.theirs_accepted,
            "ours_accepted": self.ours_accepted,
            "manual_resolved_count": self.manual_resolved_count,
        }


@dataclass
class ChangeSummary:
    theirs_changes: ChangeSet = field(default_factory=dict)
    ours_changes: ChangeSet = field(default_factory=dict)
    conflicts: ConflictSet = field(default_factory=dict)

    @property
    def total_changes(self) -> int:
        return count_pairs(self.theirs_changes) + count_pairs(self.ours_changes)

    @property
    def conflict_count(self) -> int:
        return count_pairs(self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theirs_changes": _nested_to_dict(self.theirs_changes),
            "ours_changes": _nested_to_dict(self.ours_changes),
            "conflicts": _nested_to_dict(self.conflicts),
            "total_changes": self.total_changes,
            "conflict_count": self.conflict_count,
        }


@dataclass
class ReconciliationResult:
    strategy: MergeStrategy
    merged: Snapshot
    conflicts: ConflictSet
    stats: MergeStats
    change_summary: ChangeSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "merged": {k: dict(sorted(v.items())) for k, v in sorted(self.merged.items())},
            "conflicts": _nested_to_dict(self.conflicts),
            "stats": self.stats.to_dict(),
            "change_summary": self.change_summary.to_dict(),
        }


def count_pairs(nested: Mapping[str, Mapping[str, Any]]) -> int:
    return sum(len(v) for v in nested.values())


def _nested_to_dict(nested: Mapping[str, Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {
        elem_id: {key: rec.to_dict() for key, rec in sorted(props.items())}
        for elem_id, props in sorted(nested.items())
    }


def _sorted_union(*maps: Mapping[str, Any]) -> List[str]:
    keys = set()
    for m in maps:
        keys.update(m.keys())
    return sorted(keys, key=str)


# --------------------------------------------------------------------------------------
# Change / conflict detection
# --------------------------------------------------------------------------------------


def detect_property_change(base_props: Mapping[str, Any], target_props: Mapping[str, Any], key: str) -> Optional[Change]:
    """Presence decides added/deleted; a key present with value None is not absent."""
    in_base = key in base_props
    in_target = key in target_props
    if in_base and in_target:
        if base_props[key] == target_props[key]:
            return None
        return Change(ChangeType.MODIFIED, base_props[key], target_props[key])
    if in_target:
        return Change(ChangeType.ADDED, None, target_props[key])
    if in_base:
        return Change(ChangeType.DELETED, base_props[key], None)
    return None


def detect_changes(base: Snapshot, target: Snapshot) -> ChangeSet:
    """Sparse {element_id: {key: Change}}; unchanged pairs and elements are omitted."""
    changes: ChangeSet = {}
    for elem_id in _sorted_union(base, target):
        base_props = base.get(elem_id) or {}
        target_props = target.get(elem_id) or {}
        elem_changes: Dict[str, Change] = {}
        for key in _sorted_union(base_props, target_props):
            change = detect_property_change(base_props, target_props, key)
            if change is not None:
                elem_changes[key] = change
        if elem_changes:
            changes[elem_id] = elem_changes
    return changes


def classify_conflict(theirs: Change, ours: Change) -> Optional[Conflict]:
    """
    Conflict for a pair both sides touched, or None.

    Both-deleted and both-added are not conflicts.
    """
    t, o = theirs.type, ours.type
    if t is ChangeType.MODIFIED and o is ChangeType.MODIFIED:
        return Conflict(ConflictType.BOTH_MODIFIED, theirs.base_value, theirs.target_value, ours.target_value)
    if t is ChangeType.ADDED and o in (ChangeType.MODIFIED, ChangeType.DELETED):
        return Conflict(ConflictType.THEIRS_ADDED_OURS_CHANGED, None, theirs.target_value, ours.target_value)
    if o is ChangeType.ADDED and t in (ChangeType.MODIFIED, ChangeType.DELETED):
        return Conflict(ConflictType.OURS_ADDED_THEIRS_CHANGED, None, theirs.target_value, ours.target_value)
    if t is ChangeType.DELETED and o is ChangeType.MODIFIED:
        return Conflict(ConflictType.THEIRS_DELETED_OURS_MODIFIED, theirs.base_value, None, ours.target_value)
    if o is ChangeType.DELETED and t is ChangeType.MODIFIED:
        return Conflict(ConflictType.OURS_DELETED_THEIRS_MODIFIED, ours.base_value, theirs.target_value, None)
    return None


def detect_conflicts(theirs_changes: ChangeSet, ours_changes: ChangeSet) -> ConflictSet:
    conflicts: ConflictSet = {}
    for elem_id in _sorted_union(theirs_changes, ours_changes):
        t_props = theirs_changes.get(elem_id) or {}
        o_props = ours_changes.get(elem_id) or {}
        for key in sorted(set(t_props) & set(o_props), key=str):
            conflict = classify_conflict(t_props[key], o_props[key])
            if conflict is not None:
                conflicts.setdefault(elem_id, {})[key] = conflict
    return conflicts


# --------------------------------------------------------------------------------------
# Merge
# --------------------------------------------------------------------------------------


def coerce_strategy(strategy: Any) -> MergeStrategy:
    try:
        return MergeStrategy(getattr(strategy, "value", strategy))
    except ValueError:
        raise StrategyMisuseError(
            "Unknown merge strategy", strategy=strategy, valid_strategies=VALID_STRATEGIES
        ) from None


def _apply(props: PropsMap, key: str, change: Change) -> None:
    if change.type is ChangeType.DELETED:
        props.pop(key, None)
    else:
        props[key] = change.target_value


def _keep_base(props: PropsMap, key: str, base_props: Mapping[str, Any]) -> None:
    if key in base_props:
        props[key] = base_props[key]


def _same_outcome(a: Change, b: Change) -> bool:
    if a.type is ChangeType.DELETED or b.type is ChangeType.DELETED:
        return a.type is b.type
    return a.target_value == b.target_value


def _merge_wins(
    props: PropsMap,
    key: str,
    base_props: Mapping[str, Any],
    first: Tuple[str, Optional[Change]],
    second: Tuple[str, Optional[Change]],
    conflict: Optional[Conflict],
    stats: MergeStats,
) -> None:
    for side, change in (first, second):
        if change is None:
            continue
        _apply(props, key, change)
        setattr(stats, f"{side}_accepted", getattr(stats, f"{side}_accepted") + 1)
        if conflict is None:
            stats.auto_merged_count += 1
        return
    _keep_base(props, key, base_props)


def _merge_auto(
    props: PropsMap,
    key: str,
    base_props: Mapping[str, Any],
    t_change: Optional[Change],
    o_change: Optional[Change],
    stats: MergeStats,
) -> None:
    if t_change is not None and o_change is not None:
        if _same_outcome(t_change, o_change):
            _apply(props, key, t_change)
            stats.auto_merged_count += 1
        else:
            _keep_base(props, key, base_props)
    elif t_change is not None:
        _apply(props, key, t_change)
        stats.auto_merged_count += 1
        stats.theirs_accepted += 1
    elif o_change is not None:
        _apply(props, key, o_change)
        stats.auto_merged_count += 1
        stats.ours_accepted += 1
    else:
        _keep_base(props, key, base_props)


def reconcile(
    base: Snapshot,
    theirs: Snapshot,
    ours: Snapshot,
    *,
    strategy: Any = MergeStrategy.AUTO,
    resolve_fn: Optional[ResolveFn] = None,
) -> ReconciliationResult:
    """
    3-way merge of ``theirs`` and ``ours`` against ``base``.

    Strategies:
      auto         one-sided changes apply, otherwise BASE; conflicts are left
                   out of ``merged`` and returned in ``conflicts``
      theirs-wins  THEIRS change if any, else OURS change, else BASE
      ours-wins    OURS change if any, else THEIRS change, else BASE
      manual       as auto, but each conflict is settled by
                   ``resolve_fn(element_id, key, {"base", "theirs", "ours"})``
    """
    strat = coerce_strategy(strategy)
    if strat is MergeStrategy.MANUAL and resolve_fn is None:
        raise StrategyMisuseError(
            "Manual merge requires resolve_fn", strategy=strat.value, valid_strategies=VALID_STRATEGIES
        )

    theirs_changes = detect_changes(base, theirs)
    ours_changes = detect_changes(base, ours)
    conflicts = detect_conflicts(theirs_changes, ours_changes)

    stats = MergeStats()
    merged: Snapshot = {}
    for elem_id in _sorted_union(base, theirs, ours):
        base_props = base.get(elem_id) or {}
        theirs_props = theirs.get(elem_id) or {}
        ours_props = ours.get(elem_id) or {}
        t_elem = theirs_changes.get(elem_id) or {}
        o_elem = ours_changes.get(elem_id) or {}
        c_elem = conflicts.get(elem_id) or {}

        props: PropsMap = {}
        for key in _sorted_union(base_props, theirs_props, ours_props):
            t_change = t_elem.get(key)
            o_change = o_elem.get(key)
            conflict = c_elem.get(key)
            if conflict is not None:
                stats.conflict_count += 1

            if strat is MergeStrategy.THEIRS_WINS:
                _merge_wins(props, key, base_props, ("theirs", t_change), ("ours", o_change), conflict, stats)
            elif strat is MergeStrategy.OURS_WINS:
                _merge_wins(props, key, base_props, ("ours", o_change), ("theirs", t_change), conflict, stats)
            elif conflict is not None:
                if strat is MergeStrategy.MANUAL:
                    props[key] = resolve_fn(
                        elem_id,
                        key,
                        {"base": conflict.base_value, "theirs": conflict.theirs_value, "ours": conflict.ours_value},
                    )
                    stats.manual_resolved_count += 1
            else:
                _merge_auto(props, key, base_props, t_change, o_change, stats)

        if props or (elem_id in base and elem_id in theirs and elem_id in ours):
            merged[elem_id] = props

    for elem_conflicts in conflicts.values():
        for conflict in elem_conflicts.values():
            inc_conflict(conflict.conflict_type.value)
    inc_reconciliation(strat.value)

    summary = ChangeSummary(theirs_changes=theirs_changes, ours_changes=ours_changes, conflicts=conflicts)
    _log.debug(
        "reconcile strategy=%s elements=%s changes=%s conflicts=%s",
        strat.value,
        len(merged),
        summary.total_changes,
        summary.conflict_count,
    )
    return ReconciliationResult(
        strategy=strat,
        merged=merged,
        conflicts=conflicts if strat is MergeStrategy.AUTO else {},
        stats=stats,
        change_summary=summary,
    )


# --------------------------------------------------------------------------------------
# Reporting
# --------------------------------------------------------------------------------------


def _render(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _change_lines(changes: ChangeSet) -> List[str]:
    if not changes:
        return ["  (none)"]
    lines: List[str] = []
    for elem_id, props in sorted(changes.items()):
        for key, change in sorted(props.items()):
            lines.append(f"  {change.type.value} - {elem_id} -> {key} = {_render(change.target_value)}")
    return lines


def generate_diff_report(result: ReconciliationResult) -> str:
    """Plain-text report; same input gives the same text."""
    summary = result.change_summary
    stats = result.stats
    lines = [
        "=== RECONCILIATION REPORT ===",
        "",
        f"STRATEGY: {result.strategy.value}",
        "",
        "SUMMARY:",
        f"  Auto-merged: {stats.auto_merged_count} properties",
        f"  THEIRS accepted: {stats.theirs_accepted} changes",
        f"  OURS accepted: {stats.ours_accepted} changes",
        f"  Manually resolved: {stats.manual_resolved_count}",
        f"  Conflicts: {summary.conflict_count}",
        "",
    ]

    if summary.conflict_count:
        lines.append("CONFLICTS DETECTED:")
        for elem_id, props in sorted(summary.conflicts.items()):
            for key, c in sorted(props.items()):
                lines += [
                    f"  - {elem_id} -> {key}",
                    f"    Conflict type: {c.conflict_type.value}",
                    f"    BASE:   {_render(c.base_value)}",
                    f"    THEIRS: {_render(c.theirs_value)}",
                    f"    OURS:   {_render(c.ours_value)}",
                ]
        lines.append("")

    lines.append("THEIRS CHANGES:")
    lines += _change_lines(summary.theirs_changes)
    lines.append("")
    lines.append("OURS CHANGES:")
    lines += _change_lines(summary.ours_changes)
    lines += ["", "=== END REPORT ==="]
    return "\n".join(lines) + "\n"


def preview_reconciliation(
    base: Snapshot,
    theirs: Snapshot,
    ours: Snapshot,
    *,
    strategy: Any = MergeStrategy.AUTO,
    resolve_fn: Optional[ResolveFn] = None,
) -> Tuple[ReconciliationResult, str]:
    """Dry run: the result plus its diff report. Nothing is persisted here."""
    result = reconcile(base, theirs, ours, strategy=strategy, resolve_fn=resolve_fn)
    return result, generate_diff_report(result)
