import copy

import pytest

from forma.core.errors import StrategyMisuseError
from forma.core.hierarchy import (
    MergeStrategy,
    detect_changes,
    detect_conflicts,
    generate_diff_report,
    preview_reconciliation,
    reconcile,
)
from forma.core.hierarchy.reconciliation import ChangeType, ConflictType
from forma.core.observability.metrics import snapshot_named

BASE = {"e": {"p": "red"}}
THEIRS = {"e": {"p": "blue"}}
OURS = {"e": {"p": "green"}}


def test_identity_merge():
    snap = {
        "btn-1": {"class": "btn", "color": "red"},
        "card-1": {"padding": "1rem", "style": {"gap": "1rem"}},
        "empty": {},
    }
    result = reconcile(snap, copy.deepcopy(snap), copy.deepcopy(snap))

    assert result.merged == snap
    assert result.conflicts == {}
    assert result.stats.conflict_count == 0
    assert result.stats.auto_merged_count == 0
    assert result.change_summary.total_changes == 0


def test_one_sided_change_is_accepted():
    result = reconcile(BASE, THEIRS, {"e": {"p": "red"}}, strategy="auto")

    assert result.merged["e"]["p"] == "blue"
    assert result.conflicts == {}
    assert result.stats.theirs_accepted == 1
    assert result.stats.ours_accepted == 0
    assert result.stats.auto_merged_count == 1


def test_true_conflict_triad():
    conflicts = detect_conflicts(detect_changes(BASE, THEIRS), detect_changes(BASE, OURS))
    c = conflicts["e"]["p"]

    assert c.conflict_type is ConflictType.BOTH_MODIFIED
    assert (c.base_value, c.theirs_value, c.ours_value) == ("red", "blue", "green")


@pytest.mark.parametrize("strategy, expected", [
    ("theirs-wins", "blue"),
    ("ours-wins", "green"),
    (MergeStrategy.THEIRS_WINS, "blue"),
])
def test_wins_strategies_pick_a_side(strategy, expected):
    result = reconcile(BASE, THEIRS, OURS, strategy=strategy)
    assert result.merged == {"e": {"p": expected}}
    assert result.conflicts == {}
    assert result.stats.conflict_count == 1
    assert result.stats.auto_merged_count == 0


def test_auto_leaves_conflict_out_of_merged():
    result = reconcile(BASE, THEIRS, OURS)

    assert "p" not in result.merged.get("e", {})
    assert result.conflicts["e"]["p"].conflict_type is ConflictType.BOTH_MODIFIED
    assert result.stats.conflict_count == 1
    assert snapshot_named()["conflicts_both-modified"] == 1


def test_manual_calls_resolver_with_triad():
    seen = []

    def resolve(elem_id, key, triad):
        seen.append((elem_id, key, triad))
        return "purple"

    result = reconcile(BASE, THEIRS, OURS, strategy="manual", resolve_fn=resolve)

    assert seen == [("e", "p", {"base": "red", "theirs": "blue", "ours": "green"})]
    assert result.merged == {"e": {"p": "purple"}}
    assert result.stats.manual_resolved_count == 1
    assert result.conflicts == {}


def test_end_to_end_button():
    base = {"btn-1": {"class": "btn", "color": "red"}}
    theirs = {"btn-1": {"class": "btn", "color": "blue"}}
    ours = {"btn-1": {"class": "btn", "color": "red", "disabled": True}}

    result = reconcile(base, theirs, ours, strategy="auto")

    assert result.merged["btn-1"] == {"class": "btn", "color": "blue", "disabled": True}
    assert result.conflicts == {}
    assert result.stats.theirs_accepted == 1
    assert result.stats.ours_accepted == 1
    assert result.stats.auto_merged_count == 2


def test_manual_without_resolver_is_misuse():
    with pytest.raises(StrategyMisuseError) as exc:
        reconcile(BASE, THEIRS, OURS, strategy="manual")
    assert exc.value.strategy == "manual"


def test_unknown_strategy_is_misuse():
    with pytest.raises(StrategyMisuseError) as exc:
        reconcile(BASE, THEIRS, OURS, strategy="coin-flip")
    assert exc.value.strategy == "coin-flip"
    assert "auto" in exc.value.valid_strategies
    assert "coin-flip" in str(exc.value)


def test_detect_changes_is_sparse_and_presence_based():
    base = {"a": {"x": 1, "y": None, "z": 3}}
    target = {"a": {"x": 1, "z": 4, "w": None}, "b": {"k": "v"}}
    changes = detect_changes(base, target)

    assert set(changes["a"]) == {"y", "z", "w"}
    assert changes["a"]["y"].type is ChangeType.DELETED
    assert changes["a"]["z"].type is ChangeType.MODIFIED
    assert changes["a"]["w"].type is ChangeType.ADDED
    assert changes["b"]["k"].type is ChangeType.ADDED


@pytest.mark.parametrize("base, theirs, ours, expected", [
    ({}, {"e": {"p": 1}}, {"e": {"p": 2, "q": 0}}, None),
    ({"e": {"p": 1}}, {"e": {}}, {"e": {"p": 2}}, ConflictType.THEIRS_DELETED_OURS_MODIFIED),
    ({"e": {"p": 1}}, {"e": {"p": 2}}, {"e": {}}, ConflictType.OURS_DELETED_THEIRS_MODIFIED),
    ({"e": {"p": 1}}, {"e": {}}, {"e": {}}, None),
])
def test_conflict_typing(base, theirs, ours, expected):
    conflicts = detect_conflicts(detect_changes(base, theirs), detect_changes(base, ours))
    got = conflicts.get("e", {}).get("p")
    assert (got.conflict_type if got else None) == expected


def test_both_deleted_is_silent_and_applied():
    result = reconcile({"e": {"p": 1, "q": 2}}, {"e": {"q": 2}}, {"e": {"q": 2}})
    assert result.merged == {"e": {"q": 2}}
    assert result.conflicts == {}


def test_both_added_differently_keeps_base():
    result = reconcile({"e": {}}, {"e": {"p": 1}}, {"e": {"p": 2}})
    assert result.merged == {"e": {}}
    assert result.conflicts == {}

    same = reconcile({"e": {}}, {"e": {"p": 1}}, {"e": {"p": 1}})
    assert same.merged == {"e": {"p": 1}}


def test_selected_deletion_removes_property():
    base = {"e": {"p": "red", "q": 1}}
    theirs = {"e": {"q": 1}}
    ours = {"e": {"p": "green", "q": 1}}

    assert reconcile(base, theirs, ours, strategy="theirs-wins").merged == {"e": {"q": 1}}
    assert reconcile(base, theirs, ours, strategy="ours-wins").merged == {"e": {"p": "green", "q": 1}}
    auto = reconcile(base, theirs, ours)
    assert auto.conflicts["e"]["p"].conflict_type is ConflictType.THEIRS_DELETED_OURS_MODIFIED


def test_element_added_on_one_side_is_merged():
    result = reconcile({}, {"new": {"class": "x"}}, {})
    assert result.merged == {"new": {"class": "x"}}
    assert result.stats.theirs_accepted == 1


def test_diff_report_is_deterministic():
    base = {"b": {"y": 1, "x": 1}, "a": {"p": "red"}}
    theirs = {"a": {"p": "blue"}, "b": {"x": 2, "y": 1}}
    ours = {"b": {"y": 1, "x": 1, "z": True}, "a": {"p": "green"}}

    first, report = preview_reconciliation(base, theirs, ours)
    again = generate_diff_report(reconcile(copy.deepcopy(base), copy.deepcopy(theirs), copy.deepcopy(ours)))

    assert report == again
    assert report.startswith("=== RECONCILIATION REPORT ===\n")
    assert "  - a -> p\n    Conflict type: both-modified\n" in report
    assert '    THEIRS: "blue"' in report
    assert "  modified - b -> x = 2" in report
    assert "  added - b -> z = true" in report
    assert report.endswith("=== END REPORT ===\n")
    assert first.to_dict()["stats"]["conflict_count"] == 1


def test_result_to_dict_is_json_friendly():
    import json

    result = reconcile(BASE, THEIRS, OURS)
    data = result.to_dict()
    assert data["strategy"] == "auto"
    assert data["conflicts"]["e"]["p"]["conflict_type"] == "both-modified"
    assert data["change_summary"]["total_changes"] == 2
    json.dumps(data)
    assert snapshot_named()["reconciliations_auto"] == 1
