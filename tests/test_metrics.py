from prometheus_client import REGISTRY

from forma.core.hierarchy import reconcile
from forma.core.observability.metrics import inc_conflict, inc_named, reset_metrics, snapshot_named


def _sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_reconcile_increments_prometheus_counters():
    before = _sample("forma_reconciliations_total", {"strategy": "ours-wins"})
    before_conflicts = _sample("forma_reconcile_conflicts_total", {"conflict_type": "both-modified"})

    reconcile({"e": {"p": 1}}, {"e": {"p": 2}}, {"e": {"p": 3}}, strategy="ours-wins")

    assert _sample("forma_reconciliations_total", {"strategy": "ours-wins"}) == before + 1
    assert _sample("forma_reconcile_conflicts_total", {"conflict_type": "both-modified"}) == before_conflicts + 1


def test_named_snapshot_and_reset():
    inc_named("custom", 2)
    inc_named("")
    inc_conflict("both-modified", 0)
    assert snapshot_named() == {"custom": 2}

    reset_metrics()
    assert snapshot_named() == {}
