from __future__ import annotations

from collections import Counter
from typing import Dict

from prometheus_client import Counter as PromCounter

# Named counters (in-process snapshot)
_NAMED = Counter()

_PROM_RECONCILIATIONS = PromCounter(
    "forma_reconciliations_total",
    "Total 3-way reconciliations",
    ["strategy"],
)

_PROM_CONFLICTS = PromCounter(
    "forma_reconcile_conflicts_total",
    "Conflicting properties detected during reconciliation",
    ["conflict_type"],
)

_PROM_TOKEN_LOOKUPS = PromCounter(
    "forma_token_lookups_total",
    "Reverse token lookups",
    ["outcome"],
)


def reset_metrics() -> None:
    """
    Test helper: clears the in-process counters to avoid cross-test leakage.
    Prometheus counters are monotonic and are left alone.
    """
    _NAMED.clear()


def inc_named(name: str, value: int = 1) -> None:
    if not name:
        return
    _NAMED[name] += int(value)


def inc_reconciliation(strategy: str) -> None:
    _NAMED["reconciliations_total"] += 1
    _NAMED[f"reconciliations_{strategy}"] += 1
    _PROM_RECONCILIATIONS.labels(strategy=strategy).inc()


def inc_conflict(conflict_type: str, value: int = 1) -> None:
    if value <= 0:
        return
    _NAMED["conflicts_total"] += value
    _NAMED[f"conflicts_{conflict_type}"] += value
    _PROM_CONFLICTS.labels(conflict_type=conflict_type).inc(value)


def inc_token_lookup(outcome: str) -> None:
    _NAMED[f"token_lookups_{outcome}"] += 1
    _PROM_TOKEN_LOOKUPS.labels(outcome=outcome).inc()


def snapshot_named() -> Dict[str, int]:
    return dict(_NAMED)
