"""Fatal setup-time errors raised by the resolution core.

Everything else (unresolved options, low-confidence classifications, token
collisions, merge conflicts) is returned as data, never raised.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence


class ConfigurationError(Exception):
    def __init__(self, message: str, *, cycle: Optional[Sequence[str]] = None):
        self.cycle: List[str] = list(cycle or [])
        if self.cycle:
            message = f"{message}: {' -> '.join(self.cycle)}"
        super().__init__(message)


class StrategyMisuseError(Exception):
    def __init__(self, message: str, *, strategy: Any, valid_strategies: Optional[Sequence[str]] = None):
        self.strategy = strategy
        self.valid_strategies = list(valid_strategies or [])
        super().__init__(f"{message} (strategy={strategy!r})")
