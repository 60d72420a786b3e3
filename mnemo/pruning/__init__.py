"""mnemo.pruning -- Per-source, pressure-aware tool output compression."""

from mnemo.pruning.engine import (
    DISCARD_ACK,
    PressureLimits,
    apply_pressure_limits,
    compress,
    keep_ends,
    keep_last,
    limits_from_config,
    summarize,
)
from mnemo.pruning.rules import (
    DEFAULT_RULE,
    DEFAULT_RULES,
    PruningRule,
    Strategy,
    build_rules,
    resolve_rule,
)

__all__ = [
    "compress",
    "apply_pressure_limits",
    "keep_ends",
    "keep_last",
    "summarize",
    "limits_from_config",
    "PressureLimits",
    "DISCARD_ACK",
    "PruningRule",
    "Strategy",
    "DEFAULT_RULE",
    "DEFAULT_RULES",
    "build_rules",
    "resolve_rule",
]
