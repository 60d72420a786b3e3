"""
mnemo.pruning.rules -- Per-source compression rules.

A rule names a strategy and its character parameters.  Rules are
static configuration: the built-in table below, optionally overridden
per source by ``Config.pruning_rules``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class Strategy(Enum):
    KEEP_ALL = "keep-all"
    KEEP_ENDS = "keep-ends"
    KEEP_LAST = "keep-last"
    SUMMARIZE = "summarize"
    DISCARD = "discard"


@dataclass(frozen=True)
class PruningRule:
    """How to compress one source's output."""

    strategy: Strategy
    first_chars: int = 500
    last_chars: int = 300
    max_chars: int = 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "first_chars": self.first_chars,
            "last_chars": self.last_chars,
            "max_chars": self.max_chars,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "PruningRule":
        strategy = Strategy(d.get("strategy", Strategy.KEEP_LAST.value))
        defaults = _STRATEGY_DEFAULTS.get(strategy, {})
        return cls(
            strategy=strategy,
            first_chars=int(d.get("first_chars", defaults.get("first_chars", 500))),
            last_chars=int(d.get("last_chars", defaults.get("last_chars", 300))),
            max_chars=int(d.get("max_chars", defaults.get("max_chars", 1000))),
        )


_STRATEGY_DEFAULTS: Dict[Strategy, Dict[str, int]] = {
    Strategy.KEEP_ENDS: {"first_chars": 500, "last_chars": 300},
    Strategy.KEEP_LAST: {"max_chars": 1000},
    Strategy.SUMMARIZE: {"max_chars": 500},
}

DEFAULT_RULE = PruningRule(strategy=Strategy.KEEP_LAST, max_chars=1000)

DEFAULT_RULES: Dict[str, PruningRule] = {
    # valuable outputs, kept whole
    "grep": PruningRule(Strategy.KEEP_ALL),
    "glob": PruningRule(Strategy.KEEP_ALL),
    "skill": PruningRule(Strategy.KEEP_ALL),
    "memory_retrieve": PruningRule(Strategy.KEEP_ALL),
    # source files: head and tail carry the structure
    "read": PruningRule(Strategy.KEEP_ENDS, first_chars=500, last_chars=300),
    # command output: the end holds the result
    "bash": PruningRule(Strategy.KEEP_LAST, max_chars=1000),
    "task": PruningRule(Strategy.KEEP_LAST, max_chars=1500),
    # confirmations
    "edit": PruningRule(Strategy.DISCARD),
    "write": PruningRule(Strategy.DISCARD),
}


def build_rules(overrides: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Dict[str, PruningRule]:
    """Built-in table with *overrides* applied on top."""
    rules = dict(DEFAULT_RULES)
    for source, spec in (overrides or {}).items():
        rules[source] = PruningRule.from_dict(spec)
    return rules


def resolve_rule(source_id: str, rules: Optional[Mapping[str, PruningRule]] = None) -> PruningRule:
    """Exact-match lookup, falling back to ``DEFAULT_RULE``."""
    table = DEFAULT_RULES if rules is None else rules
    return table.get(source_id, DEFAULT_RULE)
