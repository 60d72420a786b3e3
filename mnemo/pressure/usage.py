"""
mnemo.pressure.usage -- Turn model token limits into a usage ratio.

The monitor only consumes a ratio.  Hosts that know their model's
limits and the running token total can use these helpers to produce
one: the usable budget holds back room for the model's output and a
compaction buffer, the same way agent hosts size their windows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

OUTPUT_TOKEN_MAX = 32_000
COMPACTION_BUFFER = 20_000


@dataclass(frozen=True)
class ModelLimits:
    """Token limits advertised by a model."""

    context: int
    output: int = 0
    input: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelLimits":
        return cls(
            context=int(d.get("context", 0) or 0),
            output=int(d.get("output", 0) or 0),
            input=int(d["input"]) if d.get("input") else None,
        )


def max_output_tokens(limits: ModelLimits) -> int:
    return min(limits.output or OUTPUT_TOKEN_MAX, OUTPUT_TOKEN_MAX)


def usable_tokens(limits: ModelLimits) -> int:
    """Tokens available to the conversation before compaction."""
    max_out = max_output_tokens(limits)
    if limits.input:
        return limits.input - min(COMPACTION_BUFFER, max_out)
    return limits.context - max_out


def usage_ratio(total_tokens: int, limits: ModelLimits) -> Optional[float]:
    """``total_tokens / usable``, or None if the usable budget is not positive."""
    usable = usable_tokens(limits)
    if usable <= 0:
        return None
    return max(0, total_tokens) / usable
