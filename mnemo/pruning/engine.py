"""
mnemo.pruning.engine -- Pressure-aware compression of tool output.

``compress(text, rule, level)`` runs in two stages:

  1. Under MODERATE or HIGH pressure, a hard line ceiling and then a
     hard character ceiling are enforced (tighter at HIGH), each leaving
     a marker that says how much was omitted.
  2. The rule's strategy is applied to what remains.

Everything here is a pure function of its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from mnemo.pressure.monitor import PressureLevel
from mnemo.pruning.rules import PruningRule, Strategy

DISCARD_ACK = "[Tool completed successfully]"


@dataclass(frozen=True)
class PressureLimits:
    max_lines: int
    max_chars: int


DEFAULT_PRESSURE_LIMITS: Dict[PressureLevel, PressureLimits] = {
    PressureLevel.MODERATE: PressureLimits(max_lines=5000, max_chars=200_000),
    PressureLevel.HIGH: PressureLimits(max_lines=2000, max_chars=100_000),
}


def limits_from_config(raw: Mapping[str, Mapping[str, int]]) -> Dict[PressureLevel, PressureLimits]:
    """Build the ceiling table from ``Config.pressure_limits``."""
    table = dict(DEFAULT_PRESSURE_LIMITS)
    for name, spec in raw.items():
        level = PressureLevel.parse(name)
        if level is PressureLevel.SAFE:
            continue
        base = table[level]
        table[level] = PressureLimits(
            max_lines=int(spec.get("max_lines", base.max_lines)),
            max_chars=int(spec.get("max_chars", base.max_chars)),
        )
    return table


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def keep_ends(text: str, first_chars: int, last_chars: int) -> str:
    """Keep a prefix and a suffix, noting how much of the middle went."""
    if first_chars + last_chars >= len(text):
        return text
    omitted = len(text) - first_chars - last_chars
    tail = text[len(text) - last_chars:] if last_chars > 0 else ""
    return (
        f"{text[:first_chars]}\n\n[... {omitted} chars omitted for brevity ...]\n\n{tail}"
    )


def keep_last(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    omitted = len(text) - max_chars
    tail = text[len(text) - max_chars:] if max_chars > 0 else ""
    return f"[... {omitted} chars omitted ...]\n\n{tail}"


def summarize(text: str, max_chars: int) -> str:
    """Naive head-of-text "summary".  A placeholder, not summarisation."""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}\n[... truncated at {max_chars} chars ...]"


def apply_pressure_limits(text: str, limits: PressureLimits) -> str:
    """Enforce the line ceiling, then the character ceiling."""
    result = text
    lines = result.split("\n")
    if len(lines) > limits.max_lines:
        omitted_lines = len(lines) - limits.max_lines
        result = "\n".join(lines[: limits.max_lines])
        result += (
            f"\n\n[memory pressure: {omitted_lines} lines omitted. "
            "Prefer targeted searches over full reads.]"
        )
    if len(result) > limits.max_chars:
        omitted_chars = len(result) - limits.max_chars
        result = result[: limits.max_chars]
        result += f"\n\n[memory pressure: {omitted_chars} chars omitted]"
    return result


def compress(
    text: str,
    rule: PruningRule,
    level: PressureLevel = PressureLevel.SAFE,
    limits: Optional[Mapping[PressureLevel, PressureLimits]] = None,
) -> str:
    """Compress *text* with *rule*, tightened by the pressure *level*."""
    table = DEFAULT_PRESSURE_LIMITS if limits is None else limits
    result = text
    if level in (PressureLevel.MODERATE, PressureLevel.HIGH):
        result = apply_pressure_limits(result, table[level])

    if rule.strategy is Strategy.KEEP_ALL:
        return result
    if rule.strategy is Strategy.KEEP_ENDS:
        return keep_ends(result, rule.first_chars, rule.last_chars)
    if rule.strategy is Strategy.KEEP_LAST:
        return keep_last(result, rule.max_chars)
    if rule.strategy is Strategy.SUMMARIZE:
        return summarize(result, rule.max_chars)
    if rule.strategy is Strategy.DISCARD:
        return DISCARD_ACK
    return result
