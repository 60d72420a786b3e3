"""
mnemo.working.pool -- Exponentially decaying scored pool.

Pool facts compete on a score that fades with every logical tick and is
topped up each time the fact is mentioned again:

    score' = score * gamma ** elapsed            (every other member)
    score' = score * gamma ** elapsed + weight   (the member mentioned now)

``elapsed`` counts logical-clock ticks since the member's
``last_scored_at``.  After each ingest every member shares the same
decay epoch (the current clock value), members below ``min_score`` are
dropped, and the pool is cut to the top ``max_items`` by score.

With gamma=0.85 and min_score=0.01 an unmentioned fact that entered at
1.0 survives 28 further ticks (0.85**28 ~ 0.0107) and is gone on the
29th (0.85**29 ~ 0.0091).  A fact stays resident indefinitely as long as
it is mentioned roughly every log(min_score)/log(gamma) ticks.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from mnemo.core.types import MemoryItem
from mnemo.working.state import SessionMemoryState

log = logging.getLogger(__name__)


def decayed_score(score: float, elapsed: int, gamma: float) -> float:
    """Apply *elapsed* ticks of decay to *score*."""
    if elapsed <= 0:
        return score
    return score * gamma**elapsed


class PoolStore:
    """Decay/eviction operations over a ``SessionMemoryState`` pool.

    Parameters
    ----------
    max_items : int
        Pool cap (default 50).
    gamma : float
        Per-tick decay multiplier in (0, 1) (default 0.85).
    min_score : float
        Eviction floor (default 0.01).
    mention_weight : float
        Boost for the member mentioned this tick (default 0.5).
    initial_score : float
        Score of a newly inserted member (default 1.0).
    """

    def __init__(
        self,
        max_items: int = 50,
        gamma: float = 0.85,
        min_score: float = 0.01,
        mention_weight: float = 0.5,
        initial_score: float = 1.0,
    ) -> None:
        if not 0.0 < gamma < 1.0:
            raise ValueError(f"gamma must be in (0, 1), got {gamma}")
        if max_items < 1:
            raise ValueError(f"max_items must be >= 1, got {max_items}")
        self.max_items = max_items
        self.gamma = gamma
        self.min_score = min_score
        self.mention_weight = mention_weight
        self.initial_score = initial_score

    def ingest(
        self, state: SessionMemoryState, item: MemoryItem
    ) -> Tuple[MemoryItem, str, List[MemoryItem]]:
        """Merge *item* into the pool at the state's current clock value.

        The caller advances the clock (``state.tick()``) before calling.
        Returns ``(stored_copy, action, evicted)``.
        """
        clock = state.event_counter
        existing = self.find(state, item.content)

        if existing is not None:
            elapsed = clock - (existing.last_scored_at or 0)
            existing.score = (
                decayed_score(existing.score, elapsed, self.gamma) + self.mention_weight
            )
            existing.mentions += 1
            existing.created_at = item.created_at
            existing.last_scored_at = clock
            target, action = existing, "refreshed"
        else:
            target = item.copy()
            target.score = self.initial_score
            target.mentions = max(1, target.mentions)
            target.last_scored_at = clock
            state.pool.append(target)
            action = "added"

        for member in state.pool:
            if member is target:
                continue
            elapsed = clock - (member.last_scored_at or 0)
            member.score = decayed_score(member.score, elapsed, self.gamma)
            member.last_scored_at = clock

        evicted = [m for m in state.pool if m.score < self.min_score]
        survivors = [m for m in state.pool if m.score >= self.min_score]
        survivors.sort(key=lambda m: m.score, reverse=True)
        evicted.extend(survivors[self.max_items:])
        state.pool = survivors[: self.max_items]

        for m in evicted:
            log.debug("Pool evicted (score %.4f): %.60s", m.score, m.content)

        # The ingested member may itself fall out when the pool is full of
        # stronger facts; report what was stored either way.
        return target.copy(), action, [m.copy() for m in evicted]

    def find(self, state: SessionMemoryState, content: str) -> Optional[MemoryItem]:
        return next((m for m in state.pool if m.content == content), None)

    def keep_top(self, state: SessionMemoryState, keep: int) -> int:
        """Trim the pool to its *keep* highest-scoring members.

        Returns the number removed.
        """
        state.pool.sort(key=lambda m: m.score, reverse=True)
        removed = max(0, len(state.pool) - keep)
        del state.pool[max(0, keep):]
        return removed
