"""
mnemo.working.slots -- Guaranteed-retention FIFO categories.

Each slot category is a short list ordered newest-first.  Adding
content that is already present refreshes it (mentions + timestamp)
rather than duplicating it; overflow always drops the oldest item.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Sequence, Tuple, Union

from mnemo.core.types import MemoryItem, NotFound, RemovedItem
from mnemo.working.state import SessionMemoryState

log = logging.getLogger(__name__)

# Categories scanned first by remove_by_content, in this order.
PRIORITY_ORDER = ("error", "decision")


class SlotStore:
    """FIFO slot operations over a ``SessionMemoryState``.

    Parameters
    ----------
    capacities : mapping
        ``{category: capacity}`` for every slot category.
    """

    def __init__(self, capacities: Mapping[str, int]) -> None:
        self.capacities = dict(capacities)
        self.scan_order: Tuple[str, ...] = tuple(
            [c for c in PRIORITY_ORDER if c in self.capacities]
            + [c for c in self.capacities if c not in PRIORITY_ORDER]
        )

    def add_or_refresh(
        self, state: SessionMemoryState, item: MemoryItem
    ) -> Tuple[MemoryItem, str, List[MemoryItem]]:
        """Insert *item* or refresh its duplicate.

        Returns ``(stored_copy, action, dropped)`` where *action* is
        ``"added"`` or ``"refreshed"`` and *dropped* lists items evicted
        by the capacity limit.
        """
        category = item.category
        capacity = self.capacities[category]
        items = state.slots.setdefault(category, [])

        existing = next((i for i in items if i.content == item.content), None)
        if existing is not None:
            existing.mentions += 1
            existing.created_at = item.created_at
            stored, action = existing, "refreshed"
        else:
            stored = item.copy()
            stored.score = 0.0
            stored.last_scored_at = None
            items.insert(0, stored)
            action = "added"

        # Stable sort: among equal timestamps the fresh insert stays first.
        items.sort(key=lambda i: i.created_at, reverse=True)
        dropped = items[capacity:]
        del items[capacity:]
        for d in dropped:
            log.debug("Slot %s full, dropped oldest: %.60s", category, d.content)
        return stored.copy(), action, [d.copy() for d in dropped]

    def clear_category(
        self, state: SessionMemoryState, category: str
    ) -> Union[int, NotFound]:
        """Empty one slot category and return how many items it held."""
        if category not in self.capacities:
            return NotFound(f"unknown slot category: {category!r}")
        removed = len(state.slots.get(category, []))
        state.slots[category] = []
        return removed

    def remove_by_content(
        self, state: SessionMemoryState, substring: str
    ) -> Union[RemovedItem, NotFound]:
        """Remove the first slot item, then pool item, containing *substring*."""
        for category in self.scan_order:
            items = state.slots.get(category, [])
            for idx, it in enumerate(items):
                if substring in it.content:
                    return RemovedItem(item=items.pop(idx), location=category)
        for idx, it in enumerate(state.pool):
            if substring in it.content:
                return RemovedItem(item=state.pool.pop(idx), location="pool")
        return NotFound(f"no item matching {substring!r}")

    def newest_first(self, state: SessionMemoryState, category: str) -> Sequence[MemoryItem]:
        return sorted(state.slots.get(category, []), key=lambda i: i.created_at, reverse=True)
