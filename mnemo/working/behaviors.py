"""
mnemo.working.behaviors -- Static category -> behaviour table.

Whether a category is FIFO-slotted or decay-pooled is configuration,
resolved once into a lookup table.  Callers dispatch through the
behaviour object instead of re-checking category names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

from mnemo.core.config import Config
from mnemo.core.types import MemoryItem
from mnemo.working.pool import PoolStore
from mnemo.working.slots import SlotStore
from mnemo.working.state import SessionMemoryState


@dataclass(frozen=True)
class SlotBehavior:
    """Category stored in a fixed-capacity FIFO slot."""

    category: str
    capacity: int
    store: SlotStore

    kind = "slot"

    def add(
        self, state: SessionMemoryState, item: MemoryItem
    ) -> Tuple[MemoryItem, str, List[MemoryItem]]:
        return self.store.add_or_refresh(state, item)


@dataclass(frozen=True)
class PoolBehavior:
    """Category stored in the shared decay-scored pool."""

    category: str
    store: PoolStore

    kind = "pool"

    def add(
        self, state: SessionMemoryState, item: MemoryItem
    ) -> Tuple[MemoryItem, str, List[MemoryItem]]:
        return self.store.ingest(state, item)


Behavior = Union[SlotBehavior, PoolBehavior]


def build_behaviors(
    config: Config, slots: SlotStore, pool: PoolStore
) -> Dict[str, Behavior]:
    """Build the category table from *config* (slots first)."""
    table: Dict[str, Behavior] = {}
    for category, capacity in config.slot_capacities.items():
        table[category] = SlotBehavior(category=category, capacity=int(capacity), store=slots)
    for category in config.pool_categories:
        table[category] = PoolBehavior(category=category, store=pool)
    return table
