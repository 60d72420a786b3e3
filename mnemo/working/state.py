"""
mnemo.working.state -- The per-session working-memory document.

One ``SessionMemoryState`` holds a list per slot category, the shared
pool, and the session's logical clock (``event_counter``).  The codec
turns it into canonical JSON bytes (sorted keys, fixed indent) so that
loading a saved document and saving it again is byte-identical.

Anything that cannot be decoded -- absent, truncated, wrong shape --
becomes a fresh empty state.  Memory is advisory; a corrupt document
must never take the host down.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from mnemo.core.types import MemoryItem, now_iso

log = logging.getLogger(__name__)


@dataclass
class SessionMemoryState:
    """Slots, pool, and logical clock for one session."""

    session_id: str
    slots: Dict[str, List[MemoryItem]] = field(default_factory=dict)
    pool: List[MemoryItem] = field(default_factory=list)
    event_counter: int = 0
    updated_at: str = field(default_factory=now_iso)

    @classmethod
    def empty(cls, session_id: str, slot_categories: Iterable[str]) -> "SessionMemoryState":
        return cls(session_id=session_id, slots={c: [] for c in slot_categories})

    def tick(self) -> int:
        """Advance the logical clock by one and return the new value."""
        self.event_counter += 1
        return self.event_counter

    def touch(self) -> None:
        self.updated_at = now_iso()

    def item_count(self) -> int:
        return sum(len(v) for v in self.slots.values()) + len(self.pool)

    def all_items(self) -> List[MemoryItem]:
        items: List[MemoryItem] = []
        for slot_items in self.slots.values():
            items.extend(slot_items)
        items.extend(self.pool)
        return items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "slots": {c: [i.to_dict() for i in items] for c, items in self.slots.items()},
            "pool": [i.to_dict() for i in self.pool],
            "event_counter": self.event_counter,
            "updated_at": self.updated_at,
        }


class StateCodec:
    """Encode/decode ``SessionMemoryState`` documents.

    Parameters
    ----------
    slot_capacities : mapping
        Configured slot categories and their capacities.  Used to shape
        fresh states and to migrate legacy flat documents.
    pool_max_items : int
        Pool cap applied to migrated documents.
    """

    def __init__(self, slot_capacities: Mapping[str, int], pool_max_items: int) -> None:
        self.slot_capacities = dict(slot_capacities)
        self.pool_max_items = pool_max_items

    def empty(self, session_id: str) -> SessionMemoryState:
        return SessionMemoryState.empty(session_id, self.slot_capacities)

    @staticmethod
    def encode(state: SessionMemoryState) -> bytes:
        return json.dumps(state.to_dict(), indent=2, sort_keys=True).encode("utf-8")

    def decode(self, session_id: str, data: Optional[bytes]) -> SessionMemoryState:
        if data is None:
            return self.empty(session_id)
        try:
            raw = json.loads(data.decode("utf-8"))
            if not isinstance(raw, dict):
                raise ValueError(f"expected an object, got {type(raw).__name__}")
            if "slots" not in raw and isinstance(raw.get("items"), list):
                return self._migrate(session_id, raw)
            return self._from_dict(session_id, raw)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning(
                "Discarding unreadable working memory for %s: %s", session_id, exc
            )
            return self.empty(session_id)

    # -- internals ----------------------------------------------------------

    def _from_dict(self, session_id: str, raw: Dict[str, Any]) -> SessionMemoryState:
        raw_slots = raw.get("slots") or {}
        if not isinstance(raw_slots, dict):
            raise ValueError("slots must be an object")
        slots = {
            c: [MemoryItem.from_dict(d) for d in raw_slots.get(c, [])]
            for c in self.slot_capacities
        }
        return SessionMemoryState(
            session_id=raw.get("session_id") or session_id,
            slots=slots,
            pool=[MemoryItem.from_dict(d) for d in raw.get("pool", [])],
            event_counter=int(raw.get("event_counter", 0)),
            updated_at=raw.get("updated_at") or now_iso(),
        )

    def _migrate(self, session_id: str, raw: Dict[str, Any]) -> SessionMemoryState:
        """Route a legacy flat ``items`` list into slots and pool."""
        state = self.empty(raw.get("session_id") or session_id)
        for d in raw["items"]:
            item = MemoryItem.from_dict(d)
            if item.category in state.slots:
                state.slots[item.category].append(item)
            else:
                state.pool.append(item)

        for category, cap in self.slot_capacities.items():
            items = sorted(state.slots[category], key=lambda i: i.created_at, reverse=True)
            state.slots[category] = items[:cap]

        state.pool.sort(key=lambda i: i.score, reverse=True)
        del state.pool[self.pool_max_items:]

        log.info(
            "Migrated legacy working memory for %s: %d items -> %d slot + %d pool",
            state.session_id,
            len(raw["items"]),
            sum(len(v) for v in state.slots.values()),
            len(state.pool),
        )
        state.touch()
        return state
