"""
mnemo.working.memory -- Session working memory: load, mutate, save.

``WorkingMemory`` is the only writer of ``SessionMemoryState``
documents.  Each public operation loads the whole document, mutates it
through the slot/pool stores, and saves it back before returning, all
under the session's lock.

Failures to persist are logged and swallowed: working memory is
advisory and must never block the agent loop.  The worst case is an
empty memory for that session.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Dict, Optional, Union

from mnemo.core.config import Config
from mnemo.core.sessions import SessionLocks
from mnemo.core.types import AddResult, MemoryItem, NotFound, RemovedItem
from mnemo.storage.kv import KVStore
from mnemo.working.behaviors import Behavior, build_behaviors
from mnemo.working.pool import PoolStore
from mnemo.working.slots import SlotStore
from mnemo.working.state import SessionMemoryState, StateCodec

log = logging.getLogger("mnemo.working")


class WorkingMemory:
    """Per-session slot/pool memory backed by a ``KVStore``.

    Parameters
    ----------
    config : Config
        Category table, capacities and decay constants.
    store : KVStore
        Where session documents live.
    locks : SessionLocks | None
        Shared per-session locks.  A private registry is created when
        omitted.
    """

    def __init__(
        self,
        config: Config,
        store: KVStore,
        locks: Optional[SessionLocks] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.locks = locks if locks is not None else SessionLocks()
        self.codec = StateCodec(config.slot_capacities, config.pool_max_items)
        self.slots = SlotStore(config.slot_capacities)
        self.pool = PoolStore(
            max_items=config.pool_max_items,
            gamma=config.pool_gamma,
            min_score=config.pool_min_score,
            mention_weight=config.pool_mention_weight,
            initial_score=config.pool_initial_score,
        )
        self.behaviors: Dict[str, Behavior] = build_behaviors(config, self.slots, self.pool)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, session_id: str) -> SessionMemoryState:
        """Load a session's state; absent or corrupt yields an empty one."""
        return self.codec.decode(session_id, self.store.get(session_id))

    def save(self, state: SessionMemoryState) -> bool:
        try:
            self.store.put(state.session_id, self.codec.encode(state))
            return True
        except Exception as exc:
            log.warning("Failed to save working memory for %s: %s", state.session_id, exc)
            return False

    def exists(self, session_id: str) -> bool:
        return self.store.get(session_id) is not None

    def delete(self, session_id: str) -> bool:
        with self.locks.hold(session_id):
            try:
                return self.store.delete(session_id)
            except Exception as exc:
                log.warning("Failed to delete working memory for %s: %s", session_id, exc)
                return False

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(
        self,
        session_id: str,
        content: str,
        category: str = "other",
        source: str = "manual",
        created_at: Optional[float] = None,
    ) -> Union[AddResult, NotFound]:
        """Add one fact, routing it by category.

        Content over ``max_chars_per_item`` is truncated and the result
        carries a warning.  Unknown categories return ``NotFound``.
        """
        behavior = self.behaviors.get(category)
        if behavior is None:
            return NotFound(f"unknown category: {category!r}")

        content = content.strip()
        if not content:
            return NotFound("empty content")

        warning = None
        limit = self.config.max_chars_per_item
        if len(content) > limit:
            warning = (
                f"Content exceeds item limit ({limit} chars). "
                f"Truncated {len(content) - limit} chars."
            )
            content = content[:limit]

        item = MemoryItem(
            content=content,
            category=category,
            source=source,
            created_at=time.time() if created_at is None else created_at,
        )

        with self.locks.hold(session_id):
            state = self.load(session_id)
            state.tick()
            stored, action, dropped = behavior.add(state, item)
            state.touch()
            self.save(state)

        if dropped:
            log.debug(
                "Session %s: %d item(s) dropped by %s %s",
                session_id,
                len(dropped),
                behavior.kind,
                category,
            )
        return AddResult(item=stored, action=action, kind=behavior.kind, warning=warning)

    def clear(self, session_id: str) -> int:
        """Reset the session to an empty memory.  Returns items removed."""
        with self.locks.hold(session_id):
            removed = self.load(session_id).item_count()
            self.save(self.codec.empty(session_id))
        return removed

    def clear_category(self, session_id: str, category: str) -> Union[int, NotFound]:
        with self.locks.hold(session_id):
            state = self.load(session_id)
            result = self.slots.clear_category(state, category)
            if isinstance(result, NotFound):
                return result
            state.touch()
            self.save(state)
        return result

    def remove(self, session_id: str, substring: str) -> Union[RemovedItem, NotFound]:
        if not substring:
            return NotFound("empty match string")
        with self.locks.hold(session_id):
            state = self.load(session_id)
            result = self.slots.remove_by_content(state, substring)
            if isinstance(result, NotFound):
                return result
            state.touch()
            self.save(state)
        return result

    def preserve_relevant(self, session_id: str, keep_fraction: Optional[float] = None) -> int:
        """Trim the pool ahead of host compaction.

        Slot items are always kept; the pool keeps its top
        ``max(1, ceil(n * keep_fraction))`` members.  Returns the number
        of items preserved.
        """
        fraction = self.config.compaction_keep_fraction if keep_fraction is None else keep_fraction
        with self.locks.hold(session_id):
            if not self.exists(session_id):
                return 0
            state = self.load(session_id)
            if state.pool:
                keep = max(1, math.ceil(len(state.pool) * fraction))
                self.pool.keep_top(state, keep)
            state.touch()
            self.save(state)
            return state.item_count()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, session_id: str) -> SessionMemoryState:
        """Detached copy of the current state."""
        return self.load(session_id)

    def item_count(self, session_id: str) -> int:
        return self.load(session_id).item_count()

    def is_slot_category(self, category: str) -> bool:
        b = self.behaviors.get(category)
        return b is not None and b.kind == "slot"
