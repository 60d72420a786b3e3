"""
mnemo.compaction -- Per-session record of host compaction events.

The host compacts the transcript on its own schedule.  mnemo only
notices through the ``compacting`` event, trims working memory ahead of
it, and counts how many times it has happened.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from mnemo.core.sessions import SessionLocks
from mnemo.core.types import now_iso
from mnemo.storage.kv import KVStore

log = logging.getLogger(__name__)


@dataclass
class CompactionLog:
    session_id: str
    compaction_count: int = 0
    last_compaction: Optional[float] = None  # epoch seconds
    preserved_items: int = 0
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "compaction_count": self.compaction_count,
            "last_compaction": self.last_compaction,
            "preserved_items": self.preserved_items,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CompactionLog":
        return cls(
            session_id=d["session_id"],
            compaction_count=int(d.get("compaction_count", 0)),
            last_compaction=d.get("last_compaction"),
            preserved_items=int(d.get("preserved_items", 0)),
            updated_at=d.get("updated_at") or now_iso(),
        )


class CompactionTracker:
    """Load, bump and save ``CompactionLog`` documents."""

    def __init__(self, store: KVStore, locks: Optional[SessionLocks] = None) -> None:
        self.store = store
        self.locks = locks if locks is not None else SessionLocks()

    def get(self, session_id: str) -> Optional[CompactionLog]:
        data = self.store.get(session_id)
        if data is None:
            return None
        try:
            return CompactionLog.from_dict(json.loads(data.decode("utf-8")))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning("Discarding unreadable compaction log for %s: %s", session_id, exc)
            return None

    def record(self, session_id: str, preserved_items: int, now: Optional[float] = None) -> CompactionLog:
        with self.locks.hold(session_id):
            entry = self.get(session_id) or CompactionLog(session_id=session_id)
            entry.compaction_count += 1
            entry.last_compaction = time.time() if now is None else now
            entry.preserved_items = preserved_items
            entry.updated_at = now_iso()
            try:
                self.store.put(
                    session_id,
                    json.dumps(entry.to_dict(), indent=2, sort_keys=True).encode("utf-8"),
                )
            except Exception as exc:
                log.warning("Failed to save compaction log for %s: %s", session_id, exc)
        log.info(
            "Compaction #%d for %s (%d items preserved)",
            entry.compaction_count,
            session_id,
            preserved_items,
        )
        return entry

    def delete(self, session_id: str) -> bool:
        with self.locks.hold(session_id):
            try:
                return self.store.delete(session_id)
            except Exception as exc:
                log.warning("Failed to delete compaction log for %s: %s", session_id, exc)
                return False
