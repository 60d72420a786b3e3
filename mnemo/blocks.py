"""
mnemo.blocks -- Persistent core-memory text blocks.

Three named blocks per session (goal, progress, context), each with a
hard character cap.  Writes replace or append; anything past the cap is
cut off and reported back as a warning rather than rejected.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from mnemo.core.sessions import SessionLocks
from mnemo.core.types import NotFound, now_iso
from mnemo.storage.kv import KVStore

log = logging.getLogger(__name__)

OPERATIONS = ("replace", "append")


@dataclass
class CoreBlock:
    value: str = ""
    char_limit: int = 1000
    last_modified: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "char_limit": self.char_limit,
            "last_modified": self.last_modified,
        }


@dataclass
class CoreMemory:
    session_id: str
    blocks: Dict[str, CoreBlock]
    updated_at: str = field(default_factory=now_iso)

    def has_content(self) -> bool:
        return any(b.value for b in self.blocks.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "blocks": {k: b.to_dict() for k, b in self.blocks.items()},
            "updated_at": self.updated_at,
        }


@dataclass
class BlockUpdate:
    """Result of ``CoreBlocks.update``."""

    block: str
    operation: str
    used: int
    limit: int
    warning: Optional[str] = None

    @property
    def message(self) -> str:
        status = f"Updated {self.block} block ({self.operation}): {self.used}/{self.limit} chars used."
        return f"{self.warning}\n\n{status}" if self.warning else status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block": self.block,
            "operation": self.operation,
            "used": self.used,
            "limit": self.limit,
            "warning": self.warning,
            "message": self.message,
        }


class CoreBlocks:
    """Load/mutate/save core-memory documents.

    Parameters
    ----------
    store : KVStore
        Where block documents live.
    limits : mapping
        ``{block_name: char_limit}``; also defines the valid block names.
    """

    def __init__(
        self,
        store: KVStore,
        limits: Mapping[str, int],
        locks: Optional[SessionLocks] = None,
    ) -> None:
        self.store = store
        self.limits = dict(limits)
        self.locks = locks if locks is not None else SessionLocks()

    def empty(self, session_id: str) -> CoreMemory:
        return CoreMemory(
            session_id=session_id,
            blocks={name: CoreBlock(char_limit=cap) for name, cap in self.limits.items()},
        )

    def read(self, session_id: str) -> Optional[CoreMemory]:
        """The session's blocks, or None if nothing was ever written."""
        data = self.store.get(session_id)
        if data is None:
            return None
        try:
            raw = json.loads(data.decode("utf-8"))
            memory = self.empty(session_id)
            for name, b in (raw.get("blocks") or {}).items():
                if name in memory.blocks:
                    memory.blocks[name] = CoreBlock(
                        value=b.get("value", ""),
                        char_limit=self.limits[name],
                        last_modified=b.get("last_modified") or now_iso(),
                    )
            memory.updated_at = raw.get("updated_at") or memory.updated_at
            return memory
        except (ValueError, TypeError, AttributeError) as exc:
            log.warning("Discarding unreadable core memory for %s: %s", session_id, exc)
            return None

    def update(
        self, session_id: str, block: str, operation: str, content: str
    ) -> Union[BlockUpdate, NotFound]:
        if block not in self.limits:
            return NotFound(f"unknown block: {block!r}")
        if operation not in OPERATIONS:
            return NotFound(f"unknown operation: {operation!r}")

        limit = self.limits[block]
        with self.locks.hold(session_id):
            memory = self.read(session_id) or self.empty(session_id)
            current = memory.blocks[block].value
            if operation == "append" and current:
                value = f"{current}\n{content}"
            else:
                value = content

            warning = None
            if len(value) > limit:
                warning = (
                    f"Content exceeds {block} block limit ({limit} chars). "
                    f"Truncated {len(value) - limit} chars."
                )
                value = value[:limit]

            now = now_iso()
            memory.blocks[block] = CoreBlock(value=value, char_limit=limit, last_modified=now)
            memory.updated_at = now
            self._save(memory)

        return BlockUpdate(block=block, operation=operation, used=len(value), limit=limit, warning=warning)

    def delete(self, session_id: str) -> bool:
        with self.locks.hold(session_id):
            try:
                return self.store.delete(session_id)
            except Exception as exc:
                log.warning("Failed to delete core memory for %s: %s", session_id, exc)
                return False

    def _save(self, memory: CoreMemory) -> None:
        try:
            self.store.put(
                memory.session_id,
                json.dumps(memory.to_dict(), indent=2, sort_keys=True).encode("utf-8"),
            )
        except Exception as exc:
            log.warning("Failed to save core memory for %s: %s", memory.session_id, exc)
