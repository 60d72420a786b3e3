"""
mnemo.core.types -- Data types shared across the mnemo stores.

Every structure here is a plain dataclass: no ORM, no magic,
serialisable to dict/JSON in one call.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def generate_id() -> str:
    """12-hex-char unique identifier."""
    return uuid.uuid4().hex[:12]


def now_iso() -> str:
    """Current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# MemoryItem -- one remembered fact
# ---------------------------------------------------------------------------


@dataclass
class MemoryItem:
    """
    One fact held in working memory.

    Slot items use only ``mentions`` for bookkeeping; ``score`` and
    ``last_scored_at`` belong to pool items, where ``last_scored_at``
    is the logical-clock value of the last score update.
    """

    content: str
    category: str = "other"
    source: str = "manual"

    # auto-populated
    id: str = field(default_factory=generate_id)
    created_at: float = field(default_factory=time.time)
    mentions: int = 1
    score: float = 0.0
    last_scored_at: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.content, str):
            raise ValueError(f"content must be a string, got {type(self.content)!r}")
        if not self.category:
            raise ValueError("category must be a non-empty string")

    def copy(self) -> "MemoryItem":
        """Detached copy; stores never hand out live references."""
        return replace(self)

    # -- serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "content": self.content,
            "source": self.source,
            "created_at": self.created_at,
            "mentions": self.mentions,
            "score": self.score,
            "last_scored_at": self.last_scored_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MemoryItem":
        last = d.get("last_scored_at")
        return cls(
            id=d.get("id") or generate_id(),
            category=d.get("category") or d.get("type") or "other",
            content=d["content"],
            source=d.get("source", "manual"),
            created_at=float(d.get("created_at", d.get("timestamp", time.time()))),
            mentions=int(d.get("mentions", 1)),
            score=float(d.get("score", d.get("relevanceScore", 0.0))),
            last_scored_at=int(last) if last is not None else None,
        )


# ---------------------------------------------------------------------------
# Lookup results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotFound:
    """Typed lookup miss.  Falsy, so ``if not result:`` reads naturally."""

    reason: str

    def __bool__(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"found": False, "reason": self.reason}


@dataclass
class AddResult:
    """Outcome of adding one item to working memory.

    Attributes
    ----------
    item : MemoryItem
        Copy of the stored item after the add.
    action : str
        ``"added"`` or ``"refreshed"`` (dedup merge).
    kind : str
        ``"slot"`` or ``"pool"``.
    warning : str | None
        Set when the content was truncated to the per-item cap.
    """

    item: MemoryItem
    action: str
    kind: str
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "kind": self.kind,
            "item": self.item.to_dict(),
            "warning": self.warning,
        }


@dataclass
class RemovedItem:
    """An item removed by content match, and where it lived."""

    item: MemoryItem
    location: str  # slot category name or "pool"

    def to_dict(self) -> Dict[str, Any]:
        return {"found": True, "location": self.location, "item": self.item.to_dict()}
