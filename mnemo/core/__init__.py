"""mnemo.core -- Configuration, shared types, sessions, and logging."""

from mnemo.core.config import Config
from mnemo.core.types import (
    AddResult,
    MemoryItem,
    NotFound,
    RemovedItem,
    generate_id,
    now_iso,
)

__all__ = [
    "Config",
    "AddResult",
    "MemoryItem",
    "NotFound",
    "RemovedItem",
    "generate_id",
    "now_iso",
]
