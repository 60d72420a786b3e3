"""mnemo.working -- Slot/pool working memory."""

from mnemo.working.behaviors import PoolBehavior, SlotBehavior, build_behaviors
from mnemo.working.memory import WorkingMemory
from mnemo.working.pool import PoolStore, decayed_score
from mnemo.working.slots import SlotStore
from mnemo.working.state import SessionMemoryState, StateCodec

__all__ = [
    "WorkingMemory",
    "SessionMemoryState",
    "StateCodec",
    "SlotStore",
    "PoolStore",
    "decayed_score",
    "SlotBehavior",
    "PoolBehavior",
    "build_behaviors",
]
