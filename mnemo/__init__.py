"""
mnemo -- Pressure-aware working memory for long-running agents.

    from mnemo import MemorySystem

    memory = MemorySystem(data_dir="./data")
    memory.tool_executed("ses_1", "read", output, call_id="call_1")
    memory.usage_sample("ses_1", 0.82)
    sections = memory.system_context("ses_1")
"""

from mnemo.core.config import Config
from mnemo.core.types import AddResult, MemoryItem, NotFound, RemovedItem
from mnemo.pressure.monitor import PressureLevel, PressureSample
from mnemo.pruning.rules import PruningRule, Strategy
from mnemo.system import MemorySystem, UsageReport

__version__ = "0.1.0"

__all__ = [
    "MemorySystem",
    "UsageReport",
    "Config",
    "MemoryItem",
    "AddResult",
    "RemovedItem",
    "NotFound",
    "PressureLevel",
    "PressureSample",
    "PruningRule",
    "Strategy",
]
