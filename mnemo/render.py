"""
mnemo.render -- Text sections for system-prompt injection.

Working memory is rendered slots first (guaranteed), then pool items by
score, until a character budget is spent.  Each item is charged its
length plus a fixed formatting overhead.
"""

from __future__ import annotations

import os
import re
from typing import Dict, List, Optional, Sequence, Tuple

from mnemo.blocks import CoreMemory
from mnemo.core.types import MemoryItem
from mnemo.pressure.monitor import PressureLevel, PressureSample
from mnemo.working.state import SessionMemoryState

ITEM_OVERHEAD = 20

CATEGORY_LABELS: Dict[str, str] = {
    "error": "Recent Errors",
    "decision": "Decisions",
    "file-path": "Key Files",
    "other": "Notes",
}

_PATH_SHORTENINGS: Sequence[Tuple[str, str]] = (
    ("/packages/", "/pkg/"),
    ("/node_modules/", "/nm/"),
    ("/typescript/", "/ts/"),
    ("/javascript/", "/js/"),
)

BLOCK_PLACEHOLDERS: Dict[str, str] = {
    "goal": "[Not set - ask the user for goals and update this block]",
    "progress": "[No progress tracked yet - update as you work]",
    "context": "[No project context set - add relevant file paths, conventions, etc.]",
}


def compress_path(content: str, home: Optional[str] = None) -> str:
    """Abbreviate a path for display (home -> ~, common dirs shortened)."""
    home = home if home is not None else os.path.expanduser("~")
    out = content
    if home and home != "~":
        out = re.sub(rf"^{re.escape(home)}", "~", out)
    for long, short in _PATH_SHORTENINGS:
        out = out.replace(long, short)
    return out


def select_for_prompt(
    state: SessionMemoryState, budget: int
) -> Tuple[List[MemoryItem], List[MemoryItem]]:
    """Pick ``(slot_items, pool_items)`` that fit in *budget* characters."""
    slot_items: List[MemoryItem] = []
    pool_items: List[MemoryItem] = []
    used = 0

    for category, items in state.slots.items():
        for item in sorted(items, key=lambda i: i.created_at, reverse=True):
            cost = len(item.content) + ITEM_OVERHEAD
            if used + cost > budget:
                break
            slot_items.append(item)
            used += cost

    for item in sorted(state.pool, key=lambda i: i.score, reverse=True):
        cost = len(item.content) + ITEM_OVERHEAD
        if used + cost > budget:
            break
        pool_items.append(item)
        used += cost

    return slot_items, pool_items


def render_working_memory(state: SessionMemoryState, budget: int = 1600) -> str:
    slot_items, pool_items = select_for_prompt(state, budget)
    if not slot_items and not pool_items:
        return ""

    by_category: Dict[str, List[MemoryItem]] = {}
    for item in slot_items + pool_items:
        by_category.setdefault(item.category, []).append(item)

    sections = []
    for category, items in by_category.items():
        label = CATEGORY_LABELS.get(category, category.replace("-", " ").title())
        lines = [
            f"  - {compress_path(i.content) if category == 'file-path' else i.content}"
            for i in items
        ]
        sections.append(f"{label}:\n" + "\n".join(lines))

    total = len(slot_items) + len(pool_items)
    body = "\n\n".join(sections)
    return (
        "<working_memory>\n"
        "Recent session context (auto-managed, sorted by relevance):\n\n"
        f"{body}\n\n"
        f"({total} items shown)\n"
        "</working_memory>"
    )


def render_core_blocks(memory: CoreMemory) -> str:
    parts = [
        "<core_memory>",
        "The following persistent memory blocks track your current task state:",
        "",
    ]
    for name, block in memory.blocks.items():
        value = block.value or BLOCK_PLACEHOLDERS.get(name, "[Empty]")
        parts.append(f'<{name} chars="{len(block.value)}/{block.char_limit}">')
        parts.append(value)
        parts.append(f"</{name}>")
        parts.append("")
    parts.append(
        "These blocks persist across conversation resets and compaction. "
        "Update them regularly; compress or rephrase content as blocks near their limits."
    )
    parts.append(
        "To record a decision for automatic capture into working memory, "
        "write inline: [Decision: chose X over Y because Z]"
    )
    parts.append("</core_memory>")
    return "\n".join(parts)


def pressure_warning(sample: Optional[PressureSample]) -> str:
    """Passive warning for the next prompt; empty when pressure is safe."""
    if sample is None:
        return ""
    if sample.level is PressureLevel.HIGH:
        return (
            f"HIGH CONTEXT PRESSURE: {sample.percent}% of usable context. "
            "Compaction approaching. Pause the current task, write progress, findings "
            "and exact next steps to core memory, clear resolved working-memory slots, "
            "then delegate remaining exploration to sub-tasks."
        )
    if sample.level is PressureLevel.MODERATE:
        return (
            f"Context pressure: {sample.percent}%. Prefer sub-tasks for exploration "
            "and keep core memory up to date."
        )
    return ""
