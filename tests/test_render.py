"""Tests for mnemo.render -- prompt sections."""

import pytest

from mnemo.blocks import CoreBlocks
from mnemo.core.config import DEFAULT_BLOCK_LIMITS
from mnemo.pressure.monitor import PressureLevel, PressureSample
from mnemo.render import (
    ITEM_OVERHEAD,
    compress_path,
    pressure_warning,
    render_core_blocks,
    render_working_memory,
    select_for_prompt,
)


class TestCompressPath:
    def test_home(self):
        assert compress_path("/home/dev/proj/a.ts", home="/home/dev") == "~/proj/a.ts"

    def test_common_dirs(self):
        path = "/w/packages/core/node_modules/x/src/typescript/a.ts"
        assert compress_path(path, home="") == "/w/pkg/core/nm/x/src/ts/a.ts"

    def test_home_only_as_prefix(self):
        assert compress_path("/srv/home/dev/a", home="/home/dev") == "/srv/home/dev/a"


class TestSelect:
    def test_slots_before_pool(self, memory):
        memory.add("ses", "p" * 30, "other")
        memory.add("ses", "e" * 30, "error")
        state = memory.snapshot("ses")
        slots, pool = select_for_prompt(state, 30 + ITEM_OVERHEAD)
        assert [i.category for i in slots] == ["error"]
        assert pool == []

    def test_budget_respected(self, memory):
        for i in range(10):
            memory.add("ses", f"{i}" * 50)
        slots, pool = select_for_prompt(memory.snapshot("ses"), 200)
        assert len(pool) == 2  # 2 * 70 <= 200 < 3 * 70
        assert sum(len(i.content) + ITEM_OVERHEAD for i in pool) <= 200

    def test_pool_by_score(self, memory):
        for c in ["a", "b", "a"]:
            memory.add("ses", c)
        _, pool = select_for_prompt(memory.snapshot("ses"), 1000)
        assert [i.content for i in pool] == ["a", "b"]


class TestRenderWorkingMemory:
    def test_empty(self, memory):
        assert render_working_memory(memory.snapshot("ses")) == ""

    def test_sections(self, memory):
        memory.add("ses", "TypeError: boom", "error")
        memory.add("ses", "use sqlite", "decision")
        memory.add("ses", "/w/packages/a.ts", "file-path")
        out = render_working_memory(memory.snapshot("ses"))
        assert out.startswith("<working_memory>")
        assert out.endswith("</working_memory>")
        assert "Recent Errors:\n  - TypeError: boom" in out
        assert "Decisions:\n  - use sqlite" in out
        assert "Key Files:\n  - /w/pkg/a.ts" in out
        assert "(3 items shown)" in out


class TestRenderCoreBlocks:
    def test_placeholders_and_counts(self, kv):
        blocks = CoreBlocks(kv, DEFAULT_BLOCK_LIMITS)
        blocks.update("ses", "goal", "replace", "Ship it")
        out = render_core_blocks(blocks.read("ses"))
        assert '<goal chars="7/1000">\nShip it\n</goal>' in out
        assert "[No progress tracked yet" in out
        assert "[Decision:" in out
        assert out.startswith("<core_memory>")


class TestPressureWarning:
    @pytest.mark.parametrize("level,needle", [
        (PressureLevel.HIGH, "HIGH CONTEXT PRESSURE: 95%"),
        (PressureLevel.MODERATE, "Context pressure: 95%"),
    ])
    def test_levels(self, level, needle):
        assert needle in pressure_warning(PressureSample("ses", 0.95, level))

    def test_safe_and_none(self):
        assert pressure_warning(PressureSample("ses", 0.1, PressureLevel.SAFE)) == ""
        assert pressure_warning(None) == ""
