"""Tests for mnemo.pruning -- rule lookup and compression strategies."""

import pytest

from mnemo.pressure.monitor import PressureLevel
from mnemo.pruning.engine import (
    DISCARD_ACK,
    PressureLimits,
    apply_pressure_limits,
    compress,
    keep_ends,
    keep_last,
    limits_from_config,
    summarize,
)
from mnemo.pruning.rules import DEFAULT_RULE, PruningRule, Strategy, build_rules, resolve_rule


class TestRules:
    @pytest.mark.parametrize("source,strategy", [
        ("grep", Strategy.KEEP_ALL),
        ("glob", Strategy.KEEP_ALL),
        ("skill", Strategy.KEEP_ALL),
        ("memory_retrieve", Strategy.KEEP_ALL),
        ("read", Strategy.KEEP_ENDS),
        ("bash", Strategy.KEEP_LAST),
        ("task", Strategy.KEEP_LAST),
        ("edit", Strategy.DISCARD),
        ("write", Strategy.DISCARD),
    ])
    def test_default_table(self, source, strategy):
        assert resolve_rule(source).strategy is strategy

    def test_parameters(self):
        assert resolve_rule("read") == PruningRule(Strategy.KEEP_ENDS, first_chars=500, last_chars=300)
        assert resolve_rule("task").max_chars == 1500

    def test_unknown_source_default(self):
        assert resolve_rule("webfetch") == DEFAULT_RULE
        assert DEFAULT_RULE.max_chars == 1000

    def test_exact_match_only(self):
        assert resolve_rule("Read") == DEFAULT_RULE

    def test_overrides(self):
        rules = build_rules({
            "read": {"strategy": "keep-ends", "first_chars": 800, "last_chars": 200},
            "webfetch": {"strategy": "summarize"},
        })
        assert resolve_rule("read", rules).first_chars == 800
        assert resolve_rule("webfetch", rules).max_chars == 500
        assert resolve_rule("grep", rules).strategy is Strategy.KEEP_ALL

    def test_bad_strategy(self):
        with pytest.raises(ValueError):
            PruningRule.from_dict({"strategy": "compress-harder"})


class TestStrategies:
    def test_keep_ends_omitted_count(self):
        text = "x" * 100
        out = keep_ends(text, 10, 5)
        assert "[... 85 chars omitted for brevity ...]" in out
        assert out.startswith("x" * 10 + "\n\n[")
        assert out.endswith("]\n\n" + "x" * 5)

    def test_keep_ends_short_text(self):
        assert keep_ends("short", 10, 5) == "short"
        assert keep_ends("x" * 15, 10, 5) == "x" * 15

    def test_keep_last(self):
        text = "a" * 50 + "b" * 10
        out = keep_last(text, 10)
        assert out == "[... 50 chars omitted ...]\n\n" + "b" * 10
        assert keep_last("abc", 10) == "abc"

    def test_summarize(self):
        out = summarize("y" * 30, 10)
        assert out == "y" * 10 + "\n[... truncated at 10 chars ...]"

    def test_pure(self):
        text = "z" * 3000
        rule = resolve_rule("bash")
        assert compress(text, rule) == compress(text, rule)


class TestCompress:
    def test_keep_all(self):
        assert compress("x" * 5000, resolve_rule("grep")) == "x" * 5000

    def test_discard(self):
        assert compress("wrote file", resolve_rule("edit")) == DISCARD_ACK

    def test_keep_ends_via_rule(self):
        rule = PruningRule(Strategy.KEEP_ENDS, first_chars=10, last_chars=5)
        assert "85 chars omitted" in compress("q" * 100, rule)

    def test_safe_ignores_ceilings(self):
        text = "\n".join(["line"] * 20)
        limits = {PressureLevel.MODERATE: PressureLimits(max_lines=3, max_chars=10_000)}
        assert compress(text, resolve_rule("grep"), PressureLevel.SAFE, limits) == text

    def test_moderate_line_ceiling(self):
        text = "\n".join(f"l{i}" for i in range(10))
        limits = {PressureLevel.MODERATE: PressureLimits(max_lines=3, max_chars=10_000)}
        out = compress(text, resolve_rule("grep"), PressureLevel.MODERATE, limits)
        assert out.startswith("l0\nl1\nl2\n\n")
        assert "[memory pressure: 7 lines omitted. Prefer targeted searches over full reads.]" in out

    def test_high_char_ceiling_then_strategy(self):
        limits = {PressureLevel.HIGH: PressureLimits(max_lines=100, max_chars=50)}
        out = compress("w" * 80, resolve_rule("grep"), PressureLevel.HIGH, limits)
        assert out == "w" * 50 + "\n\n[memory pressure: 30 chars omitted]"

    def test_default_ceilings(self):
        text = "\n".join(["x"] * 2500)
        out = compress(text, resolve_rule("grep"), PressureLevel.HIGH)
        assert "500 lines omitted" in out
        assert compress(text, resolve_rule("grep"), PressureLevel.MODERATE) == text


class TestLimits:
    def test_from_config(self):
        table = limits_from_config({"moderate": {"max_lines": 10}, "safe": {"max_lines": 1}})
        assert table[PressureLevel.MODERATE] == PressureLimits(max_lines=10, max_chars=200_000)
        assert table[PressureLevel.HIGH] == PressureLimits(max_lines=2000, max_chars=100_000)
        assert PressureLevel.SAFE not in table

    def test_apply_within_limits(self):
        assert apply_pressure_limits("abc", PressureLimits(10, 10)) == "abc"
