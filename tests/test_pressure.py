"""Tests for mnemo.pressure.monitor and mnemo.pressure.usage."""

import json
import math

import pytest

from mnemo.pressure.monitor import PressureLevel, PressureMonitor, PressureSample, normalise_ratio
from mnemo.pressure.usage import ModelLimits, max_output_tokens, usable_tokens, usage_ratio


@pytest.fixture
def monitor(kv):
    return PressureMonitor(kv)


class TestPressureLevel:
    def test_total_order(self):
        assert PressureLevel.SAFE < PressureLevel.MODERATE < PressureLevel.HIGH
        assert PressureLevel.HIGH > PressureLevel.SAFE
        assert max(PressureLevel) is PressureLevel.HIGH

    @pytest.mark.parametrize("raw,level", [
        ("high", PressureLevel.HIGH),
        ("MODERATE", PressureLevel.MODERATE),
        ("bogus", PressureLevel.SAFE),
        (None, PressureLevel.SAFE),
    ])
    def test_parse(self, raw, level):
        assert PressureLevel.parse(raw) is level


class TestClassify:
    @pytest.mark.parametrize("ratio,level", [
        (0.0, PressureLevel.SAFE),
        (0.7499, PressureLevel.SAFE),
        (0.75, PressureLevel.MODERATE),
        (0.8999, PressureLevel.MODERATE),
        (0.90, PressureLevel.HIGH),
        (1.3, PressureLevel.HIGH),
    ])
    def test_closed_lower_bounds(self, monitor, ratio, level):
        assert monitor.classify(ratio) is level

    def test_custom_thresholds(self, kv):
        m = PressureMonitor(kv, moderate=0.5, high=0.6)
        assert m.classify(0.55) is PressureLevel.MODERATE


class TestMalformed:
    @pytest.mark.parametrize("value", [None, "abc", float("nan"), math.inf, -0.2, True, [0.9]])
    def test_sample_is_safe(self, monitor, value):
        sample = monitor.sample("ses", value)
        assert sample.level is PressureLevel.SAFE
        assert sample.usage_ratio == 0.0

    def test_numeric_string_accepted(self):
        assert normalise_ratio("0.8") == pytest.approx(0.8)

    @pytest.mark.parametrize("used,cap", [(10, 0), (10, -5), (10, "x"), (None, 100)])
    def test_ratio_none(self, used, cap):
        assert PressureMonitor.ratio(used, cap) is None

    def test_ratio(self):
        assert PressureMonitor.ratio(50, 200) == pytest.approx(0.25)

    def test_huge_finite_ratio_is_high(self, monitor):
        sample = monitor.sample("ses", 1e307)
        assert sample.level is PressureLevel.HIGH
        assert sample.percent == 1000


class TestSample:
    def test_first_sample_previous_safe(self, monitor):
        sample = monitor.sample("ses", 0.8)
        assert sample.level is PressureLevel.MODERATE
        assert sample.previous_level is PressureLevel.SAFE
        assert sample.escalated

    def test_previous_level_chain(self, monitor):
        levels = [monitor.sample("ses", r) for r in (0.5, 0.8, 0.95, 0.6)]
        assert [s.previous_level for s in levels] == [
            PressureLevel.SAFE, PressureLevel.SAFE, PressureLevel.MODERATE, PressureLevel.HIGH,
        ]
        assert levels[-1].de_escalated

    def test_no_smoothing(self, monitor):
        monitor.sample("ses", 0.99)
        assert monitor.sample("ses", 0.1).level is PressureLevel.SAFE

    def test_current_and_level(self, monitor):
        assert monitor.current("ses") is None
        assert monitor.level("ses") is PressureLevel.SAFE
        monitor.sample("ses", 0.92, model_id="claude")
        current = monitor.current("ses")
        assert current.level is PressureLevel.HIGH
        assert current.model_id == "claude"
        assert current.percent == 92

    def test_document_shape(self, monitor, kv):
        monitor.sample("ses", 0.8)
        text = kv.get("ses").decode("utf-8")
        raw = json.loads(text)
        assert text == json.dumps(raw, indent=2, sort_keys=True)
        assert raw["level"] == "moderate"
        assert raw["previous_level"] == "safe"

    def test_unreadable_sample(self, monitor, kv):
        kv.put("ses", b"garbage")
        assert monitor.current("ses") is None
        assert monitor.sample("ses", 0.95).previous_level is PressureLevel.SAFE

    def test_delete(self, monitor):
        monitor.sample("ses", 0.5)
        assert monitor.delete("ses")
        assert monitor.current("ses") is None

    def test_sample_roundtrip(self):
        s = PressureSample("ses", 0.8, PressureLevel.MODERATE, PressureLevel.SAFE, model_id="m")
        assert PressureSample.from_dict(s.to_dict()) == s


class TestUsage:
    def test_context_minus_output(self):
        assert usable_tokens(ModelLimits(context=200_000, output=8_000)) == 192_000

    def test_output_defaults_and_caps(self):
        assert max_output_tokens(ModelLimits(context=100)) == 32_000
        assert max_output_tokens(ModelLimits(context=100, output=64_000)) == 32_000
        assert usable_tokens(ModelLimits(context=200_000)) == 168_000

    def test_input_limit_reserves_buffer(self):
        limits = ModelLimits(context=400_000, output=64_000, input=272_000)
        assert usable_tokens(limits) == 252_000

    def test_ratio(self):
        limits = ModelLimits(context=200_000, output=8_000)
        assert usage_ratio(96_000, limits) == pytest.approx(0.5)

    def test_ratio_none_when_unusable(self):
        assert usage_ratio(10, ModelLimits(context=1_000)) is None

    def test_from_dict(self):
        limits = ModelLimits.from_dict({"context": 1000, "output": 0, "input": 0})
        assert limits == ModelLimits(context=1000, output=0, input=None)
