"""mnemo.pressure -- Context pressure levels and the escalation trigger."""

from mnemo.pressure.intervention import (
    CallbackNotifier,
    Intervention,
    InterventionTrigger,
    LogNotifier,
    Notifier,
    NullNotifier,
)
from mnemo.pressure.monitor import PressureLevel, PressureMonitor, PressureSample
from mnemo.pressure.usage import ModelLimits, usable_tokens, usage_ratio

__all__ = [
    "PressureLevel",
    "PressureMonitor",
    "PressureSample",
    "InterventionTrigger",
    "Intervention",
    "Notifier",
    "LogNotifier",
    "CallbackNotifier",
    "NullNotifier",
    "ModelLimits",
    "usable_tokens",
    "usage_ratio",
]
