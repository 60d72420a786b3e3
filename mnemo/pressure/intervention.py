"""
mnemo.pressure.intervention -- One-shot advisory on escalation to HIGH.

The trigger fires when, and only when, a sample lands in HIGH coming
from SAFE or MODERATE.  Repeated HIGH samples stay quiet, as do
de-escalations, so a session hovering near its ceiling is not spammed.

Delivery is fire-and-forget.  A failing notifier is logged and
forgotten: the passive warning rendered into the next prompt is the
more reliable channel anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from mnemo.core.types import now_iso
from mnemo.pressure.monitor import PressureLevel, PressureSample

log = logging.getLogger(__name__)

INTERVENTION_MESSAGE = """\
HIGH CONTEXT PRESSURE DETECTED: {percent}% of the usable context is in use.

Compaction is approaching. Take action now to preserve your work:

1. Pause the current task.
2. Update core memory with:
   - current progress on the task
   - key findings and discoveries
   - the exact next steps to continue after compaction
3. Clear working-memory slots that are resolved (fixed errors, obsolete decisions).
4. Delegate remaining exploration to sub-tasks instead of reading files directly.

After completing these actions you may resume the current task."""


class Notifier(Protocol):
    def notify(self, session_id: str, message: str) -> None: ...


class LogNotifier:
    """Deliver interventions to the log."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or log

    def notify(self, session_id: str, message: str) -> None:
        self.logger.warning("Intervention for %s: %s", session_id, message.splitlines()[0])


class CallbackNotifier:
    """Deliver interventions through a host callable ``(session_id, message)``."""

    def __init__(self, callback: Callable[[str, str], Any]) -> None:
        self.callback = callback

    def notify(self, session_id: str, message: str) -> None:
        self.callback(session_id, message)


class NullNotifier:
    """Record interventions without delivering them."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []

    def notify(self, session_id: str, message: str) -> None:
        self.sent.append({"session_id": session_id, "message": message})


@dataclass
class Intervention:
    """A fired intervention and whether delivery succeeded."""

    session_id: str
    message: str
    delivered: bool
    fired_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "message": self.message,
            "delivered": self.delivered,
            "fired_at": self.fired_at,
        }


class InterventionTrigger:
    """Watch pressure samples and notify on escalation into HIGH.

    Parameters
    ----------
    notifier : Notifier
        External channel.  Exceptions from it never escape.
    template : str
        Message template; ``{percent}`` is filled from the sample.
    """

    def __init__(self, notifier: Optional[Notifier] = None, template: str = INTERVENTION_MESSAGE) -> None:
        self.notifier = notifier if notifier is not None else LogNotifier()
        self.template = template

    @staticmethod
    def should_intervene(sample: PressureSample) -> bool:
        return sample.level is PressureLevel.HIGH and sample.previous_level in (
            PressureLevel.SAFE,
            PressureLevel.MODERATE,
        )

    def message_for(self, sample: PressureSample) -> str:
        return self.template.format(percent=sample.percent)

    def observe(self, sample: PressureSample) -> Optional[Intervention]:
        """Fire if *sample* is an escalation into HIGH."""
        if not self.should_intervene(sample):
            return None

        message = self.message_for(sample)
        delivered = True
        try:
            self.notifier.notify(sample.session_id, message)
        except Exception as exc:
            delivered = False
            log.warning("Failed to deliver intervention for %s: %s", sample.session_id, exc)
        else:
            log.info(
                "Intervention sent for %s at %d%%",
                sample.session_id,
                sample.percent,
                extra={"session_id": sample.session_id, "pressure_level": sample.level.value},
            )

        return Intervention(
            session_id=sample.session_id,
            message=message,
            delivered=delivered,
            fired_at=now_iso(),
        )
