"""
mnemo.pressure.monitor -- Context pressure levels from a usage ratio.

The host reports how full its context window is as a ratio
(usage / capacity).  The monitor turns that into a discrete level:

    SAFE     -- ratio < 0.75
    MODERATE -- 0.75 <= ratio < 0.90
    HIGH     -- ratio >= 0.90

Each sample replaces the previous one (no smoothing) but remembers the
previous level, which is all the intervention trigger needs to tell an
escalation from a repeat.  Pressure is advisory: malformed input is
reported as SAFE rather than raised.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from mnemo.core.sessions import SessionLocks
from mnemo.core.types import now_iso
from mnemo.storage.kv import KVStore

log = logging.getLogger(__name__)

#: Ratios above this are reported as this many hundred percent.
MAX_REPORTED_RATIO = 10.0


class PressureLevel(Enum):
    """Pressure levels, totally ordered SAFE < MODERATE < HIGH."""

    SAFE = "safe"
    MODERATE = "moderate"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PressureLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, PressureLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, PressureLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, PressureLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Any) -> "PressureLevel":
        """Lenient parse; anything unrecognised is SAFE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.SAFE


_RANKS = {PressureLevel.SAFE: 0, PressureLevel.MODERATE: 1, PressureLevel.HIGH: 2}


@dataclass
class PressureSample:
    """The live pressure reading for one session.

    Attributes
    ----------
    session_id : str
    usage_ratio : float
        Normalised usage (0.0 when the input was malformed).
    level : PressureLevel
    previous_level : PressureLevel
        Level of the sample this one replaced (SAFE if none).
    sampled_at : str
        ISO-8601 UTC timestamp.
    model_id : str | None
        Model the ratio was measured against, when the host says.
    """

    session_id: str
    usage_ratio: float
    level: PressureLevel
    previous_level: PressureLevel = PressureLevel.SAFE
    sampled_at: str = field(default_factory=now_iso)
    model_id: Optional[str] = None

    @property
    def escalated(self) -> bool:
        return self.level > self.previous_level

    @property
    def de_escalated(self) -> bool:
        return self.level < self.previous_level

    @property
    def percent(self) -> int:
        # Capped so absurd host figures still format.
        return int(round(min(self.usage_ratio, MAX_REPORTED_RATIO) * 100))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "usage_ratio": self.usage_ratio,
            "level": self.level.value,
            "previous_level": self.previous_level.value,
            "sampled_at": self.sampled_at,
            "model_id": self.model_id,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PressureSample":
        return cls(
            session_id=d["session_id"],
            usage_ratio=float(d.get("usage_ratio", 0.0)),
            level=PressureLevel.parse(d.get("level")),
            previous_level=PressureLevel.parse(d.get("previous_level")),
            sampled_at=d.get("sampled_at") or now_iso(),
            model_id=d.get("model_id"),
        )


def normalise_ratio(value: Any) -> Optional[float]:
    """Return *value* as a usable ratio, or None if it is malformed."""
    if isinstance(value, bool):
        return None
    try:
        ratio = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(ratio) or math.isinf(ratio) or ratio < 0:
        return None
    return ratio


class PressureMonitor:
    """Classify usage ratios and keep one live sample per session.

    Parameters
    ----------
    store : KVStore
        Where pressure samples live.
    moderate : float
        Lower bound (inclusive) of MODERATE (default 0.75).
    high : float
        Lower bound (inclusive) of HIGH (default 0.90).
    locks : SessionLocks | None
        Shared per-session locks.
    """

    def __init__(
        self,
        store: KVStore,
        moderate: float = 0.75,
        high: float = 0.90,
        locks: Optional[SessionLocks] = None,
    ) -> None:
        self.store = store
        self.moderate = moderate
        self.high = high
        self.locks = locks if locks is not None else SessionLocks()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def classify(self, usage_ratio: Any) -> PressureLevel:
        ratio = normalise_ratio(usage_ratio)
        if ratio is None:
            return PressureLevel.SAFE
        if ratio >= self.high:
            return PressureLevel.HIGH
        if ratio >= self.moderate:
            return PressureLevel.MODERATE
        return PressureLevel.SAFE

    @staticmethod
    def ratio(used: Any, capacity: Any) -> Optional[float]:
        """``used / capacity``, or None when either side is unusable."""
        u = normalise_ratio(used)
        c = normalise_ratio(capacity)
        if u is None or c is None or c == 0:
            return None
        return u / c

    def sample(
        self, session_id: str, usage_ratio: Any, model_id: Optional[str] = None
    ) -> PressureSample:
        """Record a new reading, replacing the previous one."""
        ratio = normalise_ratio(usage_ratio)
        if ratio is None:
            log.debug("Malformed usage ratio %r for %s, reporting safe", usage_ratio, session_id)
        with self.locks.hold(session_id):
            previous = self.current(session_id)
            sample = PressureSample(
                session_id=session_id,
                usage_ratio=ratio if ratio is not None else 0.0,
                level=self.classify(ratio),
                previous_level=previous.level if previous else PressureLevel.SAFE,
                model_id=model_id,
            )
            self._save(sample)

        if sample.level is not PressureLevel.SAFE:
            log.info(
                "Context pressure for %s: %s (%d%%, was %s)",
                session_id,
                sample.level.value,
                sample.percent,
                sample.previous_level.value,
            )
        return sample

    def current(self, session_id: str) -> Optional[PressureSample]:
        """The live sample for *session_id*, or None."""
        data = self.store.get(session_id)
        if data is None:
            return None
        try:
            return PressureSample.from_dict(json.loads(data.decode("utf-8")))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning("Discarding unreadable pressure sample for %s: %s", session_id, exc)
            return None

    def level(self, session_id: str) -> PressureLevel:
        sample = self.current(session_id)
        return sample.level if sample else PressureLevel.SAFE

    def delete(self, session_id: str) -> bool:
        with self.locks.hold(session_id):
            try:
                return self.store.delete(session_id)
            except Exception as exc:
                log.warning("Failed to delete pressure sample for %s: %s", session_id, exc)
                return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def encode(sample: PressureSample) -> bytes:
        return json.dumps(sample.to_dict(), indent=2, sort_keys=True).encode("utf-8")

    def _save(self, sample: PressureSample) -> None:
        try:
            self.store.put(sample.session_id, self.encode(sample))
        except Exception as exc:
            log.warning("Failed to save pressure sample for %s: %s", sample.session_id, exc)
