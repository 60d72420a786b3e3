"""
mnemo.core.config -- Configuration for the mnemo working-memory system.

Supports loading from YAML, environment variables, and programmatic
construction.  Category classification (slot vs. pool) is static: it is
fixed here, validated once, and never decided per item.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple


# Default slot capacities: guaranteed-retention FIFO buckets.
DEFAULT_SLOT_CAPACITIES: Dict[str, int] = {
    "error": 3,  # keep last 3 errors
    "decision": 3,  # keep last 3 decisions
}

# Default pool categories: decay-scored.
DEFAULT_POOL_CATEGORIES: Tuple[str, ...] = ("file-path", "other")

# Pressure ceilings applied before a pruning strategy runs.
DEFAULT_PRESSURE_LIMITS: Dict[str, Dict[str, int]] = {
    "moderate": {"max_lines": 5000, "max_chars": 200_000},
    "high": {"max_lines": 2000, "max_chars": 100_000},
}

DEFAULT_BLOCK_LIMITS: Dict[str, int] = {
    "goal": 1000,  # ~250 tokens
    "progress": 2000,  # ~500 tokens
    "context": 1500,  # ~375 tokens
}


@dataclass
class Config:
    """
    Central configuration object.

    Construct directly, via ``Config.from_yaml(path)``, or via
    ``Config.from_data_dir(path)`` for quick bootstrap.
    """

    # -- storage ------------------------------------------------------------
    data_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("MNEMO_DATA_DIR", "./mnemo_data"))
    )
    storage_backend: str = "file"  # "file" | "sqlite"

    # -- categories ---------------------------------------------------------
    slot_capacities: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_SLOT_CAPACITIES)
    )
    pool_categories: Tuple[str, ...] = DEFAULT_POOL_CATEGORIES

    # -- pool decay ---------------------------------------------------------
    pool_max_items: int = 50
    pool_gamma: float = 0.85  # 15% decay per event
    pool_min_score: float = 0.01
    pool_mention_weight: float = 0.5
    pool_initial_score: float = 1.0

    # -- item limits --------------------------------------------------------
    max_chars_per_item: int = 200
    prompt_budget_chars: int = 1600  # ~400 tokens of system prompt

    # -- pressure -----------------------------------------------------------
    pressure_moderate: float = 0.75
    pressure_high: float = 0.90
    pressure_limits: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_PRESSURE_LIMITS.items()}
    )

    # -- pruning ------------------------------------------------------------
    # Overrides merged on top of the built-in rule table, e.g.
    # {"read": {"strategy": "keep-ends", "first_chars": 800, "last_chars": 200}}
    pruning_rules: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # -- core blocks --------------------------------------------------------
    block_limits: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_BLOCK_LIMITS)
    )

    # -- storage governance -------------------------------------------------
    tool_output_max_files: int = 300
    tool_output_max_age_days: float = 7.0
    sweep_interval: int = 20  # sweep every N logical ticks

    # -- compaction ---------------------------------------------------------
    compaction_keep_fraction: float = 0.5

    # -- structured logging -------------------------------------------------
    structured_logging: bool = False  # emit JSON log lines when True

    # -----------------------------------------------------------------------
    # Derived paths (all relative to data_dir)
    # -----------------------------------------------------------------------

    @property
    def working_dir(self) -> Path:
        return self.data_dir / "working"

    @property
    def pressure_dir(self) -> Path:
        return self.data_dir / "pressure"

    @property
    def blocks_dir(self) -> Path:
        return self.data_dir / "blocks"

    @property
    def compaction_dir(self) -> Path:
        return self.data_dir / "compaction"

    @property
    def tool_output_dir(self) -> Path:
        return self.data_dir / "tool-outputs"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "mnemo.db"

    @property
    def tool_output_max_age_seconds(self) -> float:
        return self.tool_output_max_age_days * 86400.0

    # -----------------------------------------------------------------------
    # Construction helpers
    # -----------------------------------------------------------------------

    def __post_init__(self) -> None:
        # normalise data_dir to an absolute Path
        self.data_dir = Path(self.data_dir).resolve()
        self.pool_categories = tuple(self.pool_categories)
        self.validate()

    def validate(self) -> None:
        """Reject configurations that break the store invariants."""
        overlap = set(self.slot_capacities) & set(self.pool_categories)
        if overlap:
            raise ValueError(
                f"Categories cannot be both slot and pool: {sorted(overlap)}"
            )
        for name, cap in self.slot_capacities.items():
            if int(cap) < 1:
                raise ValueError(f"Slot capacity for {name!r} must be >= 1, got {cap}")
        if self.pool_max_items < 1:
            raise ValueError(f"pool_max_items must be >= 1, got {self.pool_max_items}")
        if not 0.0 < self.pool_gamma < 1.0:
            raise ValueError(f"pool_gamma must be in (0, 1), got {self.pool_gamma}")
        if not 0.0 <= self.pressure_moderate <= self.pressure_high:
            raise ValueError(
                "pressure thresholds must satisfy 0 <= moderate <= high, got "
                f"{self.pressure_moderate} / {self.pressure_high}"
            )
        if self.sweep_interval < 1:
            raise ValueError(f"sweep_interval must be >= 1, got {self.sweep_interval}")
        if self.tool_output_max_files < 0:
            raise ValueError(
                f"tool_output_max_files must be >= 0, got {self.tool_output_max_files}"
            )
        if not 0.0 < self.compaction_keep_fraction <= 1.0:
            raise ValueError(
                "compaction_keep_fraction must be in (0, 1], got "
                f"{self.compaction_keep_fraction}"
            )
        if self.storage_backend not in ("file", "sqlite"):
            raise ValueError(f"Unknown storage_backend: {self.storage_backend!r}")

    @property
    def categories(self) -> Tuple[str, ...]:
        """All known categories, slots first."""
        return tuple(self.slot_capacities) + self.pool_categories

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file.

        Any key in the YAML that matches a Config field is applied.
        Unknown keys are silently ignored so the file can carry
        application-level settings alongside mnemo config.
        """
        import yaml

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as fh:
            raw: Dict[str, Any] = yaml.safe_load(fh) or {}

        # pull the mnemo section if nested, else use top-level
        data = raw.get("mnemo", raw)

        if "data_dir" in data:
            data["data_dir"] = Path(data["data_dir"])
        if "pool_categories" in data:
            data["pool_categories"] = tuple(data["pool_categories"])

        known = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known}

        return cls(**filtered)

    @classmethod
    def from_data_dir(cls, data_dir: str | Path, **overrides: Any) -> "Config":
        """Quick constructor -- just point at a data directory."""
        return cls(data_dir=Path(data_dir), **overrides)

    # -----------------------------------------------------------------------
    # Directory bootstrapping
    # -----------------------------------------------------------------------

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        for d in (
            self.data_dir,
            self.working_dir,
            self.pressure_dir,
            self.blocks_dir,
            self.compaction_dir,
            self.tool_output_dir,
        ):
            d.mkdir(parents=True, exist_ok=True)

    # -----------------------------------------------------------------------
    # Serialisation
    # -----------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to a plain dict (YAML/JSON-safe)."""
        return {
            "data_dir": str(self.data_dir),
            "storage_backend": self.storage_backend,
            "slot_capacities": dict(self.slot_capacities),
            "pool_categories": list(self.pool_categories),
            "pool_max_items": self.pool_max_items,
            "pool_gamma": self.pool_gamma,
            "pool_min_score": self.pool_min_score,
            "pool_mention_weight": self.pool_mention_weight,
            "pool_initial_score": self.pool_initial_score,
            "max_chars_per_item": self.max_chars_per_item,
            "prompt_budget_chars": self.prompt_budget_chars,
            "pressure_moderate": self.pressure_moderate,
            "pressure_high": self.pressure_high,
            "pressure_limits": {k: dict(v) for k, v in self.pressure_limits.items()},
            "pruning_rules": {k: dict(v) for k, v in self.pruning_rules.items()},
            "block_limits": dict(self.block_limits),
            "tool_output_max_files": self.tool_output_max_files,
            "tool_output_max_age_days": self.tool_output_max_age_days,
            "sweep_interval": self.sweep_interval,
            "compaction_keep_fraction": self.compaction_keep_fraction,
            "structured_logging": self.structured_logging,
        }
