"""
mnemo.storage.tool_cache -- Full tool-output cache and its sweeper.

The host may replace old tool results in the transcript with a generic
placeholder.  Caching the full output at execution time lets the pruning
engine later substitute a strategy-compressed version instead.

Governance is a simple batch job: files older than the TTL are deleted,
then the oldest files beyond the per-session cap.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from mnemo.storage.kv import key_from_name, safe_key

log = logging.getLogger(__name__)


@dataclass
class CachedToolOutput:
    """One tool invocation's full output."""

    call_id: str
    session_id: str
    tool: str
    full_output: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "call_id": self.call_id,
            "session_id": self.session_id,
            "tool": self.tool,
            "full_output": self.full_output,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CachedToolOutput":
        return cls(
            call_id=d["call_id"],
            session_id=d["session_id"],
            tool=d.get("tool", ""),
            full_output=d.get("full_output", ""),
            timestamp=float(d.get("timestamp", 0.0)),
        )


class ToolOutputCache:
    """File cache under ``root/<session>/<call>.json``.

    Parameters
    ----------
    root : Path
        Cache root directory.
    max_files : int
        Per-session file cap enforced by ``sweep`` (default 300).
    max_age_seconds : float
        TTL enforced by ``sweep`` (default 7 days).
    """

    def __init__(
        self,
        root: Path,
        max_files: int = 300,
        max_age_seconds: float = 7 * 86400.0,
    ) -> None:
        self.root = Path(root)
        self.max_files = max_files
        self.max_age_seconds = max_age_seconds

    def session_dir(self, session_id: str) -> Path:
        return self.root / safe_key(session_id)

    def sessions(self) -> List[str]:
        """Ids of every session with a cache directory."""
        if not self.root.is_dir():
            return []
        return sorted(key_from_name(p.name) for p in self.root.iterdir() if p.is_dir())

    def _path(self, session_id: str, call_id: str) -> Path:
        return self.session_dir(session_id) / f"{safe_key(call_id)}.json"

    def store(self, cached: CachedToolOutput) -> Path:
        path = self._path(cached.session_id, cached.call_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(cached.to_dict(), indent=2), encoding="utf-8")
        return path

    def get(self, session_id: str, call_id: str) -> Optional[CachedToolOutput]:
        path = self._path(session_id, call_id)
        if not path.exists():
            return None
        try:
            return CachedToolOutput.from_dict(
                json.loads(path.read_text(encoding="utf-8"))
            )
        except (OSError, ValueError, KeyError) as exc:
            log.warning("Failed to load cached tool output %s: %s", path, exc)
            return None

    def count(self, session_id: str) -> int:
        d = self.session_dir(session_id)
        if not d.is_dir():
            return 0
        return sum(1 for p in d.iterdir() if p.is_file())

    def sweep(self, session_id: str, now: Optional[float] = None) -> int:
        """Delete expired files, then the oldest beyond the cap.

        Returns the number of files deleted.
        """
        d = self.session_dir(session_id)
        if not d.is_dir():
            return 0
        now = time.time() if now is None else now

        files: List[Tuple[float, Path]] = []
        for p in d.iterdir():
            try:
                if p.is_file():
                    files.append((p.stat().st_mtime, p))
            except OSError:
                continue

        expired = [p for mtime, p in files if now - mtime > self.max_age_seconds]
        remaining = sorted(
            ((m, p) for m, p in files if now - m <= self.max_age_seconds),
            key=lambda x: x[0],
        )
        excess = max(0, len(remaining) - self.max_files)
        to_delete = expired + [p for _, p in remaining[:excess]]

        deleted = 0
        for p in to_delete:
            try:
                p.unlink()
                deleted += 1
            except FileNotFoundError:
                pass
            except OSError as exc:
                log.debug("Could not delete %s: %s", p, exc)

        if deleted:
            log.info(
                "Swept %d cached tool outputs for session %s",
                deleted,
                session_id,
                extra={"session_id": session_id},
            )
        return deleted

    def clear(self, session_id: str) -> None:
        """Remove a session's whole cache directory."""
        shutil.rmtree(self.session_dir(session_id), ignore_errors=True)
