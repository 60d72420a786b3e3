"""
mnemo.extraction.extractors -- Heuristic fact extraction from tool output.

Each extractor turns one kind of output into zero or more candidate
facts.  Extractors are registered by source type (tool name, or
``"text"`` for assistant prose), so adding a heuristic means
registering a new extractor rather than editing a shared function.

Detection is purely regex: fast enough to run after every tool call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol

_CODE_EXTS = "ts|js|json|md|tsx|jsx|py|java|go|rs"
_GREP_EXTS = _CODE_EXTS + "|txt|yml|yaml|toml"

_PATH_RE = re.compile(rf"[\w\-/.]+\.(?:{_CODE_EXTS})\b")
_GREP_FILE_RE = re.compile(rf"^(/[^\n]+\.(?:{_GREP_EXTS})):", re.MULTILINE)
_DECISION_RE = re.compile(r"\[Decision:\s*([^\]]+)\]", re.IGNORECASE)
_ERROR_WORDS = ("error", "failed")


@dataclass(frozen=True)
class Candidate:
    """A fact proposed for working memory."""

    content: str
    category: str
    source: str


class Extractor(Protocol):
    def extract(self, output: str, source: str) -> List[Candidate]: ...


def _unique(values: Iterable[str], limit: int) -> List[str]:
    seen: Dict[str, None] = {}
    for v in values:
        if v not in seen:
            seen[v] = None
            if len(seen) >= limit:
                break
    return list(seen)


class FilePathExtractor:
    """File paths mentioned in read/glob output (first five unique)."""

    def __init__(self, limit: int = 5) -> None:
        self.limit = limit

    def extract(self, output: str, source: str) -> List[Candidate]:
        paths = _unique(_PATH_RE.findall(output), self.limit)
        return [Candidate(p, "file-path", f"tool:{source}") for p in paths]


class ErrorLineExtractor:
    """Lines mentioning errors or failures in command output (first three)."""

    def __init__(self, limit: int = 3, max_chars: int = 200) -> None:
        self.limit = limit
        self.max_chars = max_chars

    def extract(self, output: str, source: str) -> List[Candidate]:
        found: List[Candidate] = []
        for line in output.split("\n"):
            lowered = line.lower()
            if not any(w in lowered for w in _ERROR_WORDS):
                continue
            text = line.strip()[: self.max_chars]
            if text:
                found.append(Candidate(text, "error", f"tool:{source}"))
            if len(found) >= self.limit:
                break
        return found


class GrepFileExtractor:
    """File headers in grep output (``/abs/path.ext:`` lines)."""

    def __init__(self, limit: int = 5) -> None:
        self.limit = limit

    def extract(self, output: str, source: str) -> List[Candidate]:
        files = _unique(_GREP_FILE_RE.findall(output), self.limit)
        return [Candidate(f, "file-path", f"tool:{source}") for f in files]


class ModifiedFileExtractor:
    """The file an edit/write touched."""

    def extract(self, output: str, source: str) -> List[Candidate]:
        m = _PATH_RE.search(output)
        if not m:
            return []
        return [Candidate(f"Modified: {m.group(0)}", "file-path", f"tool:{source}")]


class DecisionMarkerExtractor:
    """``[Decision: ...]`` markers written inline by the agent."""

    def extract(self, output: str, source: str) -> List[Candidate]:
        found = []
        for m in _DECISION_RE.finditer(output):
            description = m.group(1).strip()
            if description:
                found.append(Candidate(description, "decision", source))
        return found


class ExtractorRegistry:
    """Extractors keyed by source type."""

    def __init__(self) -> None:
        self._extractors: Dict[str, List[Extractor]] = {}

    def register(self, source_type: str, extractor: Extractor) -> None:
        self._extractors.setdefault(source_type, []).append(extractor)

    def sources(self) -> List[str]:
        return sorted(self._extractors)

    def extract(self, source_type: str, output: str, source: Optional[str] = None) -> List[Candidate]:
        """Run every extractor registered for *source_type*."""
        tag = source_type if source is None else source
        candidates: List[Candidate] = []
        for ex in self._extractors.get(source_type, []):
            candidates.extend(ex.extract(output, tag))
        return candidates


def default_registry(max_chars: int = 200) -> ExtractorRegistry:
    reg = ExtractorRegistry()
    paths = FilePathExtractor()
    modified = ModifiedFileExtractor()
    reg.register("read", paths)
    reg.register("glob", paths)
    reg.register("bash", ErrorLineExtractor(max_chars=max_chars))
    reg.register("grep", GrepFileExtractor())
    reg.register("edit", modified)
    reg.register("write", modified)
    reg.register("text", DecisionMarkerExtractor())
    return reg
