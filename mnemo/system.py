"""
mnemo.system -- Top-level MemorySystem: the public API for mnemo.

    from mnemo import MemorySystem

    memory = MemorySystem(data_dir="./data")
    memory.tool_executed("ses_1", "bash", output, call_id="call_7")
    report = memory.usage_sample("ses_1", 0.93)
    prompt = memory.system_context("ses_1")

Everything is wired up here: KV namespaces, working memory, pressure,
interventions, pruning, core blocks, the tool-output cache and the
extractor registry.  Host adapters only need to touch MemorySystem.

Every entry point that mutates a session runs under that session's
lock.  Derived (sub-agent) sessions are short-lived, so the host event
entry points skip them entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from mnemo.blocks import BlockUpdate, CoreBlocks, CoreMemory
from mnemo.compaction import CompactionTracker
from mnemo.core.config import Config
from mnemo.core.sessions import NoLineage, SessionLineage, SessionLocks
from mnemo.core.types import AddResult, NotFound, RemovedItem
from mnemo.extraction.extractors import ExtractorRegistry, default_registry
from mnemo.pressure.intervention import Intervention, InterventionTrigger, Notifier
from mnemo.pressure.monitor import PressureMonitor, PressureSample
from mnemo.pressure.usage import ModelLimits, usage_ratio
from mnemo.pruning.engine import compress, limits_from_config
from mnemo.pruning.rules import build_rules, resolve_rule
from mnemo.render import pressure_warning, render_core_blocks, render_working_memory
from mnemo.storage.kv import FileKVStore, KVStore, SQLiteKVStore
from mnemo.storage.tool_cache import CachedToolOutput, ToolOutputCache
from mnemo.working.memory import WorkingMemory
from mnemo.working.state import SessionMemoryState

log = logging.getLogger("mnemo.system")

NAMESPACES = ("working", "pressure", "blocks", "compaction")


@dataclass
class UsageReport:
    """What one usage sample produced."""

    sample: PressureSample
    intervention: Optional[Intervention] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample": self.sample.to_dict(),
            "intervention": self.intervention.to_dict() if self.intervention else None,
        }


class MemorySystem:
    """Wire every store together and expose the host entry points.

    Parameters
    ----------
    config:
        Full ``Config`` object.  If not given, ``data_dir`` and
        ``**kwargs`` are forwarded to ``Config``.
    data_dir:
        Shortcut -- point at a directory and go.
    lineage:
        Answers "is this a sub-agent session?".  Defaults to
        ``NoLineage`` (every session is a root).
    notifier:
        Intervention channel.  Defaults to logging.
    stores:
        Optional ``{namespace: KVStore}`` overrides, mainly for tests.
        Missing namespaces are built from ``config.storage_backend``.
    extractors:
        Custom extractor registry.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        data_dir: Optional[Union[str, Path]] = None,
        lineage: Optional[SessionLineage] = None,
        notifier: Optional[Notifier] = None,
        stores: Optional[Mapping[str, KVStore]] = None,
        extractors: Optional[ExtractorRegistry] = None,
        **kwargs: Any,
    ) -> None:
        # -- Resolve config ------------------------------------------------
        if config is not None:
            self.config = config
        elif data_dir is not None:
            self.config = Config.from_data_dir(data_dir, **kwargs)
        else:
            self.config = Config(**kwargs)

        self.config.ensure_directories()

        if self.config.structured_logging:
            from mnemo.core.logging import configure_logging

            configure_logging(structured=True)

        # -- Persistence namespaces ----------------------------------------
        overrides = dict(stores or {})
        self.stores: Dict[str, KVStore] = {
            ns: overrides[ns] if ns in overrides else self._make_store(ns)
            for ns in NAMESPACES
        }

        # -- Collaborators -------------------------------------------------
        self.locks = SessionLocks()
        self.lineage: SessionLineage = lineage if lineage is not None else NoLineage()

        self.working = WorkingMemory(self.config, self.stores["working"], self.locks)
        self.pressure = PressureMonitor(
            self.stores["pressure"],
            moderate=self.config.pressure_moderate,
            high=self.config.pressure_high,
            locks=self.locks,
        )
        self.trigger = InterventionTrigger(notifier)
        self.blocks = CoreBlocks(self.stores["blocks"], self.config.block_limits, self.locks)
        self.compactions = CompactionTracker(self.stores["compaction"], self.locks)
        self.tool_cache = ToolOutputCache(
            self.config.tool_output_dir,
            max_files=self.config.tool_output_max_files,
            max_age_seconds=self.config.tool_output_max_age_seconds,
        )
        self.extractors = extractors if extractors is not None else default_registry(self.config.max_chars_per_item)

        self.rules = build_rules(self.config.pruning_rules)
        self.limits = limits_from_config(self.config.pressure_limits)
        self._last_sweep: Dict[str, int] = {}

        log.debug(
            "MemorySystem ready (data_dir=%s, backend=%s)",
            self.config.data_dir,
            self.config.storage_backend,
        )

    def _make_store(self, namespace: str) -> KVStore:
        if self.config.storage_backend == "sqlite":
            return SQLiteKVStore(self.config.db_path, table=namespace)
        return FileKVStore(self.config.data_dir / namespace)

    def _skip(self, session_id: str) -> bool:
        if not session_id:
            return True
        if self.lineage.is_derived(session_id):
            log.debug("Skipping derived session %s", session_id)
            return True
        return False

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def tool_executed(
        self,
        session_id: str,
        tool: str,
        output: str,
        call_id: Optional[str] = None,
    ) -> List[AddResult]:
        """Cache a tool's output, extract facts from it, sweep periodically."""
        if self._skip(session_id):
            return []

        results: List[AddResult] = []
        with self.locks.hold(session_id):
            if call_id:
                try:
                    self.tool_cache.store(
                        CachedToolOutput(
                            call_id=call_id,
                            session_id=session_id,
                            tool=tool,
                            full_output=output,
                        )
                    )
                except OSError as exc:
                    log.warning("Failed to cache output of %s for %s: %s", tool, session_id, exc)

            for cand in self.extractors.extract(tool, output, source=tool):
                result = self.working.add(session_id, cand.content, cand.category, cand.source)
                if result:
                    results.append(result)

            if self.working.exists(session_id):
                counter = self.working.load(session_id).event_counter
                last = self._last_sweep.get(session_id, 0)
                if counter < last:
                    # the session was cleared since the last sweep
                    last = 0
                if counter - last >= self.config.sweep_interval:
                    self.sweep(session_id)
                    self._last_sweep[session_id] = counter
        return results

    def text_complete(self, session_id: str, text: str) -> List[AddResult]:
        """Capture ``[Decision: ...]`` markers from assistant text."""
        if self._skip(session_id):
            return []
        results: List[AddResult] = []
        with self.locks.hold(session_id):
            for cand in self.extractors.extract("text", text, source="auto:text"):
                result = self.working.add(session_id, cand.content, cand.category, cand.source)
                if result:
                    results.append(result)
        return results

    def usage_sample(
        self, session_id: str, ratio: Any, model_id: Optional[str] = None
    ) -> Optional[UsageReport]:
        """Record a usage ratio; fire an intervention on escalation to HIGH."""
        if self._skip(session_id):
            return None
        with self.locks.hold(session_id):
            sample = self.pressure.sample(session_id, ratio, model_id=model_id)
        return UsageReport(sample=sample, intervention=self.trigger.observe(sample))

    def usage_from_tokens(
        self,
        session_id: str,
        total_tokens: int,
        limits: Union[ModelLimits, Mapping[str, Any]],
        model_id: Optional[str] = None,
    ) -> Optional[UsageReport]:
        """Like ``usage_sample`` but computes the ratio from model limits."""
        if not isinstance(limits, ModelLimits):
            limits = ModelLimits.from_dict(dict(limits))
        return self.usage_sample(session_id, usage_ratio(total_tokens, limits), model_id)

    def prune_tool_output(
        self,
        session_id: str,
        tool: str,
        output: Optional[str] = None,
        call_id: Optional[str] = None,
    ) -> Optional[str]:
        """Compress a tool result with its rule at the current pressure.

        When *output* is omitted the full text is taken from the cache by
        *call_id*.  Returns None if there is nothing to compress.
        """
        if output is None and call_id:
            cached = self.tool_cache.get(session_id, call_id)
            output = cached.full_output if cached else None
        if output is None:
            return None
        if self._skip(session_id):
            return output
        rule = resolve_rule(tool, self.rules)
        level = self.pressure.level(session_id)
        return compress(output, rule, level, self.limits)

    def system_context(self, session_id: str, model_id: Optional[str] = None) -> List[str]:
        """Prompt sections for the next turn: warning, core blocks, working memory.

        The pressure warning is skipped when *model_id* differs from the
        model the last sample was measured against.
        """
        if self._skip(session_id):
            return []

        sections: List[str] = []
        sample = self.pressure.current(session_id)
        model_changed = bool(model_id and sample and sample.model_id != model_id)
        if not model_changed:
            warning = pressure_warning(sample)
            if warning:
                sections.append(warning)

        core = self.blocks.read(session_id)
        if core is not None and core.has_content():
            sections.append(render_core_blocks(core))

        state = self.working.load(session_id)
        if state.item_count() > 0:
            rendered = render_working_memory(state, self.config.prompt_budget_chars)
            if rendered:
                sections.append(rendered)
        return sections

    def compacting(self, session_id: str) -> List[str]:
        """Trim working memory ahead of host compaction; return context lines."""
        if self._skip(session_id):
            return []

        with self.locks.hold(session_id):
            preserved = self.working.preserve_relevant(session_id)
            entry = self.compactions.record(session_id, preserved)

        lines: List[str] = []
        core = self.blocks.read(session_id)
        if core is not None:
            details = []
            goal = core.blocks.get("goal")
            if goal and goal.value:
                details.append(f"Current goal: {goal.value}")
            progress = core.blocks.get("progress")
            if progress and progress.value:
                nxt = next(
                    (ln for ln in progress.value.split("\n") if "next" in ln.lower()),
                    None,
                )
                if nxt:
                    details.append(f"Next steps: {nxt}")
            if details:
                lines.append("IMPORTANT: Preserve these key details:\n" + "\n".join(details))

        if preserved > 0:
            lines.append(
                f"Working memory: Preserved {preserved} most relevant items "
                f"(compaction #{entry.compaction_count})"
            )
        return lines

    def session_deleted(self, session_id: str) -> None:
        """Remove every artifact a session left behind."""
        with self.locks.hold(session_id):
            self.working.delete(session_id)
            self.pressure.delete(session_id)
            self.blocks.delete(session_id)
            self.compactions.delete(session_id)
            self.tool_cache.clear(session_id)
            self._last_sweep.pop(session_id, None)
        self.locks.discard(session_id)
        forget = getattr(self.lineage, "forget", None)
        if forget is not None:
            forget(session_id)
        log.info("Deleted all memory for session %s", session_id, extra={"session_id": session_id})

    def sweep(self, session_id: str) -> int:
        """Apply the tool-output cache TTL and file cap for one session."""
        return self.tool_cache.sweep(session_id)

    # ------------------------------------------------------------------
    # Working memory (agent tools)
    # ------------------------------------------------------------------

    def add(
        self, session_id: str, content: str, category: str = "other", source: str = "manual"
    ) -> Union[AddResult, NotFound]:
        return self.working.add(session_id, content, category, source)

    def clear(self, session_id: str) -> int:
        return self.working.clear(session_id)

    def clear_category(self, session_id: str, category: str) -> Union[int, NotFound]:
        return self.working.clear_category(session_id, category)

    def remove(self, session_id: str, substring: str) -> Union[RemovedItem, NotFound]:
        return self.working.remove(session_id, substring)

    def snapshot(self, session_id: str) -> SessionMemoryState:
        return self.working.snapshot(session_id)

    # ------------------------------------------------------------------
    # Core blocks (agent tools)
    # ------------------------------------------------------------------

    def update_block(
        self, session_id: str, block: str, operation: str, content: str
    ) -> Union[BlockUpdate, NotFound]:
        return self.blocks.update(session_id, block, operation, content)

    def read_blocks(self, session_id: str) -> CoreMemory:
        return self.blocks.read(session_id) or self.blocks.empty(session_id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def sessions(self) -> List[str]:
        """Every session id with at least one stored document."""
        found = set()
        for store in self.stores.values():
            found.update(store.keys())
        return sorted(found)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close any database connections."""
        for name, store in self.stores.items():
            closer = getattr(store, "close", None)
            if closer is None:
                continue
            try:
                closer()
            except Exception as exc:
                log.warning("Error closing %s store: %s", name, exc)

    def __enter__(self) -> "MemorySystem":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
