"""
mnemo.core.sessions -- Per-session serialisation and lineage lookup.

Every store operation is load-entire-document -> mutate -> save, so two
in-flight mutations for the same session would silently lose one
update.  This module provides:

    - SessionLocks: one re-entrant lock per session id, handed out from
      a thread-safe registry.  Different sessions never contend.
    - SessionLineage: answers "is this a derived (sub-agent) session?".
      ParentLookupCache memoises a host-supplied resolver; NoLineage is
      the no-op used in tests and single-agent hosts.
    - A contextvars-based current-session mechanism so synchronous
      server tools can resolve the active session without passing it.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Dict, Iterator, Optional, Protocol

log = logging.getLogger("mnemo.sessions")

# Default session ID for single-client (stdio) mode.
DEFAULT_SESSION_ID = "stdio"


# ---------------------------------------------------------------------------
# SessionLocks -- one lock per session
# ---------------------------------------------------------------------------


class SessionLocks:
    """Thread-safe registry of per-session locks."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, session_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[session_id] = lock
            return lock

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        """Hold *session_id*'s lock for the duration of the block."""
        lock = self.get(session_id)
        with lock:
            yield

    def discard(self, session_id: str) -> None:
        """Forget a session's lock (after the session is deleted)."""
        with self._guard:
            self._locks.pop(session_id, None)

    def count(self) -> int:
        with self._guard:
            return len(self._locks)


# ---------------------------------------------------------------------------
# SessionLineage -- derived-session detection
# ---------------------------------------------------------------------------


class SessionLineage(Protocol):
    def is_derived(self, session_id: str) -> bool: ...


class NoLineage:
    """Every session is a root session."""

    def is_derived(self, session_id: str) -> bool:
        return False


class ParentLookupCache:
    """Memoise ``session_id -> parent_id`` from a host resolver.

    Parameters
    ----------
    resolver : callable
        ``(session_id) -> parent_id | None``.  Called at most once per
        session.  If it raises, the session is cached as a root session
        so a flaky host never disables memory for the main agent.
    """

    def __init__(self, resolver: Callable[[str], Optional[str]]) -> None:
        self._resolver = resolver
        self._parents: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def parent_of(self, session_id: str) -> Optional[str]:
        with self._lock:
            if session_id in self._parents:
                return self._parents[session_id]
        try:
            parent = self._resolver(session_id) or None
        except Exception as exc:
            log.warning("Parent lookup failed for %s, treating as root: %s", session_id, exc)
            parent = None
        with self._lock:
            self._parents[session_id] = parent
        return parent

    def is_derived(self, session_id: str) -> bool:
        return self.parent_of(session_id) is not None

    def forget(self, session_id: str) -> None:
        with self._lock:
            self._parents.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._parents)


# ---------------------------------------------------------------------------
# Contextvars -- resolve current session in sync tool functions
# ---------------------------------------------------------------------------

_current_session_id: ContextVar[str] = ContextVar(
    "_current_session_id", default=DEFAULT_SESSION_ID
)


def set_current_session_id(session_id: str) -> None:
    """Set the session ID for the current execution context."""
    _current_session_id.set(session_id)


def get_current_session_id() -> str:
    """Get the session ID for the current execution context."""
    return _current_session_id.get()
