"""
mnemo.core.filelock -- Advisory sidecar lock for session documents.

Serialises writers of one session document across processes.  The lock
is a ``<document>.lock`` file created with ``O_CREAT | O_EXCL``, which
is atomic on every platform mnemo supports.

Usage::

    with FileLock(path):
        path.write_bytes(data)
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

log = logging.getLogger(__name__)


class LockTimeout(TimeoutError):
    """The lock could not be acquired in time."""


class FileLock:
    """Advisory lock guarding one file.

    Parameters
    ----------
    path : Path
        The file to protect.  The lock file is ``path.lock``.
    timeout : float
        Maximum seconds to wait (default 5).
    poll : float
        Seconds between attempts (default 0.02).
    stale_after : float | None
        Age in seconds after which an existing lock file is considered
        abandoned and broken.  Defaults to twice *timeout*.
    """

    def __init__(
        self,
        path: Path,
        timeout: float = 5.0,
        poll: float = 0.02,
        stale_after: Optional[float] = None,
    ) -> None:
        self.lock_path = Path(str(path) + ".lock")
        self.timeout = timeout
        self.poll = poll
        self.stale_after = stale_after if stale_after is not None else timeout * 2
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.release()

    def acquire(self) -> None:
        """Block until the lock is held or raise ``LockTimeout``."""
        deadline = time.monotonic() + self.timeout
        while True:
            if self._try_create():
                return
            if self._break_if_stale():
                continue
            if time.monotonic() >= deadline:
                raise LockTimeout(
                    f"Could not acquire lock on {self.lock_path} within {self.timeout}s"
                )
            time.sleep(self.poll)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            os.close(self._fd)
        except OSError:
            log.debug("Closing lock fd failed for %s", self.lock_path, exc_info=True)
        self._fd = None
        self._unlink()

    # -- internals ----------------------------------------------------------

    def _try_create(self) -> bool:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._fd = os.open(
                str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY
            )
        except (FileExistsError, PermissionError):
            return False
        os.write(self._fd, str(os.getpid()).encode("ascii"))
        return True

    def _break_if_stale(self) -> bool:
        try:
            age = time.time() - self.lock_path.stat().st_mtime
        except FileNotFoundError:
            # holder released between our attempts; retry immediately
            return True
        except OSError:
            return False
        if age <= self.stale_after:
            return False
        log.warning("Breaking stale lock (%.1fs old): %s", age, self.lock_path)
        self._unlink()
        return True

    def _unlink(self) -> None:
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            log.debug("Could not remove lock file %s", self.lock_path, exc_info=True)
