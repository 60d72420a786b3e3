"""
mnemo.storage.kv -- Narrow key-value persistence for session documents.

Every mnemo document family (working memory, pressure samples, core
blocks, compaction logs) is stored as opaque bytes under the session id
in its own namespace.  The stores know nothing about the documents;
mnemo serialises and deserialises them itself, so any engine that can
``get``/``put``/``delete`` bytes can be swapped in.

Three engines ship:

  - ``FileKVStore``   -- one ``<key>.json`` file per session, written
    atomically (temp file + ``os.replace``) under a sidecar lock.
  - ``SQLiteKVStore`` -- one table per namespace in a shared database.
  - ``MemoryKVStore`` -- a dict, for tests and ephemeral hosts.
"""

from __future__ import annotations

import logging
import os
import re
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol
from urllib.parse import quote, unquote

from mnemo.core.filelock import FileLock

log = logging.getLogger(__name__)

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class KVStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, data: bytes) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> List[str]: ...


def safe_key(key: str) -> str:
    """Map a session id onto a filesystem-safe name.

    Percent-encoding keeps the mapping one-to-one, so distinct ids never
    share a file.  Dots are escaped too, which rules out ``.``/``..`` and
    hidden files.
    """
    if not key:
        raise ValueError("key must be a non-empty string")
    return quote(key, safe="-_").replace(".", "%2E").replace("~", "%7E")


def key_from_name(name: str) -> str:
    """Inverse of ``safe_key``."""
    return unquote(name)


# ---------------------------------------------------------------------------
# MemoryKVStore
# ---------------------------------------------------------------------------


class MemoryKVStore:
    """In-process dict store.  Thread-safe."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(data)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


# ---------------------------------------------------------------------------
# FileKVStore
# ---------------------------------------------------------------------------


class FileKVStore:
    """One JSON file per key inside *directory*.

    Parameters
    ----------
    directory : Path
        Created on first write.
    lock_timeout : float
        Seconds to wait for another writer's sidecar lock.
    """

    suffix = ".json"

    def __init__(self, directory: Path, lock_timeout: float = 5.0) -> None:
        self.directory = Path(directory)
        self.lock_timeout = lock_timeout

    def path_for(self, key: str) -> Path:
        return self.directory / f"{safe_key(key)}{self.suffix}"

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            log.warning("Could not read %s: %s", path, exc)
            return None

    def put(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        with FileLock(path, timeout=self.lock_timeout):
            fd, tmp = tempfile.mkstemp(
                prefix=f".{path.stem}.", suffix=".tmp", dir=str(self.directory)
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp, path)
            except BaseException:
                try:
                    os.unlink(tmp)
                except OSError:
                    pass
                raise

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        with FileLock(path, timeout=self.lock_timeout):
            try:
                path.unlink()
                return True
            except FileNotFoundError:
                return False

    def keys(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            key_from_name(p.stem)
            for p in self.directory.glob(f"*{self.suffix}")
            if p.is_file()
        )


# ---------------------------------------------------------------------------
# SQLiteKVStore
# ---------------------------------------------------------------------------


class SQLiteKVStore:
    """Key-value table in a SQLite database.

    Several namespaces may share one database file; each gets its own
    table.  One connection per store, serialised by a lock so the store
    can be shared across threads.
    """

    def __init__(self, db_path: Path, table: str = "documents") -> None:
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = Path(db_path)
        self.table = table
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "  key TEXT PRIMARY KEY,"
            "  data BLOB NOT NULL,"
            "  updated REAL NOT NULL DEFAULT (julianday('now'))"
            ")"
        )
        self.conn.commit()

    def get(self, key: str) -> Optional[bytes]:
        try:
            with self._lock:
                row = self.conn.execute(
                    f"SELECT data FROM {self.table} WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            log.warning("Could not read %s/%s: %s", self.table, key, exc)
            return None
        return bytes(row[0]) if row else None

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self.conn.execute(
                f"INSERT OR REPLACE INTO {self.table} (key, data, updated) "
                "VALUES (?, ?, julianday('now'))",
                (key, sqlite3.Binary(data)),
            )
            self.conn.commit()

    def delete(self, key: str) -> bool:
        with self._lock:
            cur = self.conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
            self.conn.commit()
            return cur.rowcount > 0

    def keys(self) -> List[str]:
        with self._lock:
            rows = self.conn.execute(
                f"SELECT key FROM {self.table} ORDER BY key"
            ).fetchall()
        return [r[0] for r in rows]

    def close(self) -> None:
        with self._lock:
            self.conn.close()
