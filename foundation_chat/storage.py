"""
Storage slots: a single named key holding the serialized session collection.

Each slot implements the ``StorageSlot`` protocol (``read``/``write`` of raw
bytes) so the session store never cares where the bytes live.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .config import ChatConfig

logger = logging.getLogger("foundation_chat.storage")

DB_FILENAME = "chat_history.sqlite3"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class StorageSlot(Protocol):
    """A named key-value slot holding one opaque byte blob."""

    key: str

    def read(self) -> bytes | None: ...

    def write(self, data: bytes) -> None: ...


# ---------------------------------------------------------------------------
# MemorySlot
# ---------------------------------------------------------------------------


class MemorySlot:
    """Keeps the blob in process memory. Nothing survives the process."""

    def __init__(self, key: str = "chat_sessions", data: bytes | None = None) -> None:
        self.key = key
        self.data = data
        self.writes = 0

    def read(self) -> bytes | None:
        return self.data

    def write(self, data: bytes) -> None:
        self.data = bytes(data)
        self.writes += 1

    def __repr__(self) -> str:
        size = None if self.data is None else len(self.data)
        return f"MemorySlot(key={self.key!r}, size={size})"


# ---------------------------------------------------------------------------
# FileSlot
# ---------------------------------------------------------------------------


class FileSlot:
    """Stores the blob in ``<directory>/<key>.json``.

    Writes land in a temporary sibling first and are moved into place with
    ``os.replace``, so readers see either the old or the new blob.
    """

    def __init__(self, directory: str | Path, key: str = "chat_sessions") -> None:
        self.key = key
        self.directory = Path(directory).expanduser()
        self.path = self.directory / f"{key}.json"

    def read(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None

    def write(self, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.key}.", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def __repr__(self) -> str:
        return f"FileSlot(path={str(self.path)!r})"


# ---------------------------------------------------------------------------
# SqliteSlot
# ---------------------------------------------------------------------------


class SqliteSlot:
    """Stores the blob as one row of a ``kv`` table in a local sqlite file.

    The database is opened on first ``read``/``write``, so a damaged file
    surfaces as a read or write failure the session store already handles.
    """

    def __init__(self, path: str | Path, key: str = "chat_sessions") -> None:
        self.key = key
        self.path = Path(path).expanduser()
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.path)
            try:
                self._tune_pragmas()
                self._init_schema()
            except sqlite3.DatabaseError:
                self.close()
                raise
        return self._conn

    def _tune_pragmas(self) -> None:
        """Tune sqlite for local low-latency usage."""
        self.conn.execute("PRAGMA journal_mode = WAL")
        self.conn.execute("PRAGMA synchronous = NORMAL")
        self.conn.execute("PRAGMA temp_store = MEMORY")

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL
            )
            """
        )
        self.conn.commit()

    def read(self) -> bytes | None:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (self.key,)).fetchone()
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def write(self, data: bytes) -> None:
        self.conn.execute(
            """
            INSERT INTO kv (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (self.key, sqlite3.Binary(data)),
        )
        self.conn.commit()

    def close(self) -> None:
        """Close sqlite connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __repr__(self) -> str:
        return f"SqliteSlot(path={str(self.path)!r}, key={self.key!r})"


def open_slot(config: ChatConfig) -> StorageSlot:
    """Build the slot named by ``config.backend``."""
    if config.backend == "memory":
        slot: StorageSlot = MemorySlot(config.slot_key)
    elif config.backend == "sqlite":
        slot = SqliteSlot(config.data_dir / DB_FILENAME, config.slot_key)
    else:
        slot = FileSlot(config.data_dir, config.slot_key)
    logger.debug("[FoundationChat Storage] Opened %r", slot)
    return slot
