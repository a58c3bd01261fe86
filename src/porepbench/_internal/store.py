"""Durable ordered key-value store backed by a single sqlite3 file.

Keys and values are raw bytes; keys compare bytewise, so a key prefix
selects a contiguous range (the same contract as a LevelDB prefix iterator).
The handle is opened once per process and passed explicitly; use
open_store() so it is closed on every path.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from porepbench.errors import StoreError

logger = logging.getLogger(__name__)

_SCHEMA = "CREATE TABLE IF NOT EXISTS kv (key BLOB PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"


def prefix_limit(prefix: bytes) -> Optional[bytes]:
    """Smallest key greater than every key starting with prefix (None if unbounded)."""
    limit = bytearray(prefix)
    while limit and limit[-1] == 0xFF:
        limit.pop()
    if not limit:
        return None
    limit[-1] += 1
    return bytes(limit)


class KVStore:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._depth = 0
        self._conn: Optional[sqlite3.Connection] = None
        try:
            # autocommit; transaction() issues BEGIN/COMMIT itself
            self._conn = sqlite3.connect(str(self.path), isolation_level=None)
            self._conn.execute(_SCHEMA)
        except sqlite3.Error as e:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            raise StoreError(f"cannot open store {self.path}: {e}") from e
        logger.debug("Opened store %s", self.path)

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError(f"store {self.path} is closed")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("Closed store %s", self.path)

    @contextmanager
    def transaction(self) -> Iterator["KVStore"]:
        """All writes inside the block land together or not at all."""
        outermost = self._depth == 0
        if outermost:
            try:
                self.conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreError(f"cannot start a transaction on {self.path}: {e}") from e
        try:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
        except BaseException:
            if outermost and self._conn is not None and self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise
        if outermost:
            try:
                self.conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise StoreError(f"cannot commit to store {self.path}: {e}") from e

    def get(self, key: bytes) -> Optional[bytes]:
        try:
            row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"cannot read key {key.hex()} from {self.path}: {e}") from e
        return bytes(row[0]) if row is not None else None

    def put(self, key: bytes, value: bytes) -> None:
        try:
            self.conn.execute("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))
        except sqlite3.Error as e:
            raise StoreError(f"cannot write key {key.hex()} to {self.path}: {e}") from e

    def delete(self, key: bytes) -> None:
        try:
            self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StoreError(f"cannot delete key {key.hex()} from {self.path}: {e}") from e

    def iter_prefix(self, prefix: bytes) -> List[Tuple[bytes, bytes]]:
        """All (key, value) pairs under prefix, in key order."""
        limit = prefix_limit(prefix)
        if limit is None:
            sql, params = "SELECT key, value FROM kv WHERE key >= ? ORDER BY key", (prefix,)
        else:
            sql, params = "SELECT key, value FROM kv WHERE key >= ? AND key < ? ORDER BY key", (prefix, limit)
        try:
            rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"cannot scan prefix {prefix.hex()} in {self.path}: {e}") from e
        return [(bytes(k), bytes(v)) for k, v in rows]

    def delete_prefix(self, prefix: bytes) -> int:
        """Delete every key under prefix; returns how many were removed."""
        keys = [k for k, _ in self.iter_prefix(prefix)]
        with self.transaction():
            for key in keys:
                self.delete(key)
        return len(keys)

    def count(self) -> int:
        try:
            return self.conn.execute("SELECT COUNT(*) FROM kv").fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"cannot count keys in {self.path}: {e}") from e


@contextmanager
def open_store(path: Union[str, Path]) -> Iterator[KVStore]:
    """Open the store for the lifetime of the block; always closed afterwards."""
    store = KVStore(path)
    try:
        yield store
    finally:
        store.close()
