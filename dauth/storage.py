"""
DAuth Storage Layer

Abstract keyed storage consumed by the registries, plus two adapters.

Storage model:

    (namespace, table) ──► ordered map  key(uint64) ──► row(dict)

    namespace   owning account: the contract account for orks/users,
                the ork account for its private fragment table
    table       record kind ("orks", "users", "fragments")
    row         JSON-compatible dict, validated into a record by Table

Every write supersedes the previous version of a row rather than erasing
it, so ``history()`` returns all versions of a key, oldest first.

Writes are grouped by ``transaction()``. Inside a transaction writes are
staged and visible to reads made through the same store; they are applied
together when the block exits normally and discarded when an exception
escapes. Transactions nest by joining the outermost one.

Adapters:
    InMemoryStore   dict-backed, re-entrant lock, staged write buffer
    SqliteStore     single-file SQLite database, BEGIN IMMEDIATE/COMMIT/ROLLBACK

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from dauth.hardening import StorageError, Validators
from dauth.observability import DAuthComponent, get_logger

logger = get_logger("storage", DAuthComponent.STORAGE)

Row = Dict[str, Any]
SlotKey = Tuple[str, str, int]


# =============================================================================
# ABSTRACT STORE
# =============================================================================

class KeyValueStore(ABC):
    """Per-namespace ordered keyed storage with an atomic write boundary."""

    @abstractmethod
    def get(self, namespace: str, table: str, key: int) -> Optional[Row]:
        """Current row for key, or None."""

    @abstractmethod
    def put(self, namespace: str, table: str, key: int, row: Row) -> None:
        """Write a new current version of the row."""

    @abstractmethod
    def keys(self, namespace: str, table: str) -> List[int]:
        """Keys holding a current row, ascending."""

    @abstractmethod
    def history(self, namespace: str, table: str, key: int) -> List[Row]:
        """Every version ever written for key, oldest first."""

    @abstractmethod
    def transaction(self) -> Any:
        """Context manager grouping writes into one atomic unit."""

    def close(self) -> None:
        """Release adapter resources."""

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


# =============================================================================
# TYPED TABLE VIEW
# =============================================================================

R = TypeVar("R")


class Table(Generic[R]):
    """
    Typed view of one (namespace, table) map.

    ``insert`` requires the key to be free and ``update`` requires it to be
    taken; breaking either is a storage contract violation, not a user error.
    """

    def __init__(self, store: KeyValueStore, namespace: str, record_type: Any):
        self.store = store
        self.namespace = namespace
        self.record_type = record_type
        self.name: str = record_type.table

    def _decode(self, row: Row) -> R:
        return self.record_type.from_dict(row)

    def find(self, key: int) -> Optional[R]:
        Validators.uint64("key", key)
        row = self.store.get(self.namespace, self.name, key)
        return self._decode(row) if row is not None else None

    def insert(self, key: int, record: R) -> R:
        Validators.uint64("key", key)
        if self.store.get(self.namespace, self.name, key) is not None:
            raise StorageError(
                f"{self.name} row {key} already exists in {self.namespace}",
                table=self.name,
                namespace=self.namespace,
                key=key,
            )
        self.store.put(self.namespace, self.name, key, record.to_dict())
        return record

    def update(self, key: int, record: R) -> R:
        Validators.uint64("key", key)
        if self.store.get(self.namespace, self.name, key) is None:
            raise StorageError(
                f"{self.name} row {key} does not exist in {self.namespace}",
                table=self.name,
                namespace=self.namespace,
                key=key,
            )
        self.store.put(self.namespace, self.name, key, record.to_dict())
        return record

    def items(self) -> Iterator[Tuple[int, R]]:
        for key in self.store.keys(self.namespace, self.name):
            row = self.store.get(self.namespace, self.name, key)
            if row is not None:
                yield key, self._decode(row)

    def history(self, key: int) -> List[R]:
        Validators.uint64("key", key)
        return [self._decode(row) for row in self.store.history(self.namespace, self.name, key)]

    def __contains__(self, key: int) -> bool:
        return self.find(key) is not None

    def __len__(self) -> int:
        return len(self.store.keys(self.namespace, self.name))


# =============================================================================
# IN-MEMORY ADAPTER
# =============================================================================

class InMemoryStore(KeyValueStore):
    """
    Dict-backed store.

    One transaction at a time: the re-entrant lock is held for the whole
    outermost transaction, so a concurrent writer blocks instead of seeing
    staged rows.
    """

    def __init__(self):
        self._versions: Dict[Tuple[str, str], Dict[int, List[Row]]] = {}
        self._lock = threading.RLock()
        self._staged: Optional[Dict[SlotKey, Row]] = None
        self._depth = 0

    @contextmanager
    def transaction(self):
        with self._lock:
            if self._depth == 0:
                self._staged = {}
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    discarded = len(self._staged or {})
                    self._staged = None
                    logger.debug("Transaction rolled back", operation="rollback", writes=discarded)
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    staged, self._staged = self._staged or {}, None
                    self._commit(staged)

    def _commit(self, staged: Dict[SlotKey, Row]) -> None:
        for (namespace, table, key), row in staged.items():
            slot = self._versions.setdefault((namespace, table), {})
            slot.setdefault(key, []).append(row)
        logger.debug("Transaction committed", operation="commit", writes=len(staged))

    def get(self, namespace: str, table: str, key: int) -> Optional[Row]:
        with self._lock:
            if self._staged is not None and (namespace, table, key) in self._staged:
                return copy.deepcopy(self._staged[(namespace, table, key)])
            versions = self._versions.get((namespace, table), {}).get(key)
            return copy.deepcopy(versions[-1]) if versions else None

    def put(self, namespace: str, table: str, key: int, row: Row) -> None:
        with self.transaction():
            self._staged[(namespace, table, key)] = copy.deepcopy(row)

    def keys(self, namespace: str, table: str) -> List[int]:
        with self._lock:
            found = set(self._versions.get((namespace, table), {}))
            if self._staged:
                found.update(k for (ns, t, k) in self._staged if ns == namespace and t == table)
            return sorted(found)

    def history(self, namespace: str, table: str, key: int) -> List[Row]:
        with self._lock:
            versions = list(self._versions.get((namespace, table), {}).get(key, []))
            if self._staged is not None and (namespace, table, key) in self._staged:
                versions.append(self._staged[(namespace, table, key)])
            return copy.deepcopy(versions)

    def namespaces(self) -> List[str]:
        with self._lock:
            return sorted({ns for (ns, _t) in self._versions})


# =============================================================================
# SQLITE ADAPTER
# =============================================================================

_SCHEMA = """
CREATE TABLE IF NOT EXISTS rows (
    namespace TEXT NOT NULL,
    tbl TEXT NOT NULL,
    key TEXT NOT NULL,
    version INTEGER NOT NULL,
    stale INTEGER NOT NULL DEFAULT 0,
    data TEXT NOT NULL,
    written_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (namespace, tbl, key, version)
)
"""

_INDEX = "CREATE INDEX IF NOT EXISTS idx_rows_current ON rows(namespace, tbl, stale, key)"


def _encode_key(key: int) -> str:
    # uint64 does not fit SQLite's signed INTEGER; zero-padded text keeps numeric order
    return f"{key:020d}"


class SqliteStore(KeyValueStore):
    """
    SQLite-backed store.

    Superseded versions stay in the ``rows`` table flagged ``stale = 1``;
    exactly one non-stale row exists per written key.
    """

    def __init__(self, path: Union[str, Path] = ":memory:", timeout: float = 5.0):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._depth = 0
        with self._errors("open"):
            self._conn = sqlite3.connect(
                self.path, timeout=timeout, isolation_level=None, check_same_thread=False
            )
            self._init_schema()

    @contextmanager
    def _errors(self, operation: str):
        """Surface sqlite3 failures (locked database, closed connection) as StorageError."""
        try:
            yield
        except sqlite3.Error as e:
            raise StorageError(
                f"sqlite {operation} failed: {e}",
                path=self.path,
                operation=operation,
            ) from e

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.execute(_SCHEMA)
            self._conn.execute(_INDEX)

    def _rollback(self) -> None:
        with self._errors("rollback"):
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
        logger.debug("Transaction rolled back", operation="rollback", path=self.path)

    @contextmanager
    def transaction(self):
        with self._lock:
            if self._depth == 0:
                with self._errors("begin"):
                    self._conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._rollback()
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    try:
                        with self._errors("commit"):
                            self._conn.execute("COMMIT")
                    except StorageError:
                        self._rollback()
                        raise

    def _decode(self, data: str, where: Callable[[], str]) -> Row:
        try:
            row = json.loads(data)
        except json.JSONDecodeError as e:
            raise StorageError(f"corrupt row at {where()}: {e}") from e
        if not isinstance(row, dict):
            raise StorageError(f"corrupt row at {where()}: expected object")
        return row

    def get(self, namespace: str, table: str, key: int) -> Optional[Row]:
        with self._lock, self._errors("get"):
            cur = self._conn.execute(
                "SELECT data FROM rows WHERE namespace = ? AND tbl = ? AND key = ? AND stale = 0",
                (namespace, table, _encode_key(key)),
            )
            found = cur.fetchone()
        if found is None:
            return None
        return self._decode(found[0], lambda: f"{namespace}/{table}/{key}")

    def put(self, namespace: str, table: str, key: int, row: Row) -> None:
        data = json.dumps(row, sort_keys=True)
        encoded = _encode_key(key)
        with self.transaction(), self._errors("put"):
            cur = self._conn.execute(
                "SELECT COALESCE(MAX(version), 0) FROM rows WHERE namespace = ? AND tbl = ? AND key = ?",
                (namespace, table, encoded),
            )
            version = cur.fetchone()[0] + 1
            self._conn.execute(
                "UPDATE rows SET stale = 1 WHERE namespace = ? AND tbl = ? AND key = ? AND stale = 0",
                (namespace, table, encoded),
            )
            self._conn.execute(
                "INSERT INTO rows (namespace, tbl, key, version, data) VALUES (?, ?, ?, ?, ?)",
                (namespace, table, encoded, version, data),
            )

    def keys(self, namespace: str, table: str) -> List[int]:
        with self._lock, self._errors("keys"):
            cur = self._conn.execute(
                "SELECT key FROM rows WHERE namespace = ? AND tbl = ? AND stale = 0 ORDER BY key",
                (namespace, table),
            )
            return [int(k) for (k,) in cur.fetchall()]

    def history(self, namespace: str, table: str, key: int) -> List[Row]:
        with self._lock, self._errors("history"):
            cur = self._conn.execute(
                "SELECT version, data FROM rows WHERE namespace = ? AND tbl = ? AND key = ? ORDER BY version",
                (namespace, table, _encode_key(key)),
            )
            found = cur.fetchall()
        return [
            self._decode(data, lambda v=version: f"{namespace}/{table}/{key}@{v}")
            for version, data in found
        ]

    def close(self) -> None:
        with self._lock, self._errors("close"):
            self._conn.close()
