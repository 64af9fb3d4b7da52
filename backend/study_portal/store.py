"""In-memory entity store and lifecycle helpers.

Every entity kind lives in its own `Table`: a mapping from id to record
plus a monotonic id counter that starts at 1 and never hands out an id
twice, even after deletions. A `MemoryStore` groups the tables behind a
single re-entrant lock and has an explicit `init()`/`shutdown()`
lifecycle so tests can build isolated instances. State is volatile:
nothing survives a shutdown or process exit.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from sqlmodel import SQLModel

logger = logging.getLogger("study_portal.store")

T = TypeVar("T", bound=SQLModel)

ENTITY_KINDS = (
    "users",
    "files",
    "exam_weeks",
    "exam_days",
    "quizzes",
    "quiz_questions",
    "quiz_attempts",
)


class Table(Generic[T]):
    """Records of one kind keyed by id.

    Records handed in or out are deep copies, so nothing outside the
    table can mutate a stored row without going through `replace`.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._rows: Dict[int, T] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, row_id: int) -> bool:
        return row_id in self._rows

    def insert(self, row: T, **server_fields) -> T:
        row_id = self._next_id
        self._next_id += 1
        stored = row.model_copy(update={**server_fields, "id": row_id}, deep=True)
        self._rows[row_id] = stored
        return stored.model_copy(deep=True)

    def get(self, row_id: int) -> Optional[T]:
        row = self._rows.get(row_id)
        return row.model_copy(deep=True) if row is not None else None

    def replace(self, row_id: int, row: T) -> T:
        self._rows[row_id] = row.model_copy(update={"id": row_id}, deep=True)
        return self._rows[row_id].model_copy(deep=True)

    def remove(self, row_id: int) -> bool:
        return self._rows.pop(row_id, None) is not None

    def all(self) -> List[T]:
        """Return every record in insertion order."""
        return [row.model_copy(deep=True) for row in self._rows.values()]

    def where(self, predicate: Callable[[T], bool]) -> List[T]:
        return [row.model_copy(deep=True) for row in self._rows.values() if predicate(row)]

    def remove_where(self, predicate: Callable[[T], bool]) -> int:
        doomed = [row_id for row_id, row in self._rows.items() if predicate(row)]
        for row_id in doomed:
            del self._rows[row_id]
        return len(doomed)


class MemoryStore:
    """Authoritative holder of all portal records for one process.

    `lock` guards every table. Compound operations (cascade deletes,
    quiz code uniqueness checks) take it once around the whole
    operation; it is re-entrant so services can wrap several repository
    calls in one critical section.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._tables: Optional[Dict[str, Table]] = None

    @property
    def is_open(self) -> bool:
        return self._tables is not None

    def init(self) -> "MemoryStore":
        """(Re)create empty tables for every entity kind."""
        with self.lock:
            self._tables = {kind: Table(kind) for kind in ENTITY_KINDS}
        logger.info("store_init %s", json.dumps({"kinds": list(ENTITY_KINDS)}))
        return self

    def shutdown(self) -> None:
        """Discard all records. The store must be re-initialised before reuse."""
        with self.lock:
            if self._tables is None:
                return
            counts = {kind: len(table) for kind, table in self._tables.items()}
            self._tables = None
        logger.info("store_shutdown %s", json.dumps({"discarded": counts}))

    def table(self, kind: str) -> Table:
        if self._tables is None:
            raise RuntimeError("store is not initialised; call init() first")
        return self._tables[kind]


_default_store: Optional[MemoryStore] = None
_default_lock = threading.Lock()


def init_store() -> MemoryStore:
    """Initialise and return the process-wide store (idempotent)."""
    global _default_store
    with _default_lock:
        if _default_store is None or not _default_store.is_open:
            _default_store = MemoryStore().init()
        return _default_store


def shutdown_store() -> None:
    global _default_store
    with _default_lock:
        if _default_store is not None:
            _default_store.shutdown()
        _default_store = None


def get_store() -> MemoryStore:
    """Return the process-wide store for FastAPI dependency injection.

    Tests override this dependency with their own `MemoryStore`.
    """
    return init_store()
