"""
A table: one backing sheet plus a schema.
This is where validation, the store, the query engine and the cache meet.
Everything runs in the calling thread, one store call after another, and no
guarantee is made about what another writer does to the sheet in between.
"""
from collections.abc import Callable, Mapping
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import logging

from .cache import Cache, key_prefix, make_key
from .errors import SheetFlowConnectionError, SheetFlowError
from .events import Listener, Listeners
from .query import AggregateSpec, Query, matches_exact, run_aggregate, run_find
from .store import BackingStore, ROW_KEY
from .validation import Schema, coerce_record, compile_schema, validate

logger = logging.getLogger(__name__)

CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"

def utc_timestamp() -> str:
    """ISO 8601 UTC with millisecond precision and a Z suffix"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

class TableState(Enum):
    UNINITIALIZED = "uninitialized"
    BOUND = "bound"

class Table():
    """
    create/find/update/delete/aggregate over a BackingStore.

    The schema is a dict of rule strings (see sheetflow.validation) or an
    already compiled Schema.  With timestamps set, createdAt/updatedAt are
    maintained on writes.  find() results are cached when a cache is given,
    any write through this table drops the entries it cached.

    update() and delete() match their where on plain equality only, the
    operator grammar of find() doesn't apply to them.
    """
    def __init__(self, name: str, store: BackingStore,
                 schema: Mapping[str, str]|Schema|None = None,
                 timestamps: bool = False,
                 cache: Cache|None = None,
                 listeners: Listeners|None = None,
                 clock: Callable[[], str] = utc_timestamp) -> None:
        if not name:
            raise ValueError("A table needs a name")
        self._name = name
        self._store = store
        self._schema = schema if isinstance(schema, Schema) else compile_schema(schema, name)
        self._timestamps = timestamps
        self._cache = cache
        self._listeners = listeners if listeners is not None else Listeners()
        self._clock = clock
        self._state = TableState.UNINITIALIZED

    def __str__(self) -> str:
        return f"{self._name}<{self._state.value}>"

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    @property
    def name(self) -> str:
        return self._name

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def store(self) -> BackingStore:
        return self._store

    @property
    def state(self) -> TableState:
        return self._state

    @property
    def timestamps(self) -> bool:
        return self._timestamps

    def on(self, event: str, listener: Listener) -> Listener:
        return self._listeners.add(event, listener)

    @contextmanager
    def _failures(self, what: str):
        """sheetflow errors go through untouched, anything else gets wrapped"""
        try:
            yield
        except SheetFlowError:
            raise
        except Exception as e:
            raise SheetFlowError(f"Failed to {what} {self._name}: {e}") from e

    def bind(self) -> None:
        """
        Resolve the backing sheet, creating it if missing.
        Only the first call does anything.
        """
        if self._state is TableState.BOUND:
            return
        with self._failures("bind"):
            self._store.load_metadata()
        self._state = TableState.BOUND
        logger.debug("table %s bound", self._name)

    def _fetch(self) -> list[dict[str, Any]]:
        self.bind()
        return [coerce_record(r, self._schema) for r in self._store.list_records()]

    def _invalidate(self) -> None:
        if self._cache is not None:
            dropped = self._cache.invalidate(key_prefix(self._name))
            logger.debug("table %s dropped %d cached queries", self._name, dropped)

    def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate and append a record, returning it as stored with its row identity.
        The caller's dict is left alone.
        """
        record = dict(data)
        validate(record, self._schema)
        if self._timestamps:
            now = self._clock()
            record[CREATED_AT] = now
            record[UPDATED_AT] = now
        with self._failures("create in"):
            self.bind()
            stored = self._store.append_record(record)
        self._invalidate()
        self._listeners.emit("afterCreate", self._name, data=stored)
        return stored

    def find(self, query: Query|Mapping[str, Any]|None = None) -> list[dict[str, Any]]:
        """
        Records matching the query: filtered, sorted then paginated.
        A cache hit is returned as is.
        """
        with self._failures("query"):
            q = Query.parse(query)
            if self._cache is None:
                return run_find(self._fetch(), q)
            key = make_key(self._name, q.to_base())
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("table %s cache hit", self._name)
                return cached
            results = run_find(self._fetch(), q)
            self._cache.set(key, results)
        return results

    def find_one(self, query: Query|Mapping[str, Any]|None = None) -> dict[str, Any]|None:
        results = self.find(replace(Query.parse(query), limit=1))
        return results[0] if results else None

    def update(self, where: Mapping[str, Any], data: Mapping[str, Any]) -> int:
        """
        Merge data into every record whose fields equal where, returning how
        many were written.  Stops at the first record that fails to persist,
        the error raised carries the count written before it as completed.
        """
        patch = dict(data)
        validate(patch, self._schema, partial=True)
        if self._timestamps:
            patch[UPDATED_AT] = self._clock()
        with self._failures("update"):
            matched = [r for r in self._fetch() if matches_exact(r, where)]
        done = self._each(matched, "update", lambda r: self._store.persist({**r, **patch}))
        self._listeners.emit("afterUpdate", self._name, where=dict(where or {}), data=patch, count=done)
        return done

    def delete(self, where: Mapping[str, Any]) -> int:
        """
        Remove every record whose fields equal where, returning how many went.
        Rows go highest first so the positions of the rest stay valid.
        """
        with self._failures("delete from"):
            matched = [r for r in self._fetch() if matches_exact(r, where)]
        matched.sort(key=lambda r: r.get(ROW_KEY) or 0, reverse=True)
        done = self._each(matched, "delete", self._store.remove_record)
        self._listeners.emit("afterDelete", self._name, where=dict(where or {}), count=done)
        return done

    def _each(self, records: list[dict[str, Any]], what: str,
              fn: Callable[[dict[str, Any]], Any]) -> int:
        done = 0
        try:
            for r in records:
                fn(r)
                done += 1
        except SheetFlowError as e:
            e.completed = done
            raise
        except Exception as e:
            raise SheetFlowConnectionError(
                f"Failed to {what} {self._name}: {done} of {len(records)} records done: {e}",
                completed=done) from e
        finally:
            if done:
                self._invalidate()
        return done

    def aggregate(self, spec: AggregateSpec|Mapping[str, Any]) -> list[dict[str, Any]]:
        """Group, reduce then filter with having.  Not cached."""
        with self._failures("aggregate"):
            s = AggregateSpec.parse(spec)
            return run_aggregate(self._fetch(), s)
