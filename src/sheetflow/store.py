"""
The backing store boundary.
A table talks to its rows only through this interface, the Google Sheets
implementation lives in sheetflow.sheets.store.  Records cross the boundary
as plain dicts with the row identity under ROW_KEY.
"""
from abc import ABC, abstractmethod
from typing import Any
import copy
import logging

logger = logging.getLogger(__name__)

# 1-based row number in the sheet, row 1 being the header
ROW_KEY = "_row"


class BackingStore(ABC):
    """
    Rows of one sheet.
    Row identity is positional, removing a record shifts the identity of
    every record after it.
    """
    @property
    @abstractmethod
    def title(self) -> str:
        ...

    @abstractmethod
    def load_metadata(self) -> None:
        """Resolve the sheet, creating it if needed, and read its header."""
        ...

    @abstractmethod
    def list_records(self) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    def append_record(self, record: dict[str, Any]) -> dict[str, Any]:
        """Store a new record, returning it with its assigned identity."""
        ...

    @abstractmethod
    def persist(self, record: dict[str, Any]) -> None:
        """Write all fields of an existing record back."""
        ...

    @abstractmethod
    def remove_record(self, record: dict[str, Any]) -> None:
        ...


class MemoryStore(BackingStore):
    """
    A sheet held in memory with the same positional identity as the real thing.
    Handy for local development and for tests.
    """
    def __init__(self, title: str, rows: list[dict[str, Any]]|None = None,
                 header: list[str]|None = None) -> None:
        self._title = title
        self._header = list(header or [])
        self._rows: list[dict[str, Any]] = []
        self.loaded = False
        for r in rows or []:
            self._rows.append({k: v for k,v in r.items() if k != ROW_KEY})
            self._extend_header(r)

    def __len__(self) -> int:
        return len(self._rows)

    def __str__(self) -> str:
        return f"{self._title}({len(self)} rows)"

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    @property
    def title(self) -> str:
        return self._title

    @property
    def header(self) -> list[str]:
        return list(self._header)

    def _extend_header(self, record: dict[str, Any]) -> None:
        for k in record:
            if k != ROW_KEY and k not in self._header:
                self._header.append(k)

    def _index(self, record: dict[str, Any]) -> int:
        row = record.get(ROW_KEY)
        if not isinstance(row, int) or row < 2 or row - 2 >= len(self._rows):
            raise KeyError(f"{self._title}: no row for identity {row!r}")
        return row - 2

    def load_metadata(self) -> None:
        self.loaded = True

    def list_records(self) -> list[dict[str, Any]]:
        return [{**copy.deepcopy(r), ROW_KEY: i + 2} for i, r in enumerate(self._rows)]

    def append_record(self, record: dict[str, Any]) -> dict[str, Any]:
        stored = {k: copy.deepcopy(v) for k,v in record.items() if k != ROW_KEY}
        self._extend_header(stored)
        self._rows.append(stored)
        return {**copy.deepcopy(stored), ROW_KEY: len(self._rows) + 1}

    def persist(self, record: dict[str, Any]) -> None:
        i = self._index(record)
        self._extend_header(record)
        self._rows[i] = {k: copy.deepcopy(v) for k,v in record.items() if k != ROW_KEY}

    def remove_record(self, record: dict[str, Any]) -> None:
        del self._rows[self._index(record)]
