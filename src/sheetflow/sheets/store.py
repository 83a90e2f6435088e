"""
Records backed by a Google Sheet.
Row 1 is the header and names the fields, every row after it is a record
whose identity is its row number.
"""
from datetime import date, datetime
from typing import Any
import json
import logging

from ..store import BackingStore, ROW_KEY
from .spreadsheet import GoogleSpreadSheet
from .sheet import GoogleSheet

logger = logging.getLogger(__name__)

def to_cell(value: Any) -> Any:
    """Record value to what gets written into a cell"""
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, default=str)
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)

def from_cell(value: Any) -> Any:
    """Empty cells read back as missing values"""
    if value == "":
        return None
    return value

class GoogleSheetStore(BackingStore):
    """
    BackingStore over one sheet of a spreadsheet.
    fields seeds the header when the sheet is new or empty, fields written
    later that aren't in the header yet get new columns.
    """
    def __init__(self, spreadsheet: GoogleSpreadSheet, title: str,
                 fields: list[str]|None = None) -> None:
        self._spreadsheet = spreadsheet
        self._title = title
        self._fields = list(fields or [])
        self._sheet: GoogleSheet|None = None
        self._header: list[str] = []

    def __str__(self) -> str:
        return f"{self._spreadsheet.id}:{self._title}"

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    @property
    def title(self) -> str:
        return self._title

    @property
    def header(self) -> list[str]:
        return list(self._header)

    @property
    def sheet(self) -> GoogleSheet:
        if self._sheet is None:
            raise RuntimeError(f"{self._title}: load_metadata() has not been called")
        return self._sheet

    def load_metadata(self) -> None:
        if not self._spreadsheet.spreadsheet.sheets:
            self._spreadsheet.get()
        created = self._title not in self._spreadsheet
        self._sheet = self._spreadsheet.sheet(self._title, create=True)
        if created:
            logger.info("created sheet %s in %s", self._title, self._spreadsheet.id)
        rows = self._sheet.getRows()
        self._header = [str(h) for h in rows[0]] if rows else []
        if not self._header and self._fields:
            self._header = list(self._fields)
            self.sheet.updateRow(1, self._header)

    def _extend_header(self, record: dict[str, Any]) -> None:
        added = [k for k in record if k != ROW_KEY and k not in self._header]
        if added:
            self._header.extend(added)
            logger.debug("%s: new columns %s", self._title, added)
            self.sheet.updateRow(1, self._header)

    def _values(self, record: dict[str, Any]) -> list[Any]:
        return [to_cell(record.get(h)) if h else "" for h in self._header]

    def list_records(self) -> list[dict[str, Any]]:
        rows = self.sheet.getRows()
        if not rows:
            return []
        self._header = [str(h) for h in rows[0]]
        records = []
        for i, row in enumerate(rows[1:], start=2):
            if all(c == "" or c is None for c in row):
                continue
            record = {h: (from_cell(row[j]) if j < len(row) else None)
                      for j, h in enumerate(self._header) if h}
            record[ROW_KEY] = i
            records.append(record)
        return records

    def append_record(self, record: dict[str, Any]) -> dict[str, Any]:
        self._extend_header(record)
        row = self.sheet.appendRow(self._values(record))
        stored = {k: v for k,v in record.items() if k != ROW_KEY}
        stored[ROW_KEY] = row
        return stored

    def persist(self, record: dict[str, Any]) -> None:
        row = record.get(ROW_KEY)
        if not isinstance(row, int) or row < 2:
            raise KeyError(f"{self._title}: no row for identity {row!r}")
        self._extend_header(record)
        self.sheet.updateRow(row, self._values(record))

    def remove_record(self, record: dict[str, Any]) -> None:
        row = record.get(ROW_KEY)
        if not isinstance(row, int) or row < 2:
            raise KeyError(f"{self._title}: no row for identity {row!r}")
        self.sheet.deleteRows(row)
