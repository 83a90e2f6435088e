"""
An ORM-like layer that uses a Google Sheets spreadsheet as the database.
Each sheet is a table, its first row names the fields and every row after
it is a record.  Tables are defined with a compact schema of rule strings
and support create/find/update/delete/aggregate with an optional cache of
query results and createdAt/updatedAt timestamps.

Python dataclasses are used for the structs (queries, config, the Sheets API
resources) and most of the plumbing is translating between those and the raw
dicts.  Filtering, sorting and aggregation all happen in memory on the rows
fetched from the sheet.
"""

from .errors import *
from .validation import Rule, Schema, compile_schema, parse_rule, validate
from .cache import Cache, make_key
from .query import AggregateSpec, Query, run_aggregate, run_find
from .store import BackingStore, MemoryStore, ROW_KEY
from .events import Notification, Listeners
from .table import Table, TableState
from .config import SheetFlowConfig
from .auth import ApiKeyAuth
from .client import SheetFlow
