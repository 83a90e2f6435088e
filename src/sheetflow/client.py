from collections.abc import Mapping
from typing import Any
import logging

from googleapiclient.discovery import Resource

from .access import SheetsAccess
from .cache import Cache
from .config import SheetFlowConfig
from .errors import SheetFlowError
from .events import Listener, Listeners
from .log import configure_logging
from .sheets.spreadsheet import GoogleSpreadSheet
from .sheets.store import GoogleSheetStore
from .table import CREATED_AT, UPDATED_AT, Table
from .validation import compile_schema

logger = logging.getLogger(__name__)

class SheetFlow():
    """
    Entry point: one spreadsheet, the tables defined on it, the cache they
    share and the listeners they report to.

        flow = SheetFlow({"spreadsheet_id": "...",
                          "credentials": {"client_email": "...", "private_key": "..."},
                          "cache": {"enabled": True, "ttl": 60}})
        flow.connect()
        users = flow.define_table("Users", schema={"name": "string:required"}, timestamps=True)

    The configuration is checked on construction.  connect() gets a token
    once and loads the spreadsheet, then emits 'ready'.  service can be
    passed in to skip credentials altogether (e.g. an already built client).
    """
    def __init__(self, config: SheetFlowConfig|Mapping[str, Any]|None = None,
                 service: Resource|None = None,
                 access: SheetsAccess|None = None) -> None:
        self._config = SheetFlowConfig.parse(config)
        self._config.validate()
        if self._config.logging.level:
            configure_logging(self._config.logging.level, self._config.logging.format == "json")
        self._listeners = Listeners()
        self._cache = None
        if self._config.cache.enabled:
            self._cache = Cache(self._config.cache.ttl, self._config.cache.max_entries)
        self._service = service
        self._access = access
        if self._service is None and self._access is None:
            creds = self._config.credentials
            self._access = SheetsAccess(credentials=creds.service_account_info(),
                                        client_secrets=creds.client_secrets or None,
                                        token_cache=creds.token_cache or None)
        self._spreadsheet: GoogleSpreadSheet|None = None
        self._tables: dict[str, Table] = {}

    def __str__(self) -> str:
        return f"{self._config.spreadsheet_id}[{','.join(self._tables)}]"

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    def __contains__(self, name: str) -> bool:
        return name in self._tables

    def __getitem__(self, name: str) -> Table:
        return self._tables[name]

    @property
    def config(self) -> SheetFlowConfig:
        return self._config

    @property
    def cache(self) -> Cache|None:
        return self._cache

    @property
    def connected(self) -> bool:
        return self._spreadsheet is not None

    @property
    def spreadsheet(self) -> GoogleSpreadSheet:
        if self._spreadsheet is None:
            self.connect()
        return self._spreadsheet

    @property
    def tables(self) -> dict[str, Table]:
        return dict(self._tables)

    def add_listener(self, event: str, listener: Listener) -> Listener:
        return self._listeners.add(event, listener)

    def remove_listener(self, event: str, listener: Listener) -> bool:
        return self._listeners.remove(event, listener)

    def on(self, event: str):
        """
        Decorator form of add_listener:

            @flow.on("afterCreate")
            def created(n): ...
        """
        def _inner_decorator(f):
            return self._listeners.add(event, f)
        return _inner_decorator

    def connect(self) -> GoogleSpreadSheet:
        """
        Authenticate and load the spreadsheet metadata.  Only the first
        call talks to Google.
        """
        if self._spreadsheet is not None:
            return self._spreadsheet
        service = self._service
        if service is None:
            service = self._access.get_service()
        spreadsheet = GoogleSpreadSheet(service, self._config.spreadsheet_id)
        try:
            spreadsheet.get()
        except SheetFlowError:
            raise
        except Exception as e:
            raise SheetFlowError(f"Failed to initialize SheetFlow: {e}") from e
        self._service = service
        self._spreadsheet = spreadsheet
        logger.info("connected to spreadsheet %s", spreadsheet)
        self._listeners.emit("ready", None, spreadsheet_id=spreadsheet.id, title=spreadsheet.title)
        return spreadsheet

    def define_table(self, name: str, schema: Mapping[str, str]|None = None,
                     timestamps: bool = False) -> Table:
        """
        Bind a sheet (created if missing) as a table.  The schema is compiled
        here, so bad rule strings fail now and not on the first write.
        """
        if name in self._tables:
            raise SheetFlowError(f"Table {name} is already defined")
        compiled = compile_schema(schema, name)
        fields = compiled.fields + ([CREATED_AT, UPDATED_AT] if timestamps else [])
        store = GoogleSheetStore(self.spreadsheet, name, fields)
        table = Table(name, store, compiled, timestamps=timestamps,
                      cache=self._cache, listeners=self._listeners)
        table.bind()
        self._tables[name] = table
        return table
