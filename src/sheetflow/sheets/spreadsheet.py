from googleapiclient.discovery import Resource

from .resources import *
from .requests import *
from .ops import get, batchUpdate
from .sheet import GoogleSheet

class GoogleSpreadSheet():
    """
    A spreadsheet as the parent of the sheets that act as tables.
    Holds the last fetched metadata, call get() to refresh it.
    """
    def __init__(self, service: Resource, spreadsheet_id: str) -> None:
        self._service = service
        self._spreadsheet = Spreadsheet(spreadsheetId=spreadsheet_id)

    def __bool__(self) -> bool:
        return bool(self._spreadsheet)

    def __str__(self) -> str:
        return str(self._spreadsheet)

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    def __len__(self) -> int:
        """
        In this context length is the number of sheets in this spreadsheet.
        Or 0 if unconnected,
        """
        return len(self._spreadsheet.sheets)

    def __contains__(self, val: str|int) -> bool:
        """
        Is the sheet in this spreadsheet?
        val can be either a string (title) or int (ID)
        """
        if isinstance(val, int):
            return any(s.properties.sheetId == val for s in self._spreadsheet.sheets)
        return any(s.properties.title == val for s in self._spreadsheet.sheets)

    def __getitem__(self, item: str|int) -> GoogleSheet:
        """
        Get the sheet.  In this context if item is a
        string that is by title and if it is an int is is by index,
        index in this case meaning sheet index, not list index
        """
        for s in self._spreadsheet.sheets:
            if (s.properties.index == item) if isinstance(item, int) else (s.properties.title == item):
                return GoogleSheet(self._service, self.id, s.properties)
        raise KeyError(f"{item} not in sheets[]")

    @property
    def id(self) -> str:
        return self._spreadsheet.spreadsheetId

    @property
    def spreadsheet(self) -> Spreadsheet:
        return self._spreadsheet

    @property
    def titles(self) -> list[str]:
        return [s.properties.title for s in self._spreadsheet.sheets]

    @property
    def title(self) -> str:
        if self._spreadsheet.sheets:
            return self._spreadsheet.properties.title
        return 'unconnected'

    def get(self) -> Spreadsheet:
        """Reload the spreadsheet metadata"""
        spreadsheet = get(self._service, self.id)
        if spreadsheet:
            self._spreadsheet = spreadsheet
        return self._spreadsheet

    def add_sheet(self, title: str, rows: int = 0, cols: int = 0) -> GoogleSheet:
        """
        Create a new sheet at the end of the spreadsheet.
        https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/request#addsheetrequest
        """
        response = batchUpdate(self._service, self.id,
                               GoogleSheetsUpdateRequest([AddSheetRequest(title, rows, cols)]))
        props = response.added_sheet()
        if not props:
            raise RuntimeError(f"Sheet {title} should have been created?")
        self._spreadsheet.sheets.append(Sheet(props))
        return GoogleSheet(self._service, self.id, props)

    def sheet(self, title: str, create: bool = True) -> GoogleSheet:
        """
        Sheet by title, created if it doesn't exist and create is set
        """
        if title in self:
            return self[title]
        if not create:
            raise KeyError(f"{title} not in sheets[]")
        return self.add_sheet(title)
