from googleapiclient.discovery import Resource

from .a1 import GoogleSheetsA1Notation
from .resources import *
from .requests import *
from .ops import batchUpdate, getValues, updateValues, appendValues

class GoogleSheet():
    """
    Class representation of a sheet.  In Google Sheets parlance a 'sheet' is
    an individual sheet within a parent 'spreadsheet', the different tabs on
    the spreadsheet itself.  This is where the data actually resides.  Requests
    are addressed with the spreadsheetId of the parent and either the sheetId
    (structural changes) or an A1 range carrying the title (values).
    """
    def __init__(self, service: Resource, spreadsheetid: str,
                 props: SheetProperties|dict) -> None:
        self._service = service
        self._spreadsheetid = spreadsheetid
        self._props = props if isinstance(props, SheetProperties) else SheetProperties.from_dict(props)

    def __str__(self) -> str:
        return str(self._props)

    def __repr__(self) -> str:
        return f"{self.__class__}:{str(self)}"

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheetid

    @property
    def properties(self) -> SheetProperties:
        return self._props

    @property
    def title(self) -> str:
        return self._props.title

    @property
    def sheet_id(self) -> int:
        """
        Unique ID of the sheet within the spreadsheet.  The index can
        be changed but not the sheet ID.
        """
        return self._props.sheetId

    def row_range(self, row: int, cols: int) -> str:
        return GoogleSheetsA1Notation.row_range(self.title, row, cols).a1

    def getRows(self) -> list[list]:
        """
        Every row of values in the sheet, the header included.
        Trailing empty cells and rows are not returned by the API so rows
        can be ragged.
        """
        a1 = GoogleSheetsA1Notation.quote_title(self.title)
        response = getValues(self._service, self._spreadsheetid, a1)
        if response.valueRanges:
            return response.valueRanges[0].values
        return []

    def updateRow(self, row: int, values: list) -> UpdateValuesRequestResponse:
        """Overwrite a single row starting at column A"""
        vr = ValueRange(self.row_range(row, len(values)), "ROWS", [list(values)])
        return updateValues(self._service, self._spreadsheetid, vr)

    def appendRow(self, values: list) -> int:
        """
        Append a row after the last row of data, returning the 1-based
        row number it landed on.
        """
        vr = ValueRange(GoogleSheetsA1Notation.generate_a1(self.title, "A", 1), "ROWS", [list(values)])
        response = appendValues(self._service, self._spreadsheetid, vr)
        a1 = GoogleSheetsA1Notation(response.updates.updatedRange)
        if not a1 or not a1.start_row:
            raise RuntimeError(f"Append to {self.title} reported no range?")
        return a1.start_row

    def deleteRows(self, start_row: int, count: int = 1) -> GoogleSheetsUpdateRequestResponse:
        """
        Remove rows, 1-based start_row.
        https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/request#deletedimensionrequest
        """
        if start_row < 1 or count < 1:
            raise ValueError(f"deleteRows() invalid range: {start_row}+{count}")
        request = DeleteDimensionRequest(self.sheet_id, "ROWS", start_row - 1, start_row - 1 + count)
        return batchUpdate(self._service, self._spreadsheetid, GoogleSheetsUpdateRequest([request]))
