from dataclasses import dataclass, asdict, field
from typing import List
import re

from ..resources import SheetFlowResourceBase
from .resources import *

class GoogleSheetsUpdateRequestBase(SheetFlowResourceBase):
    """
    Base class for sheet batchUpdate requests to get the actual
    request dict into the right format.
    """
    _name_re = re.compile("^([a-zA-Z])([a-zA-Z]+)Request$")

    def to_request(self) -> dict[str,dict]:
        """
        The request key is the class name with the trailing 'Request' stripped
        and the first letter lower cased, AddSheetRequest -> addSheet
        """
        m = self._name_re.match(self.__class__.__name__)
        if not m:
            raise RuntimeError("Invalid Google Sheets request format for class name")
        return {m.group(1).lower() + m.group(2): self.to_base()}

@dataclass
class AddSheetRequest(GoogleSheetsUpdateRequestBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/request#addsheetrequest
    """
    properties: SheetProperties|dict = field(default_factory=dict)

    def __init__(self, title: str, rows: int = 0, cols: int = 0) -> None:
        grid = {}
        if rows > 0:
            grid['rowCount'] = rows
        if cols > 0:
            grid['columnCount'] = cols
        self.properties = {'title': title}
        if grid:
            self.properties['gridProperties'] = grid

    def to_base(self) -> dict:
        return {'properties': dict(self.properties)}

@dataclass
class DeleteDimensionRequest(GoogleSheetsUpdateRequestBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/request#deletedimensionrequest
    The 'range' indirection makes this a bit complicated, we want the DimensionRange
    initializer but park it in the range object.
    Indexes are 0-based, start inclusive and end exclusive.
    """
    range: DimensionRange = field(init=False)

    def __init__(self, sheetId: int, dimension: str,
                 startIndex: int|None = None,
                 endIndex: int|None = None) -> None:
        self.range = DimensionRange(sheetId, dimension, startIndex, endIndex)

    def to_base(self) -> dict:
        return {'range': self.range.trim()}

@dataclass
class GoogleSheetsUpdateRequest(SheetFlowResourceBase):
    """
    Generate a GSheet Batch Update request body.
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/batchUpdate#request-body
    """
    requests: List[GoogleSheetsUpdateRequestBase|dict]
    includeSpreadsheetInResponse: bool = field(default=False)

    def to_base(self) -> dict:
        return {'requests': [r.to_request() if isinstance(r, GoogleSheetsUpdateRequestBase) else r
                             for r in self.requests],
                'includeSpreadsheetInResponse': self.includeSpreadsheetInResponse}

@dataclass
class GoogleSheetsUpdateRequestResponse(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/batchUpdate#response-body
    """
    spreadsheetId: str = field(default="")
    replies: List[dict] = field(default_factory=list)
    updatedSpreadsheet: Spreadsheet|dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.spreadsheetId)

    def fixup(self) -> None:
        self.updatedSpreadsheet = (self.updatedSpreadsheet if isinstance(self.updatedSpreadsheet,Spreadsheet)
                                   else Spreadsheet.from_dict(self.updatedSpreadsheet))

    def added_sheet(self) -> SheetProperties:
        """Properties of a sheet created by an addSheet request, if there was one."""
        for r in self.replies:
            if 'addSheet' in r:
                return SheetProperties.from_dict(r['addSheet'].get('properties', {}))
        return SheetProperties()

@dataclass
class GetValuesRequestResponse(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/batchGet#response-body
    """
    spreadsheetId: str = field(default="")
    valueRanges: list[ValueRange|dict] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.spreadsheetId)

    def fixup(self) -> None:
        self.valueRanges = [vr if isinstance(vr,ValueRange) else ValueRange.from_dict(vr) for vr in self.valueRanges]

@dataclass
class UpdateValuesRequestResponse(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/batchUpdate#response-body
    """
    spreadsheetId: str = field(default="")
    totalUpdatedRows: int = field(default=0)
    totalUpdatedColumns: int = field(default=0)
    totalUpdatedCells: int = field(default=0)
    responses: list[UpdateValuesResponse|dict] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        """Response is valid if an ID came back"""
        return bool(self.spreadsheetId)

    def fixup(self) -> None:
        self.responses = [r if isinstance(r,UpdateValuesResponse) else UpdateValuesResponse.from_dict(r) for r in self.responses]

@dataclass
class AppendValuesRequestResponse(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/append#response-body
    """
    spreadsheetId: str = field(default="")
    tableRange: str = field(default="")
    updates: UpdateValuesResponse|dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.spreadsheetId) and bool(self.updates)

    def fixup(self) -> None:
        self.updates = self.updates if isinstance(self.updates,UpdateValuesResponse) else UpdateValuesResponse.from_dict(self.updates)
