"""
Class implementations of the sheets resources the table layer touches.
As these are just logical groupings of data fields we use dataclasses.
There's a handy dataclass.asdict() for the request side but no inverse,
so nested resources fix themselves up from dicts in fixup(), and responses
are built with from_dict() as the API returns plenty of fields we don't model.
"""
from dataclasses import dataclass, field, asdict
from typing import List

from ..resources import SheetFlowResourceBase

class GoogleSheetsEnum():
    """
    An 'enum' in the sheets client is just a string so this is
    just to translate and validate input.
    """
    _VALID_VALUE_RENDER_OPTIONS = {
        "FORMATTED": "FORMATTED_VALUE",
        "FORMATTED_VALUE": "FORMATTED_VALUE",
        "UNFORMATTED": "UNFORMATTED_VALUE",
        "UNFORMATTED_VALUE": "UNFORMATTED_VALUE",
        "FORMULA": "FORMULA"
    }
    _VALID_DATE_TIME_RENDER_OPTIONS = {
        "SERIAL": "SERIAL_NUMBER",
        "SERIAL_NUMBER": "SERIAL_NUMBER",
        "FORMATTED": "FORMATTED_STRING",
        "FORMATTED_STRING": "FORMATTED_STRING"
    }
    _VALID_DIMENSION_OPTIONS = {
        "ROWS": "ROWS",
        "R": "ROWS",
        "C": "COLUMNS",
        "COLS": "COLUMNS",
        "COLUMNS": "COLUMNS"
    }
    _VALID_VALUE_INPUT_OPTIONS = {
        "RAW": "RAW",
        "USER": "USER_ENTERED",
        "USER_ENTERED": "USER_ENTERED"
    }
    _VALID_INSERT_DATA_OPTIONS = {
        "INSERT": "INSERT_ROWS",
        "INSERT_ROWS": "INSERT_ROWS",
        "OVERWRITE": "OVERWRITE"
    }
    @classmethod
    def valueRenderOption(cls, option: str) -> str:
        """https://developers.google.com/sheets/api/reference/rest/v4/ValueRenderOption"""
        return cls._VALID_VALUE_RENDER_OPTIONS.get(str(option).upper(), "")

    @classmethod
    def dateTimeRenderOption(cls, option: str) -> str:
        """https://developers.google.com/sheets/api/reference/rest/v4/DateTimeRenderOption"""
        return cls._VALID_DATE_TIME_RENDER_OPTIONS.get(str(option).upper(), "")

    @classmethod
    def dimension(cls, dim: str) -> str:
        """https://developers.google.com/sheets/api/reference/rest/v4/Dimension"""
        return cls._VALID_DIMENSION_OPTIONS.get(str(dim).upper(), "")

    @classmethod
    def valueInputOption(cls, option: str) -> str:
        """https://developers.google.com/sheets/api/reference/rest/v4/ValueInputOption"""
        return cls._VALID_VALUE_INPUT_OPTIONS.get(str(option).upper(), "")

    @classmethod
    def insertDataOption(cls, option: str) -> str:
        """https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/append#InsertDataOption"""
        return cls._VALID_INSERT_DATA_OPTIONS.get(str(option).upper(), "")

@dataclass
class GridProperties(SheetFlowResourceBase):
    """https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/sheets#gridproperties"""
    rowCount: int = field(default=-1)
    columnCount: int = field(default=-1)
    frozenRowCount: int = field(default=0)
    frozenColumnCount: int = field(default=0)

    def __bool__(self) -> bool:
        return self.rowCount >= 0 and self.columnCount >= 0

@dataclass
class SheetProperties(SheetFlowResourceBase):
    """https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/sheets#sheetproperties"""
    sheetId: int = field(default=-1)
    title: str = field(default="")
    index: int = field(default=-1)
    sheetType: str = field(default="")
    gridProperties: GridProperties|dict = field(default_factory=dict)
    hidden: bool = field(default=False)

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        self.gridProperties = (self.gridProperties if isinstance(self.gridProperties,GridProperties)
                               else GridProperties.from_dict(self.gridProperties))

    def to_base(self) -> dict:
        self.fixup()
        b = asdict(self)
        b['gridProperties'] = self.gridProperties.trim()
        return b

    def __bool__(self) -> bool:
        """
        True if it is valid, which is the ID and index are 0 or positive
        as negative index is not possible
        """
        return self.sheetId >= 0 and self.index >= 0 and bool(self.title)

    def __str__(self) -> str:
        if self:
            return f"{self.title}({self.sheetId}[{self.index}]):{self.sheetType}"
        return "<invalid sheet>"

@dataclass
class Sheet(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/sheets#sheet
    Representation of a sheet within a spreadsheet, only the properties are kept.
    """
    properties: SheetProperties|dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        self.properties = (self.properties if isinstance(self.properties,SheetProperties)
                           else SheetProperties.from_dict(self.properties))

    def __bool__(self) -> bool:
        return bool(self.properties)

    def __str__(self) -> str:
        return str(self.properties)

@dataclass
class SpreadsheetProperties(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets#SpreadsheetProperties
    """
    title: str = field(default="")
    locale: str = field(default="")
    timeZone: str = field(default="")

    def __bool__(self) -> bool:
        return bool(self.title)

@dataclass
class Spreadsheet(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets#resource:-spreadsheet
    The representation of a spreadsheet.
    """
    spreadsheetId: str = field(default="")
    properties: SpreadsheetProperties|dict = field(default_factory=dict)
    sheets: List[Sheet|dict] = field(default_factory=list)
    spreadsheetUrl: str = field(default="")

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        self.properties = (self.properties if isinstance(self.properties,SpreadsheetProperties)
                           else SpreadsheetProperties.from_dict(self.properties))
        self.sheets = [s if isinstance(s,Sheet) else Sheet.from_dict(s) for s in self.sheets]

    def __bool__(self) -> bool:
        return bool(self.spreadsheetId)

    def __str__(self) -> str:
        if not self.spreadsheetId:
            return 'unconnected'
        if not self.sheets:
            return f"{self.spreadsheetId}(unconnected)"
        return f"{self.properties.title}[{','.join(str(s) for s in self.sheets)}]"

@dataclass
class DimensionRange(SheetFlowResourceBase):
    """https://developers.google.com/sheets/api/reference/rest/v4/DimensionRange"""
    sheetId: int = field(default=-1)
    dimension: str = field(default="")
    startIndex: int|None = field(default=None)
    endIndex: int|None = field(default=None)

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        if self.dimension:
            d = str(self.dimension)
            self.dimension = GoogleSheetsEnum.dimension(d)
            if not self.dimension:
                raise ValueError(f"Invalid dimension value: {d}")

    def __bool__(self) -> bool:
        return self.sheetId >= 0 and bool(self.dimension)

@dataclass
class ValueRange(SheetFlowResourceBase):
    """https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values#resource:-valuerange"""
    range: str = field(default="")
    majorDimension: str = field(default="ROWS")
    values: list[list[bool|str|int|float|None]] = field(default_factory=list)

    def __post_init__(self):
        self.fixup()

    def fixup(self) -> None:
        if self.majorDimension:
            self.majorDimension = GoogleSheetsEnum.dimension(str(self.majorDimension))

    def __bool__(self) -> bool:
        """
        A ValueRange is valid if the range string is not empty
        and the majorDimension has a valid value.
        """
        return bool(self.range) and bool(self.majorDimension)

@dataclass
class UpdateValuesResponse(SheetFlowResourceBase):
    """
    https://developers.google.com/sheets/api/reference/rest/v4/UpdateValuesResponse
    """
    spreadsheetId: str = field(default="")
    updatedRange: str = field(default="")
    updatedRows: int = field(default=0)
    updatedColumns: int = field(default=0)
    updatedCells: int = field(default=0)

    def __bool__(self) -> bool:
        return bool(self.spreadsheetId) and bool(self.updatedRange)
