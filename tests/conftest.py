from unittest.mock import MagicMock

import pytest

SPREADSHEET = {
    "spreadsheetId": "sid",
    "properties": {"title": "Book", "locale": "en_US", "timeZone": "Etc/GMT"},
    "sheets": [
        {"properties": {"sheetId": 7, "title": "Users", "index": 0, "sheetType": "GRID",
                        "gridProperties": {"rowCount": 1000, "columnCount": 26}}},
    ],
    "spreadsheetUrl": "https://docs.google.com/spreadsheets/d/sid/edit",
}

def value_ranges(rows, title="Users"):
    vr = {"range": f"{title}!A1:Z1000", "majorDimension": "ROWS"}
    if rows:
        vr["values"] = rows
    return {"spreadsheetId": "sid", "valueRanges": [vr]}

@pytest.fixture
def service():
    """
    Stand in for the built sheets v4 resource.  Every method hangs off a
    MagicMock so only the execute() results need setting up.
    """
    service = MagicMock()
    spreadsheets = service.spreadsheets.return_value
    values = spreadsheets.values.return_value
    spreadsheets.get.return_value.execute.return_value = SPREADSHEET
    spreadsheets.batchUpdate.return_value.execute.return_value = {"spreadsheetId": "sid", "replies": [{}]}
    values.batchGet.return_value.execute.return_value = value_ranges([
        ["name", "age"],
        ["Ann", 30],
        [],
        ["Bob", ""],
    ])
    values.batchUpdate.return_value.execute.return_value = {"spreadsheetId": "sid", "totalUpdatedRows": 1}
    values.append.return_value.execute.return_value = {
        "spreadsheetId": "sid",
        "tableRange": "Users!A1:B4",
        "updates": {"spreadsheetId": "sid", "updatedRange": "Users!A5:C5", "updatedRows": 1},
    }
    return service

@pytest.fixture
def rows(service):
    """Set what the next values batchGet returns"""
    def _set(values, title="Users"):
        service.spreadsheets.return_value.values.return_value.batchGet.return_value.execute.return_value = \
            value_ranges(values, title)
    return _set
