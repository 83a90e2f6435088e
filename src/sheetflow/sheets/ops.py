"""
Thin wrappers over the Sheets v4 client calls the table layer needs.
Each takes the built service resource as its first argument, the access
object owns building it.  Client and transport failures are translated into
sheetflow errors here so nothing above has to know about googleapiclient.
"""
from collections.abc import Iterable
from functools import wraps
import logging

import google.auth.exceptions
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from ..errors import SheetFlowAuthenticationError, SheetFlowConnectionError
from .resources import *
from .requests import *
from .a1 import GoogleSheetsA1Notation

logger = logging.getLogger(__name__)

def transport(what: str):
    """
    Decorator wrapping a sheets call so failures surface as sheetflow errors
    with the original exception chained as the cause.  No retries.
    """
    def _inner_decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except HttpError as e:
                logger.debug("%s failed: %s", what, e)
                if e.resp is not None and e.resp.status in (401, 403):
                    raise SheetFlowAuthenticationError(f"Failed to {what}: access denied ({e.resp.status})") from e
                raise SheetFlowConnectionError(f"Failed to {what}: {e}") from e
            except google.auth.exceptions.RefreshError as e:
                raise SheetFlowAuthenticationError(f"Failed to {what}: credentials refused") from e
            except (google.auth.exceptions.TransportError, OSError) as e:
                logger.debug("%s failed: %s", what, e)
                raise SheetFlowConnectionError(f"Failed to {what}: {e}") from e
        return wrapped
    return _inner_decorator

@transport("load spreadsheet")
def get(service: Resource, spreadsheetId: str,
        ranges: list[GoogleSheetsA1Notation|str]|None = None,
        includeGridData: bool = False) -> Spreadsheet:
    """
    Wrapper for calling the get() spreadsheet method.
    See https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/get
    This is for retrieving spreadsheet properties, the sheets and their titles.
    """
    ret = Spreadsheet()
    if spreadsheetId:
        response = service.spreadsheets().get(spreadsheetId=spreadsheetId,
                                              ranges=[str(r) for r in ranges or []],
                                              includeGridData=includeGridData).execute()
        if response:
            ret = Spreadsheet.from_dict(response)
    return ret

@transport("update spreadsheet")
def batchUpdate(service: Resource, spreadsheetId: str,
                request: GoogleSheetsUpdateRequest|dict) -> GoogleSheetsUpdateRequestResponse:
    """
    Wrapper for calling the batchUpdate() spreadsheet method.
    See https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets/batchUpdate
    Used for structural changes: adding sheets and deleting rows.
    """
    body = request.to_base() if isinstance(request, GoogleSheetsUpdateRequest) else request
    response = service.spreadsheets().batchUpdate(spreadsheetId=spreadsheetId, body=body).execute()
    if response:
        return GoogleSheetsUpdateRequestResponse.from_dict(response)
    return GoogleSheetsUpdateRequestResponse()

@transport("read values")
def getValues(service: Resource, spreadsheetId: str,
              ranges: str|list[str|GoogleSheetsA1Notation],
              dimension: str = "ROWS",
              valueRenderOption: str = "UNFORMATTED",
              dateTimeRenderOption: str = "FORMATTED") -> GetValuesRequestResponse:
    """
    Wrapper for calling the batchGet() method on the values resource.
    See https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/batchGet
    We always call batchGet, even for a single range, just for consistency.
    Unformatted values so numbers and booleans come back typed, dates as
    formatted strings so they can be parsed.
    """
    range_list = GoogleSheetsA1Notation.to_str_list(ranges)
    dim = GoogleSheetsEnum.dimension(dimension)
    if not dim:
        raise ValueError(f"Invalid majorDimension value: {dimension}")
    value_render = GoogleSheetsEnum.valueRenderOption(valueRenderOption)
    if not value_render:
        raise ValueError(f"Invalid valueRenderOption value: {valueRenderOption}")
    date_time_render = GoogleSheetsEnum.dateTimeRenderOption(dateTimeRenderOption)
    if not date_time_render:
        raise ValueError(f"Invalid dateTimeRenderOption value: {dateTimeRenderOption}")
    response = GetValuesRequestResponse(spreadsheetId)
    if range_list:
        r = service.spreadsheets().values().batchGet(spreadsheetId=spreadsheetId,
                                                     ranges=range_list,
                                                     majorDimension=dim,
                                                     valueRenderOption=value_render,
                                                     dateTimeRenderOption=date_time_render).execute()
        if r:
            response = GetValuesRequestResponse.from_dict(r)
    return response

@transport("write values")
def updateValues(service: Resource, spreadsheetId: str,
                 data: ValueRange|list[ValueRange],
                 valueInputOption: str = "RAW") -> UpdateValuesRequestResponse:
    """
    Wrapper for calling the batchUpdate() method on the values resource.
    See https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/batchUpdate
    RAW input by default so a cell value like '=1+1' is stored as text.
    """
    dlist = [d.to_base() for d in data] if isinstance(data, Iterable) else [data.to_base()]
    value_input = GoogleSheetsEnum.valueInputOption(valueInputOption)
    if not value_input:
        raise ValueError(f"Invalid valueInputOption value: {valueInputOption}")
    response = UpdateValuesRequestResponse(spreadsheetId)
    if dlist:
        body = {
            "valueInputOption": value_input,
            "data": dlist
        }
        r = service.spreadsheets().values().batchUpdate(spreadsheetId=spreadsheetId, body=body).execute()
        if r:
            response = UpdateValuesRequestResponse.from_dict(r)
    return response

@transport("append values")
def appendValues(service: Resource, spreadsheetId: str,
                 data: ValueRange,
                 valueInputOption: str = "RAW",
                 insertDataOption: str = "INSERT_ROWS") -> AppendValuesRequestResponse:
    """
    Wrapper for calling the append() method on the values resource.
    See https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values/append
    The API finds the table in data.range and writes after its last row, the
    response reports where it landed.
    """
    value_input = GoogleSheetsEnum.valueInputOption(valueInputOption)
    if not value_input:
        raise ValueError(f"Invalid valueInputOption value: {valueInputOption}")
    insert_data = GoogleSheetsEnum.insertDataOption(insertDataOption)
    if not insert_data:
        raise ValueError(f"Invalid insertDataOption value: {insertDataOption}")
    r = service.spreadsheets().values().append(spreadsheetId=spreadsheetId,
                                               range=data.range,
                                               valueInputOption=value_input,
                                               insertDataOption=insert_data,
                                               body=data.to_base()).execute()
    if r:
        return AppendValuesRequestResponse.from_dict(r)
    return AppendValuesRequestResponse(spreadsheetId)
