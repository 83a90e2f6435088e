"""
Classes to work with Google Sheets as the backing store for tables
"""

# can address up to 'ZZZ'
GoogleSheetsMaxColumns = 18278
# current cell limit in a single GSheet
# this can be any R and C dimensions as long as RxC <= 10000000
GoogleSheetsMaxCells = 10000000


from .resources import Spreadsheet, Sheet, SheetProperties, ValueRange, GoogleSheetsEnum
from .requests import *
from .a1 import GoogleSheetsA1Notation
from .sheet import GoogleSheet
from .spreadsheet import GoogleSpreadSheet
from .store import GoogleSheetStore
