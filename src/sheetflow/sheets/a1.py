import re

from typing import Self
from collections.abc import Iterable

from . import GoogleSheetsMaxColumns

class GoogleSheetsA1Notation():
    """
    Class representation of a Google Sheets A1 cell range notation.
    See https://developers.google.com/sheets/api/guides/concepts#cell
    A general A1 has the form:

    <title>!<start col><start row>:<end col><end row>

        All rows are integers, and are 1 based
        All cols are alphabetical A-ZZZ
        Any of the cols/rows may be missing, which means unbounded.  So
            Users               all cells of the sheet
            Users!A2:F          cols A to F from row 2 to the end
            Users!A5:F5         a single row
        title:      May be quoted with single quotes if it contains anything
                    other than letters, digits and underscores.  A quote inside
                    a quoted title is doubled.

    Rows and column indexing is 1-based, so a value of 0 here means 'unbounded'.
    The table layer only needs to build row ranges and pull the row numbers
    back out of the ranges the API reports, so that's what is here.
    """
    _A1REGEXSTR = r"^\s*((?P<sheet>[A-Za-z0-9_]+|'(?:[^']|'')+')!)?(?P<start_col>[A-Z]{1,3})?(?P<start_row>\d+)?(?P<range_end>:(?P<end_col>[A-Z]{1,3})?(?P<end_row>\d+)?)?\s*$"
    _A1COLREGEXSTR = r"^[A-Z]{1,3}$"
    _PLAIN_TITLE = r"^[A-Za-z_][A-Za-z0-9_]*$"

    _TITLEREGEXSTR = r"^\s*(?P<title>[A-Za-z0-9_]+|'(?:[^']|'')+')\s*$"

    _a1_re = re.compile(_A1REGEXSTR)
    _title_re = re.compile(_TITLEREGEXSTR)
    _a1_col_re = re.compile(_A1COLREGEXSTR)
    _plain_title_re = re.compile(_PLAIN_TITLE)

    @staticmethod
    def to_str_list(vals: str|Self|Iterable[str|Self]) -> list[str]:
        """
        Convenience function to take any input and return a list of
        strings, even if the input was a single instance.
        """
        if isinstance(vals, str):
            return [vals]
        elif isinstance(vals, Iterable):
            return [str(v) for v in vals]
        return [str(vals)]

    def __init__(self, a1: str = "") -> None:
        self.reset()
        if a1:
            self.set_a1(a1)

    def __str__(self) -> str:
        if self._a1:
            return self._a1
        return "<invalid>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    def __eq__(self, value: object) -> bool:
        """Object is equal if the A1 string matched exactly"""
        return self._a1 == str(value)

    def __bool__(self) -> bool:
        """If the A1 is present its been validated"""
        return bool(self._a1)

    def reset(self) -> None:
        """
        Empty _a1 means invalid.
        Empty/0 cols/rows means unbounded (assuming _a1 is valid)
        """
        self._a1 = ""
        self._sheet = ""
        self._start_col = ""
        self._end_col = ""
        self._start_row = 0
        self._end_row = 0

    @classmethod
    def col_to_int(cls, column: str) -> int:
        """
        Convert a sheet column A-ZZZ to its 1-based integer equivalent.
        0 means invalid column.
        """
        c = str(column).upper()
        num = 0
        if cls._a1_col_re.match(c):
            for ch in c:
                num = num * 26 + (ord(ch) - 64)
        return num

    @classmethod
    def int_to_col(cls, index: int) -> str:
        """
        Translate a 1-based column index to A-ZZZ.
        Empty string signals an invalid index.
        """
        i = int(index)
        if i <= 0 or i > GoogleSheetsMaxColumns:
            return ""
        col = ""
        while i:
            i, r = divmod(i - 1, 26)
            col = chr(r + 65) + col
        return col

    @classmethod
    def quote_title(cls, title: str) -> str:
        """
        Titles with anything but word characters need quoting, already
        quoted titles are left alone.
        """
        t = str(title)
        if not t or cls._plain_title_re.match(t) or (len(t) > 1 and t[0] == t[-1] == "'"):
            return t
        return "'" + t.replace("'", "''") + "'"

    @classmethod
    def unquote_title(cls, title: str) -> str:
        t = str(title)
        if len(t) > 1 and t[0] == t[-1] == "'":
            return t[1:-1].replace("''", "'")
        return t

    @classmethod
    def generate_a1(cls, sheet: str = "",
                    start_col: str|int = "", start_row: int = 0,
                    end_col: str|int = "", end_row: int = 0) -> str:
        """
        Generate the A1 representation based on the input parameters.
        Cols can be int index or alphabetical A-ZZZ, 0/empty means unbounded.
        """
        sc = cls.int_to_col(start_col) if isinstance(start_col, int) and start_col else str(start_col or "")
        ec = cls.int_to_col(end_col) if isinstance(end_col, int) and end_col else str(end_col or "")
        start = sc + (str(int(start_row)) if start_row else "")
        end = ec + (str(int(end_row)) if end_row else "")
        cells = start
        if end:
            cells += ":" + end
        title = cls.quote_title(sheet)
        if title and cells:
            return f"{title}!{cells}"
        return title or cells

    @classmethod
    def extract_a1(cls, a1: str) -> tuple[str,str,int,str,int]:
        """
        Take an A1 string and extract the various aspects.
        return: tuple of (title, start col, start row, end col, end row),
        all empty/0 if the string is not valid A1
        """
        a = str(a1)
        m = cls._a1_re.match(a)
        if not m or not any(m.group(g) for g in ("sheet", "start_col", "start_row", "end_col", "end_row")):
            # a bare title, quoted or not
            t = cls._title_re.match(a)
            if t:
                return (cls.unquote_title(t.group("title")), "", 0, "", 0)
            return ("", "", 0, "", 0)
        if m.group("start_col") and not (m.group("sheet") or m.group("start_row") or m.group("range_end")):
            # "ABC" on its own is a title, a column range needs the colon
            return (m.group("start_col"), "", 0, "", 0)
        return (cls.unquote_title(m.group("sheet") or ""),
                m.group("start_col") or "",
                int(m.group("start_row") or 0),
                m.group("end_col") or "",
                int(m.group("end_row") or 0))

    def set_a1(self, a1: str) -> bool:
        """
        Set the internal state of this object to the supplied A1 string.
        return: True is successful, False if invalid a1.
        """
        sheet, sc, sr, ec, er = self.extract_a1(a1)
        valid = bool(sheet or sc or sr)
        if valid and sc and ec:
            valid = self.col_to_int(ec) >= self.col_to_int(sc)
        if valid:
            self._a1 = self.generate_a1(sheet, sc, sr, ec, er)
            self._sheet = sheet
            self._start_col = sc
            self._start_row = sr
            self._end_col = ec
            self._end_row = er
        else:
            self.reset()
        return valid

    @property
    def a1(self) -> str:
        return self._a1

    @property
    def sheet(self) -> str:
        return self._sheet

    @property
    def start_col(self) -> str:
        return self._start_col

    @property
    def end_col(self) -> str:
        return self._end_col

    @property
    def start_row(self) -> int:
        return self._start_row

    @property
    def end_row(self) -> int:
        return self._end_row

    @property
    def start_col_int(self) -> int:
        return self.col_to_int(self._start_col)

    @property
    def end_col_int(self) -> int:
        return self.col_to_int(self._end_col)

    @classmethod
    def row_range(cls, sheet: str, row: int, cols: int) -> Self:
        """Range covering columns 1..cols of a single 1-based row"""
        return cls(cls.generate_a1(sheet, 1, row, max(int(cols), 1), row))
