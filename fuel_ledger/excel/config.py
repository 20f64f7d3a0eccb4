"""Layout conventions of the revenue workbook.

The sheet is maintained by hand, so nothing is addressed by fixed cell:
- the sheet is found by name keyword
- a month-name row and a REALISASI header row sit in the first rows
- company lines carry the company code somewhere in their label
"""

from typing import Final

# Sheet whose name contains this keyword (case-insensitive)
REVENUE_SHEET_KEYWORD: Final[str] = "REVENUE"

# Sheets shorter than this carry no data rows
MIN_SHEET_ROWS: Final[int] = 5

# Header rows are searched within the first rows only
HEADER_SCAN_ROWS: Final[int] = 10

REALISASI_HEADER: Final[str] = "REALISASI"

# First-column marker of the rupiah section; data starts on the next row
SECTION_MARKER: Final[str] = "rupiah"

TOTAL_KEYWORD: Final[str] = "TOTAL"

# Matched as label substrings in this order, first hit wins
KNOWN_COMPANY_CODES: Final[tuple[str, ...]] = ("BBI", "BBA", "JAPELIN")

# Description stamped on imported realizations; re-imports replace these rows
IMPORT_MARKER: Final[str] = "Monthly Total (Google Sheets)"

MONTH_NAMES_ID: Final[tuple[str, ...]] = (
    "JAN", "FEB", "MAR", "APR", "MEI", "JUN",
    "JUL", "AGU", "SEP", "OKT", "NOV", "DES",
)
MONTH_NAMES_EN: Final[tuple[str, ...]] = (
    "JAN", "FEB", "MAR", "APR", "MAY", "JUN",
    "JUL", "AUG", "SEP", "OCT", "NOV", "DEC",
)
MONTH_NAMES_EN_FULL: Final[tuple[str, ...]] = (
    "JANUARY", "FEBRUARY", "MARCH", "APRIL", "MAY", "JUNE",
    "JULY", "AUGUST", "SEPTEMBER", "OCTOBER", "NOVEMBER", "DECEMBER",
)
MONTH_NAME_SETS: Final[tuple[tuple[str, ...], ...]] = (
    MONTH_NAMES_ID,
    MONTH_NAMES_EN,
    MONTH_NAMES_EN_FULL,
)

# Currency prefixes stripped before parsing amount text
CURRENCY_PREFIXES: Final[tuple[str, ...]] = ("IDR", "RP")

DRIVE_SCOPES: Final[list[str]] = ["https://www.googleapis.com/auth/drive.readonly"]
GOOGLE_SHEET_MIME: Final[str] = "application/vnd.google-apps.spreadsheet"
XLSX_MIME: Final[str] = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
)
