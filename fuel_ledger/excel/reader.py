"""Revenue workbook parsing.

Turns the raw cell grid of the REVENUE sheet into per-company monthly
totals. Never touches the database.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import openpyxl

from fuel_ledger.exceptions import IntegrationError
from fuel_ledger.excel.config import (
    CURRENCY_PREFIXES,
    HEADER_SCAN_ROWS,
    KNOWN_COMPANY_CODES,
    MIN_SHEET_ROWS,
    MONTH_NAME_SETS,
    REALISASI_HEADER,
    REVENUE_SHEET_KEYWORD,
    SECTION_MARKER,
    TOTAL_KEYWORD,
)

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
# "1.500.000,-" and similar accounting tails
_TRAILING_SUFFIX_RE = re.compile(r"\D+$")


@dataclass(frozen=True)
class RevenueGrid:
    """Parsed REVENUE sheet.

    ``month_columns`` maps month number to the 0-based column of its first
    REALISASI header; ``totals`` maps ``(company_code, month)`` to the summed
    amount of all rows of that company.
    """

    year: int
    month_columns: dict[int, int] = field(default_factory=dict)
    data_start_row: int = 0
    totals: dict[tuple[str, int], Decimal] = field(default_factory=dict)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _strip_currency(text: str) -> str:
    cleaned = re.sub(r"\s+", "", text)
    upper = cleaned.upper()
    for prefix in CURRENCY_PREFIXES:
        if upper.startswith(prefix):
            return cleaned[len(prefix):]
    return cleaned


def parse_amount(value: Any) -> Decimal | None:
    """Parse a spreadsheet amount in Indonesian or international notation.

    Numbers are rounded half-up to whole rupiah. Text may use either ``.``
    or ``,`` as thousands separator; returns None when nothing numeric is left.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return None
        if not number.is_finite():
            return None
        return number.quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    text = _TRAILING_SUFFIX_RE.sub("", _strip_currency(str(value)))
    if not text:
        return None

    has_dot = "." in text
    has_comma = "," in text
    if has_dot and has_comma:
        # Whichever separator comes last marks the decimals
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_dot:
        parts = text.split(".")
        if len(parts) > 2 or len(parts[-1]) == 3:
            text = text.replace(".", "")
    elif has_comma:
        parts = text.split(",")
        if len(parts) == 2 and 1 <= len(parts[1]) <= 2:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")

    if not _NUMBER_RE.match(text):
        return None
    return Decimal(text)


def _month_in_cell(text: str) -> int | None:
    upper = text.upper()
    if not upper:
        return None
    for names in MONTH_NAME_SETS:
        for index, name in enumerate(names):
            if name in upper:
                return index + 1
    return None


def _classify(label: str) -> str | None:
    for code in KNOWN_COMPANY_CODES:
        if code in label:
            return code
    return None


def find_revenue_sheet(sheet_names: list[str]) -> str:
    """First sheet whose name contains the revenue keyword."""
    for name in sheet_names:
        if REVENUE_SHEET_KEYWORD in name.upper():
            return name
    raise IntegrationError(
        f"{REVENUE_SHEET_KEYWORD} sheet not found. "
        f"Available: {', '.join(sheet_names)}"
    )


def _find_header_rows(rows: list[list[Any]]) -> tuple[int, int]:
    """Locate the REALISASI header row and the month row above it."""
    header_row = -1
    month_rows: list[int] = []
    for i, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        texts = [_cell_text(v).upper() for v in row]
        if any(_month_in_cell(t) for t in texts):
            month_rows.append(i)
        if header_row == -1 and any(REALISASI_HEADER in t for t in texts):
            header_row = i

    month_row = max((i for i in month_rows if i <= header_row), default=-1)
    if header_row == -1 or month_row == -1:
        raise IntegrationError(
            "Could not find month/column headers in REVENUE sheet"
        )
    return month_row, header_row


def _map_month_columns(month_cells: list[Any], header_cells: list[Any]) -> dict[int, int]:
    columns: dict[int, int] = {}
    for col, value in enumerate(header_cells):
        if _cell_text(value).upper() != REALISASI_HEADER:
            continue
        # Month captions are merged across several columns; search leftward
        month = None
        for search_col in range(min(col, len(month_cells) - 1), -1, -1):
            month = _month_in_cell(_cell_text(month_cells[search_col]))
            if month:
                break
        if not month:
            continue
        if month in columns:
            logger.debug("Skipping duplicate REALISASI column %d for month %d", col, month)
            continue
        columns[month] = col
    return columns


def _find_data_start(rows: list[list[Any]], header_row: int) -> int:
    for i in range(header_row + 1, len(rows)):
        row = rows[i]
        if row and SECTION_MARKER in _cell_text(row[0]).lower():
            return i + 1
    return header_row + 1


def parse_revenue_grid(rows: list[list[Any]], year: int) -> RevenueGrid:
    """Aggregate company monthly REALISASI totals from a raw cell grid.

    Raises IntegrationError when the sheet layout cannot be recognised.
    """
    rows = [list(r) if r is not None else [] for r in rows]
    if len(rows) < MIN_SHEET_ROWS:
        logger.warning("REVENUE sheet has only %d rows, nothing to import", len(rows))
        return RevenueGrid(year=year)

    month_row, header_row = _find_header_rows(rows)
    month_columns = _map_month_columns(rows[month_row], rows[header_row])
    if not month_columns:
        raise IntegrationError("Could not map REALISASI columns to months")

    data_start = _find_data_start(rows, header_row)
    totals: dict[tuple[str, int], Decimal] = {}
    for row in rows[data_start:]:
        if not row:
            continue
        label = _cell_text(row[0]).upper()
        if not label or TOTAL_KEYWORD in label:
            continue
        code = _classify(label)
        if code is None:
            continue
        for month, col in month_columns.items():
            if col >= len(row):
                continue
            amount = parse_amount(row[col])
            if not amount:
                continue
            key = (code, month)
            totals[key] = totals.get(key, Decimal("0")) + amount

    logger.info(
        "Parsed REVENUE sheet: %d months mapped, %d company-month totals",
        len(month_columns),
        len(totals),
    )
    return RevenueGrid(
        year=year,
        month_columns=month_columns,
        data_start_row=data_start,
        totals=totals,
    )


def read_revenue_workbook(content: bytes, year: int) -> RevenueGrid:
    """Open workbook bytes and parse its REVENUE sheet."""
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    except Exception as e:
        raise IntegrationError(f"Failed to open workbook: {e}") from e
    try:
        ws = wb[find_revenue_sheet(wb.sheetnames)]
        rows = [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    return parse_revenue_grid(rows, year)
