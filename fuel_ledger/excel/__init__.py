"""Spreadsheet ingestion engine.

Provides workbook download, REVENUE sheet parsing and sync bookkeeping.
"""

from fuel_ledger.excel.drive import DriveWorkbookDownloader, WorkbookDownloader
from fuel_ledger.excel.reader import (
    RevenueGrid,
    parse_amount,
    parse_revenue_grid,
    read_revenue_workbook,
)
from fuel_ledger.excel.sync import SyncOutcome, SyncResult, SyncState

__all__ = [
    "DriveWorkbookDownloader",
    "RevenueGrid",
    "SyncOutcome",
    "SyncResult",
    "SyncState",
    "WorkbookDownloader",
    "parse_amount",
    "parse_revenue_grid",
    "read_revenue_workbook",
]
