"""Scheduled import of monthly revenue realizations from the shared workbook."""

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fuel_ledger.config import Settings
from fuel_ledger.exceptions import IntegrationError
from fuel_ledger.excel.config import IMPORT_MARKER
from fuel_ledger.excel.drive import (
    DriveWorkbookDownloader,
    WorkbookDownloader,
    has_credentials,
)
from fuel_ledger.excel.reader import RevenueGrid, read_revenue_workbook
from fuel_ledger.excel.sync import SyncOutcome, SyncResult, SyncState
from fuel_ledger.models.company import Company
from fuel_ledger.models.revenue import RevenueRealization
from fuel_ledger.utils.date_helpers import get_timezone, local_today

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = "Google Sheets integration is disabled"


async def import_revenue_totals(
    db: AsyncSession,
    grid: RevenueGrid,
    company_ids: dict[str, int],
) -> tuple[int, list[str]]:
    """Replace the imported realizations of ``grid.year`` with the parsed totals.

    Returns (rows written, soft errors). Runs in one transaction.
    """
    errors: list[str] = []
    year_start = date(grid.year, 1, 1)
    year_end = date(grid.year, 12, 31)

    await db.execute(
        delete(RevenueRealization).where(
            RevenueRealization.date >= year_start,
            RevenueRealization.date <= year_end,
            RevenueRealization.description == IMPORT_MARKER,
        )
    )

    wanted = {}
    for (code, month), amount in sorted(grid.totals.items()):
        company_id = company_ids.get(code)
        if company_id is None:
            errors.append(f"Company {code} not found in database")
            continue
        wanted[(company_id, date(grid.year, month, 1))] = (code, amount)

    occupied: set[tuple[int, date]] = set()
    if wanted:
        result = await db.execute(
            select(RevenueRealization.company_id, RevenueRealization.date).where(
                and_(
                    RevenueRealization.date >= year_start,
                    RevenueRealization.date <= year_end,
                    RevenueRealization.company_id.in_({cid for cid, _ in wanted}),
                )
            )
        )
        occupied = {(cid, day) for cid, day in result.all()}

    count = 0
    for (company_id, day), (code, amount) in wanted.items():
        if (company_id, day) in occupied:
            errors.append(
                f"Skipped {code} {day.isoformat()}: a manual realization already exists"
            )
            continue
        db.add(
            RevenueRealization(
                company_id=company_id,
                date=day,
                amount=amount,
                description=IMPORT_MARKER,
            )
        )
        count += 1

    await db.commit()
    return count, errors


class SheetsSyncService:
    """Holds the process-local ingestion state.

    disabled -> initializing -> ready <-> syncing
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        downloader_factory: Callable[[Settings], WorkbookDownloader] | None = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.uses_drive = downloader_factory is None
        self.downloader_factory = downloader_factory or DriveWorkbookDownloader.from_settings
        self.downloader: WorkbookDownloader | None = None
        self.state = SyncState.DISABLED
        self.last_sync: datetime | None = None
        self.last_sync_status = SyncOutcome.NEVER
        self.company_ids: dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return self.state in (SyncState.READY, SyncState.SYNCING)

    @property
    def spreadsheet_id(self) -> str:
        return self.settings.GOOGLE_SPREADSHEET_ID

    async def initialize(self) -> bool:
        """Set up credentials and the company map. Returns True when ready."""
        if not self.settings.GOOGLE_SHEETS_ENABLED:
            logger.info("Google Sheets integration is disabled")
            return False
        if not self.spreadsheet_id:
            logger.warning("GOOGLE_SPREADSHEET_ID not configured, disabling integration")
            return False
        if self.uses_drive and not has_credentials(self.settings):
            logger.warning("No Google credentials configured, disabling integration")
            return False

        self.state = SyncState.INITIALIZING
        try:
            self.downloader = self.downloader_factory(self.settings)
            await self._load_company_map()
        except Exception:
            logger.exception("Failed to initialize Google Sheets integration")
            self.state = SyncState.DISABLED
            return False

        self.state = SyncState.READY
        logger.info("Google Sheets integration initialized")
        return True

    async def _load_company_map(self) -> None:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Company.code, Company.id).where(Company.is_active.is_(True))
            )
            self.company_ids = {code.upper(): cid for code, cid in result.all()}
        logger.info("Loaded %d companies for mapping", len(self.company_ids))

    def get_status(self) -> dict:
        next_sync = None
        if self.enabled and self.last_sync is not None:
            next_sync = self.last_sync + timedelta(
                seconds=self.settings.GOOGLE_SHEETS_SYNC_INTERVAL
            )
        return {
            "enabled": self.enabled,
            "state": self.state.value,
            "last_sync": self.last_sync,
            "last_sync_status": self.last_sync_status.value,
            "next_sync": next_sync,
            "spreadsheet_id": self.spreadsheet_id if self.enabled else None,
        }

    def _sync_due(self, now: datetime) -> bool:
        if self.last_sync is None:
            return True
        elapsed = (now - self.last_sync).total_seconds()
        return elapsed >= self.settings.GOOGLE_SHEETS_SYNC_INTERVAL

    async def scheduled_sync(self, now: datetime | None = None) -> SyncResult | None:
        """Scheduler tick: sync only when the configured interval has elapsed."""
        if self.state != SyncState.READY:
            return None
        if not self._sync_due(now or datetime.now(timezone.utc)):
            return None
        logger.info("Running scheduled sync from Google Sheets")
        return await self.sync()

    async def handle_webhook(self, spreadsheet_id: str, sheet_name: str | None = None) -> SyncResult:
        if not self.enabled:
            return SyncResult.failed(DISABLED_MESSAGE)
        if spreadsheet_id != self.spreadsheet_id:
            logger.warning("Webhook rejected for spreadsheet %s", spreadsheet_id)
            return SyncResult.failed("Invalid spreadsheet ID")
        logger.info("Webhook received: sheet %r updated", sheet_name)
        return await self.sync()

    async def sync(self) -> SyncResult:
        """Download, parse and import. Failures are captured, never raised."""
        if self.state == SyncState.SYNCING:
            return SyncResult.failed("A sync is already running")
        if self.state != SyncState.READY or self.downloader is None:
            return SyncResult.failed(DISABLED_MESSAGE)

        self.state = SyncState.SYNCING
        try:
            result = await self._run_sync()
        finally:
            self.state = SyncState.READY
            self.last_sync = datetime.now(timezone.utc)

        if not result.success:
            self.last_sync_status = SyncOutcome.FAILED
        elif result.errors:
            self.last_sync_status = SyncOutcome.PARTIAL
        else:
            self.last_sync_status = SyncOutcome.SUCCESS
        return result

    async def _run_sync(self) -> SyncResult:
        year = local_today(get_timezone(self.settings.APP_TIMEZONE)).year
        try:
            content = await asyncio.to_thread(self.downloader.download, self.spreadsheet_id)
            grid = read_revenue_workbook(content, year)
            async with self.session_factory() as db:
                count, errors = await import_revenue_totals(db, grid, self.company_ids)
        except IntegrationError as e:
            logger.error("Sync failed: %s", e)
            return SyncResult.failed(str(e), [str(e)])
        except Exception as e:
            logger.exception("Sync failed")
            return SyncResult.failed(f"Sync failed: {e}", [str(e)])

        logger.info("Sync completed: %d realisasi, %d errors", count, len(errors))
        return SyncResult(
            success=True,
            message=f"Synced {count} realisasi",
            realisasi_count=count,
            errors=errors,
        )
