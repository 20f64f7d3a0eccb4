import dataclasses
import io
from datetime import date, timedelta
from decimal import Decimal

import openpyxl
import pytest
import pytest_asyncio
from sqlalchemy import select

from fuel_ledger.excel.config import IMPORT_MARKER
from fuel_ledger.excel.sync import SyncState
from fuel_ledger.models.company import Company
from fuel_ledger.models.revenue import RevenueRealization
from fuel_ledger.services import revenue_service
from fuel_ledger.services.sheets_service import SheetsSyncService
from fuel_ledger.utils.date_helpers import get_timezone, local_today

SPREADSHEET_ID = "sheet-123"

REVENUE_ROWS = [
    ["LAPORAN PENDAPATAN"],
    ["URAIAN", "JANUARI", None, "FEBRUARI", None],
    [None, "TARGET", "REALISASI", "TARGET", "REALISASI"],
    ["Rupiah"],
    ["Pendapatan Jasa BBI", 100, "1.000.000", 200, "2.000.000"],
    ["Agency BBA", None, "Rp 750.000", None, None],
    ["JAPELIN ops", None, 300000, None, None],
]


def build_workbook(rows, sheet_name="REVENUE 2025") -> bytes:
    wb = openpyxl.Workbook()
    wb.active.title = "Notes"
    ws = wb.create_sheet(sheet_name)
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class FakeDownloader:
    def __init__(self, content: bytes):
        self.content = content
        self.calls: list[str] = []

    def download(self, file_id: str) -> bytes:
        self.calls.append(file_id)
        return self.content


@pytest.fixture
def sheets_settings(settings):
    return dataclasses.replace(
        settings,
        GOOGLE_SHEETS_ENABLED=True,
        GOOGLE_SPREADSHEET_ID=SPREADSHEET_ID,
        GOOGLE_SHEETS_SYNC_INTERVAL=60,
    )


@pytest.fixture
def downloader():
    return FakeDownloader(build_workbook(REVENUE_ROWS))


@pytest_asyncio.fixture
async def service(sheets_settings, session_factory, session, downloader):
    await revenue_service.seed_companies(session)
    service = SheetsSyncService(sheets_settings, session_factory, lambda s: downloader)
    assert await service.initialize()
    return service


def current_year(settings) -> int:
    return local_today(get_timezone(settings.APP_TIMEZONE)).year


async def imported_rows(session_factory):
    async with session_factory() as db:
        result = await db.execute(
            select(RevenueRealization)
            .where(RevenueRealization.description == IMPORT_MARKER)
            .order_by(RevenueRealization.company_id, RevenueRealization.date)
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_disabled_without_flag(settings, session_factory):
    service = SheetsSyncService(settings, session_factory, lambda s: FakeDownloader(b""))

    assert await service.initialize() is False
    status = service.get_status()
    assert status["enabled"] is False
    assert status["state"] == "disabled"
    assert status["spreadsheet_id"] is None

    result = await service.sync()
    assert result.success is False
    assert "disabled" in result.message


@pytest.mark.asyncio
async def test_disabled_without_credentials(sheets_settings, session_factory):
    service = SheetsSyncService(sheets_settings, session_factory)

    assert await service.initialize() is False
    assert service.state == SyncState.DISABLED


@pytest.mark.asyncio
async def test_initialize_loads_company_map(service):
    assert service.state == SyncState.READY
    assert set(service.company_ids) == {"BBI", "BBA", "JAPELIN"}
    assert service.get_status()["last_sync_status"] == "never"


@pytest.mark.asyncio
async def test_sync_imports_monthly_totals(service, sheets_settings, session_factory, downloader):
    result = await service.sync()

    assert result.success is True
    assert result.realisasi_count == 4
    assert result.errors == []
    assert downloader.calls == [SPREADSHEET_ID]

    year = current_year(sheets_settings)
    rows = await imported_rows(session_factory)
    assert [(r.company.code, r.date, r.amount) for r in rows] == [
        ("BBI", date(year, 1, 1), Decimal("1000000")),
        ("BBI", date(year, 2, 1), Decimal("2000000")),
        ("BBA", date(year, 1, 1), Decimal("750000")),
        ("JAPELIN", date(year, 1, 1), Decimal("300000")),
    ]

    status = service.get_status()
    assert status["enabled"] is True
    assert status["state"] == "ready"
    assert status["last_sync_status"] == "success"
    assert status["next_sync"] == status["last_sync"] + timedelta(seconds=60)
    assert status["spreadsheet_id"] == SPREADSHEET_ID


@pytest.mark.asyncio
async def test_resync_replaces_imported_rows(service, session_factory, downloader):
    await service.sync()
    downloader.content = build_workbook(
        [
            ["LAPORAN PENDAPATAN"],
            ["URAIAN", "JANUARI"],
            [None, "REALISASI"],
            ["Rupiah"],
            ["Pendapatan Jasa BBI", "5.000.000"],
        ]
    )

    result = await service.sync()

    assert result.realisasi_count == 1
    rows = await imported_rows(session_factory)
    assert [(r.company.code, r.amount) for r in rows] == [("BBI", Decimal("5000000"))]


@pytest.mark.asyncio
async def test_manual_realization_is_not_overwritten(
    service, sheets_settings, session, session_factory
):
    year = current_year(sheets_settings)
    bba = (await session.execute(select(Company).where(Company.code == "BBA"))).scalar_one()
    await revenue_service.create_or_update_realization(
        session, bba.id, date(year, 1, 1), Decimal("42"), "Typed in by hand"
    )

    result = await service.sync()

    assert result.success is True
    assert result.realisasi_count == 3
    assert len(result.errors) == 1 and "BBA" in result.errors[0]
    assert service.get_status()["last_sync_status"] == "partial"

    async with session_factory() as db:
        manual = (
            await db.execute(
                select(RevenueRealization).where(
                    RevenueRealization.company_id == bba.id,
                    RevenueRealization.date == date(year, 1, 1),
                )
            )
        ).scalar_one()
    assert manual.amount == Decimal("42")
    assert manual.description == "Typed in by hand"


@pytest.mark.asyncio
async def test_unknown_company_is_a_soft_error(
    sheets_settings, session, session_factory, downloader
):
    session.add(Company(name="Bosowa Bandar Indonesia", code="BBI", is_active=True))
    await session.commit()
    service = SheetsSyncService(sheets_settings, session_factory, lambda s: downloader)
    await service.initialize()

    result = await service.sync()

    assert result.success is True
    assert result.realisasi_count == 2
    assert sorted(result.errors) == [
        "Company BBA not found in database",
        "Company JAPELIN not found in database",
    ]


@pytest.mark.asyncio
async def test_missing_sheet_is_a_failed_sync(service, session_factory, downloader):
    downloader.content = build_workbook(REVENUE_ROWS, sheet_name="Costs")

    result = await service.sync()

    assert result.success is False
    assert "REVENUE sheet not found" in result.message
    assert result.realisasi_count == 0
    assert await imported_rows(session_factory) == []
    assert service.get_status()["last_sync_status"] == "failed"
    assert service.state == SyncState.READY


@pytest.mark.asyncio
async def test_concurrent_sync_is_refused(service):
    service.state = SyncState.SYNCING

    result = await service.sync()

    assert result.success is False
    assert "already running" in result.message


@pytest.mark.asyncio
async def test_webhook_checks_spreadsheet_id(service, downloader):
    result = await service.handle_webhook("other-sheet")

    assert result.success is False
    assert result.message == "Invalid spreadsheet ID"
    assert downloader.calls == []

    result = await service.handle_webhook(SPREADSHEET_ID, "REVENUE 2025")
    assert result.success is True


@pytest.mark.asyncio
async def test_scheduled_sync_respects_interval(service, downloader):
    first = await service.scheduled_sync()
    assert first is not None and first.success

    assert await service.scheduled_sync(now=service.last_sync + timedelta(seconds=30)) is None
    assert len(downloader.calls) == 1

    again = await service.scheduled_sync(now=service.last_sync + timedelta(seconds=61))
    assert again is not None
    assert len(downloader.calls) == 2
