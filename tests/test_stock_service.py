import asyncio
import dataclasses
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import text

from fuel_ledger.database import create_engine, create_session_factory, init_db
from fuel_ledger.exceptions import InsufficientStockError, InvalidInputError
from fuel_ledger.models.transaction import TransactionType
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.services import stock_service
from fuel_ledger.utils.auth import hash_password

from conftest import TEST_PASSWORD


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_balance_is_signed_sum(session, settings, admin):
    await stock_service.record_in(session, settings, Decimal("100"), admin)
    await stock_service.record_in(session, settings, Decimal("25.5"), admin)
    await stock_service.record_out(session, settings, Decimal("40.25"), admin)

    summary = await stock_service.get_summary(session, settings)

    assert summary["current_stock"] == pytest.approx(85.25)
    assert summary["today_closing_stock"] == pytest.approx(
        summary["today_opening_stock"]
        + summary["today_stock_in"]
        - summary["today_stock_out"]
    )


@pytest.mark.asyncio
async def test_record_out_rejects_more_than_balance(session, settings, admin):
    await stock_service.record_in(session, settings, Decimal("10"), admin)

    with pytest.raises(InsufficientStockError):
        await stock_service.record_out(session, settings, Decimal("10.5"), admin)

    summary = await stock_service.get_summary(session, settings)
    assert summary["current_stock"] == pytest.approx(10)


@pytest.mark.asyncio
async def test_record_out_can_empty_the_stock(session, settings, operator):
    await stock_service.record_in(session, settings, Decimal("10"), operator)
    await stock_service.record_out(session, settings, Decimal("10"), operator)

    summary = await stock_service.get_summary(session, settings)
    assert summary["current_stock"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
async def test_non_positive_amount_is_rejected(session, settings, admin, amount):
    with pytest.raises(InvalidInputError):
        await stock_service.record_in(session, settings, amount, admin)
    with pytest.raises(InvalidInputError):
        await stock_service.record_out(session, settings, amount, admin)


@pytest.mark.asyncio
async def test_record_keeps_description_and_user(session, settings, admin):
    txn = await stock_service.record_in(
        session, settings, Decimal("12.3456"), admin, description="Tanker delivery"
    )

    assert txn.type == TransactionType.IN
    assert txn.amount == Decimal("12.3456")
    assert txn.description == "Tanker delivery"
    assert txn.user.username == "admin"


@pytest.mark.asyncio
async def test_naive_timestamp_is_local_time(session, settings, admin):
    # Asia/Makassar is UTC+8
    txn = await stock_service.record_in(
        session, settings, Decimal("5"), admin, timestamp=datetime(2025, 3, 10, 7, 0)
    )

    stored = txn.timestamp.replace(tzinfo=None)
    assert stored == datetime(2025, 3, 9, 23, 0)


@pytest.mark.asyncio
async def test_summary_splits_at_local_midnight(session, settings, admin):
    # Local midnight of 2025-03-10 in Makassar is 2025-03-09 16:00 UTC
    await stock_service.record_in(
        session, settings, Decimal("100"), admin, timestamp=utc(2025, 3, 9, 15, 0)
    )
    await stock_service.record_in(
        session, settings, Decimal("50"), admin, timestamp=utc(2025, 3, 9, 17, 0)
    )
    await stock_service.record_out(
        session, settings, Decimal("30"), admin, timestamp=utc(2025, 3, 10, 1, 0)
    )

    summary = await stock_service.get_summary(
        session, settings, now=utc(2025, 3, 10, 2, 0)
    )

    assert summary == {
        "current_stock": 120.0,
        "today_opening_stock": 100.0,
        "today_stock_in": 50.0,
        "today_stock_out": 30.0,
        "today_closing_stock": 120.0,
    }


@pytest.mark.asyncio
async def test_history_is_newest_first_with_meta(session, settings, admin):
    for hour in range(1, 6):
        await stock_service.record_in(
            session, settings, Decimal(hour), admin, timestamp=utc(2025, 3, 1, hour)
        )

    txns, total = await stock_service.get_history(
        session, settings, admin, page=1, limit=2
    )

    assert total == 5
    assert [t.amount for t in txns] == [Decimal("5"), Decimal("4")]

    txns, _ = await stock_service.get_history(session, settings, admin, page=3, limit=2)
    assert [t.amount for t in txns] == [Decimal("1")]


@pytest.mark.asyncio
async def test_history_forces_out_only_for_operators(session, settings, admin, operator):
    await stock_service.record_in(session, settings, Decimal("100"), admin)
    await stock_service.record_out(session, settings, Decimal("10"), operator)

    txns, total = await stock_service.get_history(
        session, settings, operator, type_=TransactionType.IN
    )

    assert total == 1
    assert txns[0].type == TransactionType.OUT


@pytest.mark.asyncio
async def test_history_filters(session, settings, admin, operator):
    await stock_service.record_in(
        session, settings, Decimal("100"), admin,
        description="Morning delivery", timestamp=utc(2025, 3, 1, 2),
    )
    await stock_service.record_out(
        session, settings, Decimal("20"), operator,
        description="Generator", timestamp=utc(2025, 3, 3, 2),
    )

    txns, total = await stock_service.get_history(
        session, settings, admin, search="DELIVERY"
    )
    assert total == 1 and txns[0].description == "Morning delivery"

    txns, total = await stock_service.get_history(
        session, settings, admin, search="operat"
    )
    assert total == 1 and txns[0].user.username == "operator"

    txns, total = await stock_service.get_history(
        session, settings, admin,
        start_date=date(2025, 3, 2), end_date=date(2025, 3, 3),
    )
    assert total == 1 and txns[0].type == TransactionType.OUT


@pytest.mark.asyncio
async def test_history_rejects_inverted_range(session, settings, admin):
    with pytest.raises(InvalidInputError):
        await stock_service.get_history(
            session, settings, admin,
            start_date=date(2025, 3, 5), end_date=date(2025, 3, 1),
        )


@pytest.mark.asyncio
async def test_back_dated_out_cannot_precede_its_stock(session, settings, admin):
    now = utc(2025, 3, 10, 2, 0)
    await stock_service.record_in(session, settings, Decimal("100"), admin, timestamp=now)

    with pytest.raises(InsufficientStockError):
        await stock_service.record_out(
            session, settings, Decimal("60"), admin, timestamp=now - timedelta(days=3)
        )

    summary = await stock_service.get_summary(session, settings, now=now)
    assert summary["current_stock"] == 100.0
    assert summary["today_opening_stock"] == 0.0

    trend = await stock_service.get_daily_trend(session, settings, days=7, now=now)
    assert min(p["closing_stock"] for p in trend["points"]) == 0.0


@pytest.mark.asyncio
async def test_back_dated_out_must_fit_later_balances(session, settings, admin):
    await stock_service.record_in(
        session, settings, Decimal("100"), admin, timestamp=utc(2025, 3, 1, 2)
    )
    await stock_service.record_out(
        session, settings, Decimal("80"), admin, timestamp=utc(2025, 3, 3, 2)
    )
    await stock_service.record_in(
        session, settings, Decimal("50"), admin, timestamp=utc(2025, 3, 5, 2)
    )

    # 70 is on hand today, but March 3rd would drop to -10
    with pytest.raises(InsufficientStockError):
        await stock_service.record_out(
            session, settings, Decimal("30"), admin, timestamp=utc(2025, 3, 2, 2)
        )

    await stock_service.record_out(
        session, settings, Decimal("20"), admin, timestamp=utc(2025, 3, 2, 2)
    )
    # An entry at the same instant counts as already recorded
    await stock_service.record_out(
        session, settings, Decimal("50"), admin, timestamp=utc(2025, 3, 5, 2)
    )

    summary = await stock_service.get_summary(session, settings)
    assert summary["current_stock"] == 0.0


@pytest_asyncio.fixture
async def file_session_factory(settings, tmp_path):
    file_settings = dataclasses.replace(
        settings, DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"
    )
    engine = create_engine(file_settings)
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.mark.asyncio
async def test_file_database_uses_wal(file_session_factory):
    async with file_session_factory() as db:
        mode = (await db.execute(text("PRAGMA journal_mode"))).scalar()

    assert mode == "wal"


@pytest.mark.asyncio
async def test_concurrent_outs_cannot_overdraw(file_session_factory, settings):
    async with file_session_factory() as db:
        user = User(
            username="admin",
            email="admin@example.com",
            password_hash=hash_password(TEST_PASSWORD),
            role=UserRole.ADMIN,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        await stock_service.record_in(db, settings, Decimal("100"), user)

    async def draw() -> str:
        async with file_session_factory() as db:
            try:
                await stock_service.record_out(db, settings, Decimal("100"), user)
            except InsufficientStockError:
                return "insufficient"
            return "ok"

    results = await asyncio.gather(*(draw() for _ in range(5)))

    assert sorted(results) == ["insufficient"] * 4 + ["ok"]
    async with file_session_factory() as db:
        summary = await stock_service.get_summary(db, settings)
    assert summary["current_stock"] == 0.0
