"""Fuel stock ledger: append-only IN/OUT entries and derived balances."""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.config import Settings
from fuel_ledger.exceptions import InsufficientStockError, InvalidInputError
from fuel_ledger.models.ledger_lock import STOCK_LOCK_NAME, LedgerLock
from fuel_ledger.models.transaction import Transaction, TransactionType
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.utils.currency import to_decimal, to_float
from fuel_ledger.utils.date_helpers import (
    date_range,
    format_day_label,
    get_timezone,
    local_midnight_utc,
    local_today,
    to_local_date,
    to_utc,
    utcnow,
)

logger = logging.getLogger(__name__)

MIN_TREND_DAYS = 1
MAX_TREND_DAYS = 30

_SIGNED_AMOUNT = case(
    (Transaction.type == TransactionType.IN, Transaction.amount),
    else_=-Transaction.amount,
)


def _validate_amount(amount: Decimal) -> Decimal:
    value = to_decimal(amount)
    if value <= 0:
        raise InvalidInputError("Amount must be greater than zero")
    return value


def _entry_timestamp(timestamp: datetime | None, settings: Settings) -> datetime:
    if timestamp is None:
        return utcnow()
    return to_utc(timestamp, get_timezone(settings.APP_TIMEZONE))


async def _balance(
    db: AsyncSession,
    before: datetime | None = None,
    through: datetime | None = None,
) -> Decimal:
    """Signed running sum of the ledger, optionally cut at an instant.

    ``before`` excludes entries at that instant, ``through`` includes them.
    """
    query = select(func.coalesce(func.sum(_SIGNED_AMOUNT), 0))
    if before is not None:
        query = query.where(Transaction.timestamp < before)
    if through is not None:
        query = query.where(Transaction.timestamp <= through)
    result = await db.execute(query)
    return to_decimal(result.scalar())


async def _available_at(db: AsyncSession, at: datetime) -> Decimal:
    """Largest OUT at ``at`` that keeps every later balance non-negative."""
    available = await _balance(db, through=at)
    result = await db.execute(
        select(_SIGNED_AMOUNT)
        .where(Transaction.timestamp > at)
        .order_by(Transaction.timestamp, Transaction.id)
    )
    running = available
    for (signed,) in result.all():
        running += to_decimal(signed)
        available = min(available, running)
    return available


async def _lock_ledger(db: AsyncSession) -> None:
    """Take the ledger row lock for the rest of the transaction."""
    result = await db.execute(
        select(LedgerLock)
        .where(LedgerLock.name == STOCK_LOCK_NAME)
        .with_for_update()
    )
    if result.scalar_one_or_none() is None:
        db.add(LedgerLock(name=STOCK_LOCK_NAME))
        await db.flush()


async def _append(
    db: AsyncSession,
    type_: TransactionType,
    amount: Decimal,
    description: str | None,
    user: User,
    timestamp: datetime,
) -> Transaction:
    txn = Transaction(
        timestamp=timestamp,
        type=type_,
        amount=amount,
        description=description,
        user_id=user.id,
    )
    db.add(txn)
    await db.commit()
    await db.refresh(txn, ["user"])
    return txn


async def record_in(
    db: AsyncSession,
    settings: Settings,
    amount: Decimal,
    user: User,
    description: str | None = None,
    timestamp: datetime | None = None,
) -> Transaction:
    """Append a stock delivery."""
    value = _validate_amount(amount)
    txn = await _append(
        db,
        TransactionType.IN,
        value,
        description,
        user,
        _entry_timestamp(timestamp, settings),
    )
    logger.info("Stock IN %s recorded by user %d", value, user.id)
    return txn


async def record_out(
    db: AsyncSession,
    settings: Settings,
    amount: Decimal,
    user: User,
    description: str | None = None,
    timestamp: datetime | None = None,
) -> Transaction:
    """Append a stock usage after checking the balance under the ledger lock.

    A back-dated entry must also fit every balance recorded after it.
    """
    value = _validate_amount(amount)
    at = _entry_timestamp(timestamp, settings)
    await _lock_ledger(db)

    available = await _available_at(db, at)
    if value > available:
        raise InsufficientStockError(
            f"Insufficient stock: {to_float(available)} available, "
            f"{to_float(value)} requested"
        )

    txn = await _append(db, TransactionType.OUT, value, description, user, at)
    logger.info("Stock OUT %s recorded by user %d", value, user.id)
    return txn


async def get_summary(
    db: AsyncSession,
    settings: Settings,
    now: datetime | None = None,
) -> dict:
    """Current balance and today's opening/in/out/closing figures."""
    tz = get_timezone(settings.APP_TIMEZONE)
    day_start = local_midnight_utc(local_today(tz, now), tz)

    is_today = Transaction.timestamp >= day_start
    before_today = Transaction.timestamp < day_start
    result = await db.execute(
        select(
            func.coalesce(func.sum(_SIGNED_AMOUNT), 0),
            func.coalesce(func.sum(case((before_today, _SIGNED_AMOUNT), else_=0)), 0),
            func.coalesce(
                func.sum(
                    case(
                        (
                            is_today & (Transaction.type == TransactionType.IN),
                            Transaction.amount,
                        ),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(
                func.sum(
                    case(
                        (
                            is_today & (Transaction.type == TransactionType.OUT),
                            Transaction.amount,
                        ),
                        else_=0,
                    )
                ),
                0,
            ),
        )
    )
    current, opening, today_in, today_out = (to_decimal(v) for v in result.one())
    closing = opening + today_in - today_out

    return {
        "current_stock": to_float(current),
        "today_opening_stock": to_float(opening),
        "today_stock_in": to_float(today_in),
        "today_stock_out": to_float(today_out),
        "today_closing_stock": to_float(closing),
    }


async def get_history(
    db: AsyncSession,
    settings: Settings,
    user: User,
    page: int = 1,
    limit: int = 20,
    type_: TransactionType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
) -> tuple[list[Transaction], int]:
    """Newest-first ledger listing. Returns (transactions, total_count).

    Field operators only ever see usage entries.
    """
    if start_date and end_date and start_date > end_date:
        raise InvalidInputError("start_date must not be after end_date")
    if user.role == UserRole.OPERASIONAL:
        type_ = TransactionType.OUT

    tz = get_timezone(settings.APP_TIMEZONE)
    filters = []
    if type_ is not None:
        filters.append(Transaction.type == type_)
    if start_date:
        filters.append(Transaction.timestamp >= local_midnight_utc(start_date, tz))
    if end_date:
        filters.append(
            Transaction.timestamp
            < local_midnight_utc(end_date + timedelta(days=1), tz)
        )
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(Transaction.description.ilike(pattern), User.username.ilike(pattern))
        )

    count_query = (
        select(func.count(Transaction.id))
        .join(User, Transaction.user_id == User.id)
        .where(*filters)
    )
    total = (await db.execute(count_query)).scalar() or 0

    query = (
        select(Transaction)
        .join(User, Transaction.user_id == User.id)
        .where(*filters)
        .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().unique().all()), total


def _check_days(days: int) -> None:
    if not MIN_TREND_DAYS <= days <= MAX_TREND_DAYS:
        raise InvalidInputError(
            f"days must be between {MIN_TREND_DAYS} and {MAX_TREND_DAYS}"
        )


async def _window_rows(
    db: AsyncSession,
    settings: Settings,
    days: int,
    now: datetime | None,
) -> tuple[list[date], datetime, list[tuple[datetime, TransactionType, Decimal]]]:
    """Local days of the window, its UTC start, and the rows inside it."""
    tz = get_timezone(settings.APP_TIMEZONE)
    today = local_today(tz, now)
    days_list = date_range(today - timedelta(days=days - 1), days)
    window_start = local_midnight_utc(days_list[0], tz)
    window_end = local_midnight_utc(today + timedelta(days=1), tz)

    result = await db.execute(
        select(Transaction.timestamp, Transaction.type, Transaction.amount)
        .where(
            Transaction.timestamp >= window_start,
            Transaction.timestamp < window_end,
        )
        .order_by(Transaction.timestamp)
    )
    return days_list, window_start, [tuple(row) for row in result.all()]


def _bucket_by_day(
    rows: list[tuple[datetime, TransactionType, Decimal]],
    settings: Settings,
) -> dict[date, dict[TransactionType, Decimal]]:
    tz = get_timezone(settings.APP_TIMEZONE)
    buckets: dict[date, dict[TransactionType, Decimal]] = {}
    for timestamp, type_, amount in rows:
        day = buckets.setdefault(
            to_local_date(timestamp, tz),
            {TransactionType.IN: Decimal("0"), TransactionType.OUT: Decimal("0")},
        )
        day[type_] += to_decimal(amount)
    return buckets


async def get_daily_trend(
    db: AsyncSession,
    settings: Settings,
    days: int = 7,
    now: datetime | None = None,
) -> dict:
    """Opening/closing balance per local day, oldest first."""
    _check_days(days)
    days_list, window_start, rows = await _window_rows(db, settings, days, now)
    buckets = _bucket_by_day(rows, settings)

    running = await _balance(db, before=window_start)
    points = []
    for day in days_list:
        flows = buckets.get(day)
        delta = (
            flows[TransactionType.IN] - flows[TransactionType.OUT]
            if flows
            else Decimal("0")
        )
        opening = running
        running = opening + delta
        points.append({
            "date": day.isoformat(),
            "label": format_day_label(day),
            "opening_stock": to_float(opening),
            "delta": to_float(delta),
            "closing_stock": to_float(running),
        })

    return {
        "timezone": settings.APP_TIMEZONE,
        "start_date": days_list[0].isoformat(),
        "end_date": days_list[-1].isoformat(),
        "days": days,
        "points": points,
    }


async def get_daily_in_out_trend(
    db: AsyncSession,
    settings: Settings,
    days: int = 7,
    now: datetime | None = None,
) -> dict:
    """Total IN and OUT per local day, oldest first."""
    _check_days(days)
    days_list, _, rows = await _window_rows(db, settings, days, now)
    buckets = _bucket_by_day(rows, settings)

    points = []
    for day in days_list:
        flows = buckets.get(day, {})
        points.append({
            "date": day.isoformat(),
            "label": format_day_label(day),
            "total_in": to_float(flows.get(TransactionType.IN, 0)),
            "total_out": to_float(flows.get(TransactionType.OUT, 0)),
        })

    return {
        "timezone": settings.APP_TIMEZONE,
        "start_date": days_list[0].isoformat(),
        "end_date": days_list[-1].isoformat(),
        "days": days,
        "points": points,
    }
