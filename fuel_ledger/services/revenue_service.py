"""Revenue monitoring: company targets, daily realizations and aggregates."""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import extract, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.config import Settings
from fuel_ledger.exceptions import ConflictError, InvalidInputError, NotFoundError
from fuel_ledger.models.company import Company
from fuel_ledger.models.revenue import RevenueRealization, RevenueTarget
from fuel_ledger.models.user import User
from fuel_ledger.utils.currency import percentage, to_decimal, to_float, to_millions
from fuel_ledger.utils.date_helpers import (
    days_in_month,
    get_month_name,
    get_timezone,
    local_today,
    month_bounds,
)

logger = logging.getLogger(__name__)

MIN_YEAR = 2020
MAX_YEAR = 2100

DEFAULT_COMPANIES: list[tuple[str, str]] = [
    ("Bosowa Bandar Indonesia", "BBI"),
    ("Bosowa Bandar Agency", "BBA"),
    ("Jasa Pelabuhan Indonesia", "JAPELIN"),
]


def _company_ref(company: Company) -> dict:
    return {"id": company.id, "name": company.name, "code": company.code}


def _resolve_period(
    settings: Settings,
    year: int | None,
    month: int | None,
    now: datetime | None = None,
) -> tuple[int, int, date]:
    """Fill a missing year/month from today's date in the reporting timezone."""
    today = local_today(get_timezone(settings.APP_TIMEZONE), now)
    year = year or today.year
    month = month or today.month
    if not 1 <= month <= 12:
        raise InvalidInputError("Month must be between 1 and 12")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidInputError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    return year, month, today


async def _get_company(db: AsyncSession, company_id: int) -> Company:
    result = await db.execute(select(Company).where(Company.id == company_id))
    company = result.scalar_one_or_none()
    if company is None:
        raise NotFoundError(f"Company with id {company_id} not found")
    return company


async def _active_companies(db: AsyncSession) -> list[Company]:
    result = await db.execute(
        select(Company).where(Company.is_active.is_(True)).order_by(Company.id)
    )
    return list(result.scalars().all())


# === Companies ===


async def list_companies(db: AsyncSession) -> list[Company]:
    """Active companies ordered by id."""
    return await _active_companies(db)


async def create_company(db: AsyncSession, name: str, code: str) -> Company:
    name = name.strip()
    code = code.strip().upper()
    if not name or not code:
        raise InvalidInputError("Company name and code are required")

    result = await db.execute(
        select(Company).where(or_(Company.name == name, Company.code == code))
    )
    if result.scalars().first() is not None:
        raise ConflictError(f"Company '{name}' or code '{code}' already exists")

    company = Company(name=name, code=code, is_active=True)
    db.add(company)
    await db.commit()
    await db.refresh(company)
    logger.info("Created company %s (%s)", company.code, company.name)
    return company


async def seed_companies(db: AsyncSession) -> int:
    """Create the default companies that are missing. Returns how many were added."""
    result = await db.execute(select(Company.code))
    existing = {row[0] for row in result.all()}

    created = 0
    for name, code in DEFAULT_COMPANIES:
        if code in existing:
            continue
        db.add(Company(name=name, code=code, is_active=True))
        created += 1

    if created:
        await db.commit()
        logger.info("Seeded %d default companies", created)
    return created


# === Targets ===


async def create_or_update_target(
    db: AsyncSession,
    company_id: int,
    year: int,
    month: int,
    target_amount: Decimal,
) -> RevenueTarget:
    """Upsert the monthly target of a company."""
    if not 1 <= month <= 12:
        raise InvalidInputError("Month must be between 1 and 12")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidInputError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    amount = to_decimal(target_amount)
    if amount < 0:
        raise InvalidInputError("Target amount must not be negative")
    await _get_company(db, company_id)

    result = await db.execute(
        select(RevenueTarget).where(
            RevenueTarget.company_id == company_id,
            RevenueTarget.year == year,
            RevenueTarget.month == month,
        )
    )
    target = result.scalar_one_or_none()
    if target is None:
        target = RevenueTarget(
            company_id=company_id,
            year=year,
            month=month,
            target_amount=amount,
        )
        db.add(target)
    else:
        target.target_amount = amount

    await db.commit()
    await db.refresh(target, ["company"])
    return target


async def list_targets(
    db: AsyncSession,
    year: int | None = None,
    month: int | None = None,
    company_id: int | None = None,
) -> list[RevenueTarget]:
    query = select(RevenueTarget)
    if year:
        query = query.where(RevenueTarget.year == year)
    if month:
        query = query.where(RevenueTarget.month == month)
    if company_id:
        query = query.where(RevenueTarget.company_id == company_id)
    query = query.order_by(
        RevenueTarget.year.desc(),
        RevenueTarget.month.desc(),
        RevenueTarget.company_id,
    )
    result = await db.execute(query)
    return list(result.scalars().all())


# === Realizations ===


async def create_or_update_realization(
    db: AsyncSession,
    company_id: int,
    day: date,
    amount: Decimal,
    description: str | None = None,
    user: User | None = None,
) -> RevenueRealization:
    """Upsert the realization of a company on a day.

    On update a missing description or user keeps the stored value.
    """
    value = to_decimal(amount)
    if value < 0:
        raise InvalidInputError("Amount must not be negative")
    await _get_company(db, company_id)

    result = await db.execute(
        select(RevenueRealization).where(
            RevenueRealization.company_id == company_id,
            RevenueRealization.date == day,
        )
    )
    realization = result.scalar_one_or_none()
    if realization is None:
        realization = RevenueRealization(
            company_id=company_id,
            date=day,
            amount=value,
            description=description,
            user_id=user.id if user else None,
        )
        db.add(realization)
    else:
        realization.amount = value
        realization.description = description or realization.description
        if user is not None:
            realization.user_id = user.id

    await db.commit()
    await db.refresh(realization, ["company", "user"])
    return realization


async def list_realizations(
    db: AsyncSession,
    settings: Settings,
    year: int | None = None,
    month: int | None = None,
    company_id: int | None = None,
) -> list[RevenueRealization]:
    """Realizations of one month (default: current), newest first."""
    year, month, _ = _resolve_period(settings, year, month)
    start, end = month_bounds(year, month)

    query = select(RevenueRealization).where(
        RevenueRealization.date >= start,
        RevenueRealization.date <= end,
    )
    if company_id:
        query = query.where(RevenueRealization.company_id == company_id)
    query = query.order_by(RevenueRealization.date.desc(), RevenueRealization.id.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


# === Aggregates ===


async def get_summary(
    db: AsyncSession,
    settings: Settings,
    year: int | None = None,
    month: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Today's and month-to-date realization against target, per company."""
    year, month, today = _resolve_period(settings, year, month, now)
    start, end = month_bounds(year, month)
    companies = await _active_companies(db)

    targets_result = await db.execute(
        select(RevenueTarget.company_id, RevenueTarget.target_amount).where(
            RevenueTarget.year == year,
            RevenueTarget.month == month,
        )
    )
    targets = {cid: to_decimal(amount) for cid, amount in targets_result.all()}

    today_result = await db.execute(
        select(RevenueRealization.company_id, RevenueRealization.amount).where(
            RevenueRealization.date == today
        )
    )
    today_amounts = {cid: to_decimal(amount) for cid, amount in today_result.all()}

    month_result = await db.execute(
        select(
            RevenueRealization.company_id,
            func.coalesce(func.sum(RevenueRealization.amount), 0),
        )
        .where(
            RevenueRealization.date >= start,
            RevenueRealization.date <= end,
        )
        .group_by(RevenueRealization.company_id)
    )
    month_totals = {cid: to_decimal(total) for cid, total in month_result.all()}

    rows = []
    for company in companies:
        monthly_target = targets.get(company.id, Decimal("0"))
        daily_target = monthly_target / days_in_month(year, month)
        today_amount = today_amounts.get(company.id, Decimal("0"))
        month_total = month_totals.get(company.id, Decimal("0"))
        rows.append({
            "company": _company_ref(company),
            "today": {
                "realisasi": to_float(today_amount),
                "target": to_float(daily_target),
                "percentage": percentage(today_amount, daily_target),
            },
            "month": {
                "realisasi": to_float(month_total),
                "target": to_float(monthly_target),
                "percentage": percentage(month_total, monthly_target),
            },
        })

    return {
        "year": year,
        "month": month,
        "date": today.isoformat(),
        "companies": rows,
    }


async def get_trend(
    db: AsyncSession,
    settings: Settings,
    year: int | None = None,
    month: int | None = None,
) -> dict:
    """Per-day realization in millions for every active company."""
    year, month, _ = _resolve_period(settings, year, month)
    start, end = month_bounds(year, month)
    n_days = days_in_month(year, month)
    companies = await _active_companies(db)

    result = await db.execute(
        select(
            RevenueRealization.company_id,
            RevenueRealization.date,
            RevenueRealization.amount,
        ).where(
            RevenueRealization.date >= start,
            RevenueRealization.date <= end,
        )
    )
    series: dict[int, list[float]] = {c.id: [0.0] * n_days for c in companies}
    for company_id, day, amount in result.all():
        if company_id in series:
            series[company_id][day.day - 1] = to_millions(amount)

    return {
        "year": year,
        "month": month,
        "labels": [str(d) for d in range(1, n_days + 1)],
        "datasets": [
            {
                "company": company.code,
                "company_name": company.name,
                "data": series[company.id],
            }
            for company in companies
        ],
    }


async def get_yearly_comparison(
    db: AsyncSession,
    settings: Settings,
    year: int | None = None,
) -> dict:
    """Monthly target vs. realization over a year, per company."""
    year, _, _ = _resolve_period(settings, year, None)
    companies = await _active_companies(db)

    targets_result = await db.execute(
        select(
            RevenueTarget.company_id,
            RevenueTarget.month,
            RevenueTarget.target_amount,
        ).where(RevenueTarget.year == year)
    )
    targets: dict[tuple[int, int], Decimal] = {
        (cid, m): to_decimal(amount) for cid, m, amount in targets_result.all()
    }

    month_col = extract("month", RevenueRealization.date)
    sums_result = await db.execute(
        select(
            RevenueRealization.company_id,
            month_col,
            func.coalesce(func.sum(RevenueRealization.amount), 0),
        )
        .where(extract("year", RevenueRealization.date) == year)
        .group_by(RevenueRealization.company_id, month_col)
    )
    actuals: dict[tuple[int, int], Decimal] = {
        (cid, int(m)): to_decimal(total) for cid, m, total in sums_result.all()
    }

    rows = []
    for company in companies:
        points = []
        total_target = Decimal("0")
        total_actual = Decimal("0")
        for m in range(1, 13):
            target = targets.get((company.id, m), Decimal("0"))
            actual = actuals.get((company.id, m), Decimal("0"))
            total_target += target
            total_actual += actual
            points.append({
                "month": m,
                "label": get_month_name(m),
                "target": to_float(target),
                "realisasi": to_float(actual),
                "percentage": percentage(actual, target),
            })
        rows.append({
            "company": _company_ref(company),
            "points": points,
            "total": {
                "target": to_float(total_target),
                "realisasi": to_float(total_actual),
                "percentage": percentage(total_actual, total_target),
            },
        })

    return {"year": year, "companies": rows}
