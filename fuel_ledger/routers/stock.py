from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.config import Settings
from fuel_ledger.database import get_db, get_settings
from fuel_ledger.models.transaction import TransactionType
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.routers.auth import get_current_user, require_roles
from fuel_ledger.schemas.common import ApiResponse, page_meta
from fuel_ledger.schemas.stock import StockInCreate, StockOutCreate, TransactionResponse
from fuel_ledger.services import stock_service

router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("/summary")
async def get_summary(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: User = Depends(get_current_user),
) -> ApiResponse[dict]:
    summary = await stock_service.get_summary(db, settings)
    return ApiResponse.ok(summary)


@router.post("/in", status_code=201)
async def record_in(
    body: StockInCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_roles(UserRole.ADMIN)),
) -> ApiResponse[TransactionResponse]:
    txn = await stock_service.record_in(
        db, settings, body.amount, user, body.description, body.timestamp
    )
    return ApiResponse.ok(TransactionResponse.model_validate(txn))


@router.post("/out", status_code=201)
async def record_out(
    body: StockOutCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.OPERASIONAL)),
) -> ApiResponse[TransactionResponse]:
    txn = await stock_service.record_out(
        db, settings, body.amount, user, body.description, body.timestamp
    )
    return ApiResponse.ok(TransactionResponse.model_validate(txn))


@router.get("/history")
async def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: TransactionType | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    search: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: User = Depends(get_current_user),
) -> ApiResponse[list[TransactionResponse]]:
    txns, total = await stock_service.get_history(
        db,
        settings,
        user,
        page=page,
        limit=limit,
        type_=type,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return ApiResponse.ok(
        [TransactionResponse.model_validate(t) for t in txns],
        meta=page_meta(total, page, limit, len(txns)),
    )


@router.get("/trend")
async def get_daily_trend(
    days: int = Query(7),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: User = Depends(get_current_user),
) -> ApiResponse[dict]:
    trend = await stock_service.get_daily_trend(db, settings, days)
    return ApiResponse.ok(trend)


@router.get("/trend/in-out")
async def get_daily_in_out_trend(
    days: int = Query(7),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: User = Depends(get_current_user),
) -> ApiResponse[dict]:
    trend = await stock_service.get_daily_in_out_trend(db, settings, days)
    return ApiResponse.ok(trend)
