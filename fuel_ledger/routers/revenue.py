from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.config import Settings
from fuel_ledger.database import get_db, get_settings
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.routers.auth import get_current_user, require_roles
from fuel_ledger.schemas.common import ApiResponse
from fuel_ledger.schemas.revenue import (
    CompanyCreate,
    CompanyResponse,
    RealizationCreate,
    RealizationResponse,
    TargetCreate,
    TargetResponse,
)
from fuel_ledger.services import revenue_service

router = APIRouter(prefix="/revenue", tags=["revenue"])


@router.get("/companies")
async def list_companies(
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[list[CompanyResponse]]:
    companies = await revenue_service.list_companies(db)
    return ApiResponse.ok([CompanyResponse.model_validate(c) for c in companies])


@router.post("/companies", status_code=201)
async def create_company(
    body: CompanyCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_roles(UserRole.ADMIN)),
) -> ApiResponse[CompanyResponse]:
    company = await revenue_service.create_company(db, body.name, body.code)
    return ApiResponse.ok(CompanyResponse.model_validate(company))


@router.post("/companies/seed")
async def seed_companies(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_roles(UserRole.ADMIN)),
) -> ApiResponse[dict]:
    created = await revenue_service.seed_companies(db)
    return ApiResponse.ok({"message": "Companies seeded successfully", "created": created})


@router.get("/targets")
async def list_targets(
    year: int | None = Query(None),
    month: int | None = Query(None, ge=1, le=12),
    company_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[list[TargetResponse]]:
    targets = await revenue_service.list_targets(db, year, month, company_id)
    return ApiResponse.ok([TargetResponse.model_validate(t) for t in targets])


@router.post("/targets")
async def create_or_update_target(
    body: TargetCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
) -> ApiResponse[TargetResponse]:
    target = await revenue_service.create_or_update_target(
        db, body.company_id, body.year, body.month, body.target_amount
    )
    return ApiResponse.ok(TargetResponse.model_validate(target))


@router.get("/realizations")
async def list_realizations(
    year: int | None = Query(None),
    month: int | None = Query(None, ge=1, le=12),
    company_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[list[RealizationResponse]]:
    realizations = await revenue_service.list_realizations(
        db, settings, year, month, company_id
    )
    return ApiResponse.ok([RealizationResponse.model_validate(r) for r in realizations])


@router.post("/realizations")
async def create_or_update_realization(
    body: RealizationCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ApiResponse[RealizationResponse]:
    realization = await revenue_service.create_or_update_realization(
        db, body.company_id, body.date, body.amount, body.description, user
    )
    return ApiResponse.ok(RealizationResponse.model_validate(realization))


@router.get("/summary")
async def get_summary(
    year: int | None = Query(None),
    month: int | None = Query(None, ge=1, le=12),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[dict]:
    summary = await revenue_service.get_summary(db, settings, year, month)
    return ApiResponse.ok(summary)


@router.get("/trend")
async def get_trend(
    year: int | None = Query(None),
    month: int | None = Query(None, ge=1, le=12),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[dict]:
    trend = await revenue_service.get_trend(db, settings, year, month)
    return ApiResponse.ok(trend)


@router.get("/yearly-comparison")
async def get_yearly_comparison(
    year: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[dict]:
    comparison = await revenue_service.get_yearly_comparison(db, settings, year)
    return ApiResponse.ok(comparison)
