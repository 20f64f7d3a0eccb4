import datetime as dt
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)


class CompanyResponse(BaseModel):
    id: int
    name: str
    code: str
    is_active: bool

    model_config = {"from_attributes": True}


class TargetCreate(BaseModel):
    company_id: int
    year: int = Field(..., ge=2020, le=2100)
    month: int = Field(..., ge=1, le=12)
    target_amount: Decimal = Field(..., ge=0)


class TargetResponse(BaseModel):
    id: int
    company_id: int
    year: int
    month: int
    target_amount: float
    company: CompanyResponse | None = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class RealizationCreate(BaseModel):
    company_id: int
    date: dt.date
    amount: Decimal = Field(..., ge=0)
    description: str | None = Field(None, max_length=1000)


class RealizationResponse(BaseModel):
    id: int
    company_id: int
    date: dt.date
    amount: float
    description: str | None
    user_id: int | None
    company: CompanyResponse | None = None
    updated_at: datetime

    model_config = {"from_attributes": True}
