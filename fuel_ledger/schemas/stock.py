from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from fuel_ledger.models.transaction import TransactionType


class _StockEntry(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str | None = Field(None, max_length=1000)
    timestamp: datetime | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _accept_decimal_comma(cls, value):
        # Operators type "50,25" on phones
        if isinstance(value, str):
            return value.strip().replace(",", ".")
        return value


class StockInCreate(_StockEntry):
    pass


class StockOutCreate(_StockEntry):
    pass


class TransactionUser(BaseModel):
    id: int
    username: str
    email: str

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: int
    timestamp: datetime
    type: TransactionType
    amount: float
    description: str | None
    user: TransactionUser | None = None

    model_config = {"from_attributes": True}
