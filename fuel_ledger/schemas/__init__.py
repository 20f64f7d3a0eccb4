from fuel_ledger.schemas.common import ApiResponse
from fuel_ledger.schemas.user import (
    AuthSession,
    LoginRequest,
    RefreshRequest,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from fuel_ledger.schemas.stock import StockInCreate, StockOutCreate, TransactionResponse
from fuel_ledger.schemas.revenue import (
    CompanyCreate,
    CompanyResponse,
    RealizationCreate,
    RealizationResponse,
    TargetCreate,
    TargetResponse,
)
from fuel_ledger.schemas.sheets import WebhookPayload

__all__ = [
    "ApiResponse",
    "AuthSession",
    "LoginRequest",
    "RefreshRequest",
    "UserCreate",
    "UserResponse",
    "UserUpdate",
    "StockInCreate",
    "StockOutCreate",
    "TransactionResponse",
    "CompanyCreate",
    "CompanyResponse",
    "RealizationCreate",
    "RealizationResponse",
    "TargetCreate",
    "TargetResponse",
    "WebhookPayload",
]
