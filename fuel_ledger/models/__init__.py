from fuel_ledger.models.user import User, UserRole
from fuel_ledger.models.transaction import Transaction, TransactionType
from fuel_ledger.models.ledger_lock import LedgerLock
from fuel_ledger.models.company import Company
from fuel_ledger.models.revenue import RevenueRealization, RevenueTarget
from fuel_ledger.models.refresh_token import RefreshToken

__all__ = [
    "User",
    "UserRole",
    "Transaction",
    "TransactionType",
    "LedgerLock",
    "Company",
    "RevenueTarget",
    "RevenueRealization",
    "RefreshToken",
]
