from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fuel_ledger.models.base import Base

STOCK_LOCK_NAME = "stock"


class LedgerLock(Base):
    """Row locked FOR UPDATE to serialize stock-out balance checks."""

    __tablename__ = "ledger_locks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
