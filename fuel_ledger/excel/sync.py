"""Sync bookkeeping shared by the ingestion service and its API."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field


class SyncState(str, enum.Enum):
    DISABLED = "disabled"
    INITIALIZING = "initializing"
    READY = "ready"
    SYNCING = "syncing"


class SyncOutcome(str, enum.Enum):
    NEVER = "never"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    """Result of a sync operation."""

    success: bool
    message: str
    realisasi_count: int = 0
    errors: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, message: str, errors: list[str] | None = None) -> "SyncResult":
        return cls(success=False, message=message, errors=list(errors or []))

    def to_dict(self) -> dict:
        return asdict(self)
