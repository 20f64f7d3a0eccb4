"""Domain errors raised by the service layer.

Each error carries the HTTP status the API answers with; the handler in
``fuel_ledger.main`` turns them into ``ApiResponse.fail`` envelopes.
"""


class AppError(ValueError):
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(AppError):
    status_code = 400


class InsufficientStockError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class PermissionDeniedError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class IntegrationError(Exception):
    """Spreadsheet ingestion failure; captured into a SyncResult, never raised to callers."""
