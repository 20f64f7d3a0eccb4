from fastapi import APIRouter, Depends, Request

from fuel_ledger.models.user import User
from fuel_ledger.routers.auth import get_current_user
from fuel_ledger.schemas.common import ApiResponse
from fuel_ledger.schemas.sheets import WebhookPayload
from fuel_ledger.services.sheets_service import SheetsSyncService

router = APIRouter(prefix="/sheets", tags=["sheets"])


def get_sheets_service(request: Request) -> SheetsSyncService:
    return request.app.state.sheets_service


@router.get("/status")
async def get_status(
    service: SheetsSyncService = Depends(get_sheets_service),
) -> ApiResponse[dict]:
    return ApiResponse.ok(service.get_status())


@router.post("/sync")
async def trigger_sync(
    service: SheetsSyncService = Depends(get_sheets_service),
    _: User = Depends(get_current_user),
) -> ApiResponse[dict]:
    result = await service.sync()
    return ApiResponse(
        success=result.success,
        data=result.to_dict(),
        error=None if result.success else result.message,
    )


@router.post("/webhook")
async def webhook(
    body: WebhookPayload,
    service: SheetsSyncService = Depends(get_sheets_service),
) -> ApiResponse[dict]:
    result = await service.handle_webhook(body.spreadsheet_id, body.sheet_name)
    return ApiResponse(
        success=result.success,
        data=result.to_dict(),
        error=None if result.success else result.message,
    )
