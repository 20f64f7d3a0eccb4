import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fuel_ledger.config import Settings
from fuel_ledger.database import create_engine, create_session_factory, init_db
from fuel_ledger.excel.drive import WorkbookDownloader
from fuel_ledger.exceptions import AppError
from fuel_ledger.routers import auth, revenue, sheets, stock, users
from fuel_ledger.schemas.common import ApiResponse
from fuel_ledger.services.bootstrap_service import seed_defaults
from fuel_ledger.services.sheets_service import SheetsSyncService

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _start_scheduler(service: SheetsSyncService) -> AsyncIOScheduler:
    """Tick every minute; the service decides whether a sync is due."""
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        service.scheduled_sync,
        trigger=IntervalTrigger(minutes=1),
        id="sheets_sync",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Sheets sync scheduler started")
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    settings: Settings = app.state.settings
    if settings.DATABASE_URL.startswith("sqlite") and ":memory:" not in settings.DATABASE_URL:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if settings.DB_AUTO_CREATE:
        await init_db(app.state.engine)
    async with app.state.session_factory() as db:
        await seed_defaults(db, settings)

    scheduler = None
    service: SheetsSyncService = app.state.sheets_service
    if await service.initialize():
        await service.sync()
        scheduler = _start_scheduler(service)

    yield

    # Shutdown
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await app.state.engine.dispose()


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.fail(exc.message).model_dump(),
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=422,
        content=ApiResponse.fail(
            f"{location}: {message}" if location else message,
            meta={"errors": len(errors)},
        ).model_dump(),
    )


def create_app(
    settings: Settings | None = None,
    downloader_factory: Callable[[Settings], WorkbookDownloader] | None = None,
) -> FastAPI:
    """Build the application around one settings object."""
    settings = settings or Settings.from_env()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = create_engine(settings)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.sheets_service = SheetsSyncService(
        settings, app.state.session_factory, downloader_factory
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Register all routers under /api/v1
    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(users.router, prefix=API_PREFIX)
    app.include_router(stock.router, prefix=API_PREFIX)
    app.include_router(revenue.router, prefix=API_PREFIX)
    app.include_router(sheets.router, prefix=API_PREFIX)

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "ok", "version": settings.APP_VERSION}

    return app
