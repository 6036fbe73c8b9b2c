"""
Smart Expense Tracker backend — FastAPI application entry-point.
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from expense_tracker.config import settings
from expense_tracker.database import Base, SessionLocal, engine
from expense_tracker.errors import (
    Conflict,
    ExtractionError,
    Forbidden,
    InvalidInput,
    NotFound,
    ServiceError,
    UploadFailure,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)

# Transport codes live only here; services raise the taxonomy in errors.py
ERROR_STATUS: dict[type[ServiceError], int] = {
    InvalidInput: 400,
    Forbidden: 403,
    NotFound: 404,
    Conflict: 409,
    UploadFailure: 500,
    ExtractionError: 500,
}


def _recover_pending() -> None:
    from expense_tracker.dependencies import get_blob_store, get_extractor
    from expense_tracker.pipeline import recover_pending_receipts

    count = recover_pending_receipts(
        SessionLocal,
        get_blob_store(),
        get_extractor(),
        older_than=timedelta(minutes=settings.PENDING_RECOVERY_MINUTES),
        default_currency=settings.DEFAULT_CURRENCY,
    )
    logger.info("Pending receipt recovery processed %d receipts", count)


async def _recover_in_background() -> None:
    try:
        await asyncio.to_thread(_recover_pending)
    except Exception as e:
        logger.warning("Pending receipt recovery failed: %s", e, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure data dirs + tables exist
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    # Import models so Base.metadata knows about them
    import expense_tracker.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)

    # OCR on stale receipts runs in a worker thread; requests are served meanwhile
    app.state.recovery_task = None
    if settings.RECOVER_PENDING_ON_STARTUP:
        app.state.recovery_task = asyncio.create_task(_recover_in_background())

    yield
    task = app.state.recovery_task
    if task is not None and not task.done():
        logger.info("Pending receipt recovery still running at shutdown; detaching")
        task.cancel()
    logger.info("Shutting down")


app = FastAPI(
    title="Smart Expense Tracker",
    description="Receipt upload → OCR → parsed expense",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    status = ERROR_STATUS.get(type(exc), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
async def root():
    return {"service": "Smart Expense Tracker", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API routers ─────────────────────────────────────────────────
from expense_tracker.routers.expenses import router as expenses_router  # noqa: E402
from expense_tracker.routers.receipts import router as receipts_router  # noqa: E402

app.include_router(receipts_router, prefix="/api", tags=["Receipts"])
app.include_router(expenses_router, prefix="/api", tags=["Expenses"])

# Stored receipt files, addressed by PUBLIC_UPLOAD_URL
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")
