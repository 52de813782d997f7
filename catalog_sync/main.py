# catalog_sync/main.py
import logging
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from catalog_sync.core.config import settings
from catalog_sync.core.exceptions import (
    CatalogSyncError,
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from catalog_sync.core.logging import setup_logging
from catalog_sync.database import create_tables
from catalog_sync.api.v1.api import api_router

setup_logging()
logger = logging.getLogger(__name__)

# HTTP-коды для ошибок ядра; остальные - 500
ERROR_STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    PreconditionError: status.HTTP_409_CONFLICT,
}

# Создаем app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Local product catalog mirrored with a WooCommerce store",
    version=settings.VERSION
)

def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, **extra}
    )

@app.exception_handler(CatalogSyncError)
async def catalog_sync_error_handler(request: Request, exc: CatalogSyncError):
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return error_response(status_code, str(exc))

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(
        422,
        "Validation failed",
        errors=jsonable_encoder(exc.errors())
    )

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

# Подключаем роутеры
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} v{settings.VERSION}", "status": "ok"}

@app.get("/health")
async def health():
    return {"status": "ok", "store_client": settings.STORE_CLIENT, "service": "catalog-sync"}

# Инициализация БД
create_tables()
