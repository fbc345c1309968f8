"""Main FastAPI application."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from parliament.api import api_router
from parliament.core.config import get_settings
from parliament.core.exceptions import SignatureServiceError
from parliament.core.logger import get_logger, setup_app_logging
from parliament.models import init_db
from parliament.models.base import dispose_db

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    await init_db()

    # Ensure the storage root exists
    Path(settings.storage_path).mkdir(parents=True, exist_ok=True)

    logger.info("application_started", environment=settings.environment)
    yield

    # Shutdown
    await dispose_db()


app = FastAPI(
    title=settings.app_name,
    description="Signature completion and certification for governance records",
    version="0.1.0",
    lifespan=lifespan,
)

setup_app_logging(
    app,
    log_level=settings.log_level,
    use_json=settings.log_json,
    app_name=settings.app_name,
    environment=settings.environment,
)

# Signing pages are served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.exception_handler(SignatureServiceError)
async def signature_service_error_handler(request: Request, exc: SignatureServiceError):
    if exc.status_code >= 500:
        logger.error("request_error", path=request.url.path, error=exc.error, details=exc.details)
    else:
        logger.info("request_rejected", path=request.url.path, status_code=exc.status_code, error=exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": "Invalid JSON body",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"ok": True, "status": "healthy", "app": settings.app_name}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs",
    }
