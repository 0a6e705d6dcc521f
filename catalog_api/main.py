"""
Motorcycle Catalog API - main application.

Builds the FastAPI app, owns the repository lifecycle and maps catalog
errors onto HTTP responses.
"""
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import config
from .database import BikeRepository
from .errors import InvalidArgument, NotFound, StoreUnavailable, field_error
from .models import HealthOut
from .routes import bikes_router, lookups_router

# Configure logging
_handlers = [logging.StreamHandler(sys.stdout)]
if config.LOG_FILE:
    _handlers.append(logging.FileHandler(config.LOG_FILE))
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_handlers
)

logger = logging.getLogger(__name__)


def create_app(db_path: Optional[str] = None) -> FastAPI:
    """Create the application. ``db_path`` overrides CATALOG_DB."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        logger.info("Starting Motorcycle Catalog API...")
        path = db_path or config.DB_PATH
        if db_path is None:
            config.validate()
        elif not os.path.exists(path):
            raise FileNotFoundError(f"Database file not found: {path}")
        logger.info(f"Database path: {path}")

        app.state.repository = BikeRepository.from_path(
            path, size=config.POOL_SIZE, timeout=config.POOL_TIMEOUT
        )
        logger.info("API startup complete")
        try:
            yield
        finally:
            logger.info("Shutting down Motorcycle Catalog API...")
            app.state.repository.close()

    app = FastAPI(
        title=config.API_TITLE,
        version=config.API_VERSION,
        description=config.API_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=config.CORS_ALLOW_METHODS,
        allow_headers=config.CORS_ALLOW_HEADERS,
    )

    @app.exception_handler(InvalidArgument)
    async def invalid_argument_handler(request: Request, exc: InvalidArgument):
        return JSONResponse(status_code=400, content=jsonable_encoder({"errors": exc.errors}))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = []
        for err in exc.errors():
            loc = list(err.get("loc", ()))
            location = str(loc[0]) if loc else "request"
            field = ".".join(str(part) for part in loc[1:]) or location
            errors.append(field_error(field, err.get("msg", "Invalid value"), err.get("input"), location))
        return JSONResponse(status_code=400, content=jsonable_encoder({"errors": errors}))

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": "Bike not found"})

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
        logger.error(f"Store failure on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled exception: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health", response_model=HealthOut)
    async def health_check(request: Request):
        """Health check endpoint."""
        try:
            await run_in_threadpool(request.app.state.repository.ping)
        except StoreUnavailable as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=503, detail="Service unavailable")
        return {
            "status": "healthy",
            "version": config.API_VERSION,
            "database": "connected"
        }

    app.include_router(bikes_router)
    app.include_router(lookups_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "catalog_api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        log_level=config.LOG_LEVEL.lower()
    )
