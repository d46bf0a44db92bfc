"""
TrialByte API - FastAPI Application
===================================
REST API for therapeutic trial records.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from trialbyte.database.connection import get_db_manager, reset_db_manager
from trialbyte.therapeutics.errors import TrialServiceError

from app.config import Settings, settings as default_settings
from app.api.v1.routes import therapeutic, user_activity
from app.api.v1.routes.sections import section_routers
from app.models.schemas import HealthResponse
from app.services.database import clear_service_cache

logger = logging.getLogger(__name__)


def create_app(settings: Settings = default_settings) -> FastAPI:
    """Build the application; the database is only touched at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logging.basicConfig(
            level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

        if settings.DB_CONNECT_ON_STARTUP:
            db = get_db_manager()
            db.connect_with_retry(
                max_retries=settings.DB_CONNECT_MAX_RETRIES,
                initial_delay=settings.DB_CONNECT_INITIAL_DELAY,
            )
            if settings.DB_CREATE_TABLES:
                db.create_tables()
        yield
        # Shutdown
        clear_service_cache()
        reset_db_manager()
        logger.info(f"Shutting down {settings.APP_NAME}")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Therapeutic clinical trial data API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_origin_regex=settings.CORS_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TrialServiceError)
    async def trial_service_error_handler(request: Request, exc: TrialServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"message": "Invalid request", "error": jsonable_errors(exc)},
        )

    # Whole-trial routes first so their fixed paths win over section routes
    app.include_router(therapeutic.router, prefix="/api/v1/therapeutic", tags=["Therapeutic Trials"])
    for name, router in section_routers.items():
        app.include_router(router, prefix=f"/api/v1/therapeutic/{name}", tags=["Therapeutic Sections"])
    app.include_router(user_activity.router, prefix="/api/v1/user-activity", tags=["User Activity"])

    @app.get("/", tags=["Root"])
    def root():
        return {"message": f"{settings.APP_NAME} is running", "version": settings.APP_VERSION}

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    def health():
        database_ok = get_db_manager().health_check()
        return HealthResponse(
            status="healthy" if database_ok else "degraded",
            message="Server is running",
            database="connected" if database_ok else "unavailable",
            version=settings.APP_VERSION,
        )

    return app


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


app = create_app()
