"""FastAPI application factory for the SolarERP API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from solarerp.config import settings, validate_settings
from solarerp.database.engine import engine
from solarerp.database.registry import close_registry_engine
from solarerp.exceptions import AppException, TenancyError, TenantAccessError
from solarerp.logging_config import configure_logging
from solarerp.modules.tenancy.constants import TENANT_UNAUTHORIZED_MESSAGE
from solarerp.modules.tenancy.runtime import TenancyServices, build_tenancy_services
from solarerp.modules.tenancy.transaction import rollback_request_transaction
from solarerp.schemas.responses import error_response, get_request_id

logger = logging.getLogger(__name__)

# Rate limiter — keyed by client IP address
limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Decide the tenancy mode at boot; release every pool on shutdown."""
    configure_logging(settings.log_level)
    validate_settings()
    if getattr(app.state, "tenancy", None) is None:
        app.state.tenancy = await build_tenancy_services(engine)
    yield
    await app.state.tenancy.shutdown()
    await close_registry_engine()
    await engine.dispose()


def create_app(tenancy: TenancyServices | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    ``tenancy`` pre-wires the tenancy services (tests); otherwise they are
    built in the lifespan hook.
    """
    application = FastAPI(
        title="SolarERP API",
        description="Solar-installation ERP backend with per-tenant database and storage isolation.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    application.state.tenancy = tenancy

    # Rate limiter
    application.state.limiter = limiter

    # --- Middleware (last added = outermost in Starlette) ---

    # Tenant transaction finaliser — commits or rolls back once the status is known
    from solarerp.modules.tenancy.transaction import TenantTransactionMiddleware

    application.add_middleware(TenantTransactionMiddleware)

    # CORS — configured via CORS_ORIGINS env var, never wildcard with credentials
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID — registered last so it runs first (outermost)
    from solarerp.middleware.request_context import RequestContextMiddleware

    application.add_middleware(RequestContextMiddleware)

    # --- Routers ---
    from solarerp.api.v1 import v1_router

    application.include_router(v1_router)

    # --- Exception Handlers ---
    # Every handler rolls back the request transaction before answering.

    @application.exception_handler(TenantAccessError)
    async def tenant_access_handler(request: Request, exc: TenantAccessError) -> JSONResponse:
        await rollback_request_transaction(request)
        logger.warning("Tenant access denied (%s)", exc.code)
        return error_response(
            status_code=401,
            code="UNAUTHORIZED",
            message=TENANT_UNAUTHORIZED_MESSAGE,
            request_id=get_request_id(request),
        )

    @application.exception_handler(TenancyError)
    async def tenancy_error_handler(request: Request, exc: TenancyError) -> JSONResponse:
        await rollback_request_transaction(request)
        if exc.status_code >= 500 and exc.status_code != 503:
            logger.error("Tenancy failure %s: %s", exc.code, exc.message)
            return error_response(
                status_code=exc.status_code,
                code="INTERNAL_ERROR",
                message="An unexpected error occurred.",
                request_id=get_request_id(request),
            )
        return error_response(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            request_id=get_request_id(request),
        )

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        await rollback_request_transaction(request)
        return error_response(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            request_id=get_request_id(request),
            details=exc.details,
        )

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        await rollback_request_transaction(request)
        details = [
            {"field": ".".join(str(loc) for loc in err.get("loc", [])), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return error_response(
            status_code=422,
            code="VALIDATION_ERROR",
            message="Validation failed",
            request_id=get_request_id(request),
            details=details,
        )

    @application.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        await rollback_request_transaction(request)
        return error_response(
            status_code=429,
            code="RATE_LIMITED",
            message=str(exc.detail),
            request_id=get_request_id(request),
        )

    @application.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        await rollback_request_transaction(request)
        logger.exception("Unhandled exception: %s", exc)
        return error_response(
            status_code=500,
            code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=get_request_id(request),
        )

    # Health check
    @application.get("/health")
    async def health_check(request: Request) -> dict:
        services: TenancyServices | None = request.app.state.tenancy
        return {"status": "ok", "tenancy_mode": services.mode if services else "starting"}

    return application


app = create_app()
