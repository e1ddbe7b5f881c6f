"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from bookflow.api.v1.router import api_router
from bookflow.config import Settings, settings
from bookflow.core.exceptions import AppException
from bookflow.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from bookflow.core.scheduler import AsyncioScheduler, Scheduler
from bookflow.gateways.base import VerificationGateway
from bookflow.services.confirmation_service import ConfirmationService
from bookflow.services.gateway_service import create_verification_gateway
from bookflow.services.payment_poller import PaymentConfirmationPoller
from bookflow.services.storage_backends import StorageBackend, create_storage_backend

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_lifespan(
    config: Settings,
    storage: StorageBackend | None = None,
    gateway: VerificationGateway | None = None,
    scheduler: Scheduler | None = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Lifespan that owns storage, the gateway and the poller.

    Passing ready-made components skips building them from settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        app.state.storage = storage or create_storage_backend(config)
        app.state.gateway = gateway or create_verification_gateway(config)
        app.state.scheduler = scheduler or AsyncioScheduler()
        app.state.poller = PaymentConfirmationPoller(
            app.state.gateway,
            app.state.scheduler,
            max_attempts=config.verification_max_attempts,
            interval_seconds=config.verification_interval_seconds,
            retry_on_network_error=config.verification_retry_on_network_error,
        )
        app.state.confirmation_service = ConfirmationService(app.state.poller)
        logger.info(
            f"{config.app_name} {config.app_version} started "
            f"(environment={config.environment}, storage={config.storage_backend}, "
            f"gateway={app.state.gateway.gateway_type.value})"
        )

        yield

        # Shutdown
        stopped = app.state.poller.stop_all()
        if stopped:
            logger.info(f"Stopped {stopped} running payment verification(s) on shutdown")
        await app.state.scheduler.shutdown()
        await app.state.gateway.close()
        await app.state.storage.close()

    return lifespan


def create_application(
    config: Settings | None = None,
    storage: StorageBackend | None = None,
    gateway: VerificationGateway | None = None,
    scheduler: Scheduler | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or settings
    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Bookflow - booking progression and payment confirmation API",
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
        lifespan=build_lifespan(config, storage, gateway, scheduler),
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle custom application exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    # Middleware (order matters - first added = last executed)
    # 1. Security headers (outermost)
    app.add_middleware(SecurityHeadersMiddleware)

    # 2. Request logging
    app.add_middleware(RequestLoggingMiddleware)

    # 3. CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 4. Gzip compression (innermost)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.include_router(api_router, prefix=config.api_prefix)

    @app.get("/health")
    async def health_check(request: Request) -> dict:
        """Health check endpoint."""
        poller = getattr(request.app.state, "poller", None)
        return {
            "status": "healthy",
            "version": config.app_version,
            "environment": config.environment,
            "storage": config.storage_backend,
            "active_verifications": len(poller.active_verifications()) if poller else 0,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get("/")
    async def root() -> dict:
        """Root endpoint."""
        return {
            "name": config.app_name,
            "version": config.app_version,
            "docs": "/docs" if config.debug else None,
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bookflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
