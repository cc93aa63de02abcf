"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from mailboard.infrastructure.services import Services, build_services
from mailboard.infrastructure.settings import get_settings


def create_app(services: Services | None = None) -> FastAPI:
    """Create the app. Pass ``services`` to run against injected fakes."""
    settings = services.settings if services else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Resume polling for known tenants on startup, stop it on shutdown."""
        svc = services or build_services(settings)
        app.state.services = svc
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Environment: {settings.environment}")

        for tenant in svc.registry.tenants():
            svc.scheduler.start(tenant.tenant_id)

        yield

        logger.info("Shutting down...")
        await svc.scheduler.stop_all()
        svc.mailbox.disconnect()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Creates monday.com board items from intake emails",
        lifespan=lifespan,
    )

    from mailboard.api.routes import router

    app.include_router(router)
    return app
