from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from staffdesk.authz import AuthorizationEngine
from staffdesk.db.init_db import init_db
from staffdesk.logging_config import configure_app_logging
from staffdesk.routers import authz, health, staff
from staffdesk.settings import get_settings

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        # RegistryError aborts startup.
        app.state.authz_engine = AuthorizationEngine.from_yaml(
            settings.resolved_registry_path(),
            cache_size=settings.permission_cache_size,
        )
        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield
        # Shutdown (nothing to clean up)

    app = FastAPI(title="staffdesk authorization", lifespan=lifespan)

    app.include_router(health.router)
    app.include_router(authz.router)
    app.include_router(staff.router)

    return app


app = create_app()
