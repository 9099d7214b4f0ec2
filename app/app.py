"""the bridge starts from here."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from app.config import settings
from app.container import Services, build_services
from app.logging_config import setup_logging
from app.routers import info, webhooks

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.start()
        logger.info("Bridge ready for project %s", services.cfg.asana_project_id or "-")
        try:
            yield
        finally:
            await services.stop()

    application = FastAPI(title="Asana ⇄ GitLab bridge", lifespan=lifespan)
    application.state.services = services

    application.include_router(info.router)
    application.include_router(webhooks.router)
    return application


setup_logging()
app = create_app()
