# Use postponed evaluation of annotations so type hints stay as strings at runtime.
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

# `FastAPI` exposes the decision engine as a small JSON API.
from fastapi import FastAPI

# API routes are defined in a separate module to keep the app factory small and testable.
from velibadvisor.api.routes import router

# `JourneyService` wires providers, cache and engine from the typed config.
from velibadvisor.api.service import JourneyService

# `AppConfig` is the typed config model so we can avoid globals and magic strings.
from velibadvisor.config.models import AppConfig

# Central logging configuration keeps operational debugging consistent across scripts and the API.
from velibadvisor.utils.logging import configure_logging


# This app factory builds the FastAPI application from a typed config.
# `service` lets tests inject a service backed by fake providers.
def create_app(config: AppConfig, *, service: Optional[JourneyService] = None) -> FastAPI:
    # Pitfall: `logging.basicConfig(...)` is a no-op if handlers already exist (common in tests),
    # so treat this as best-effort for local/dev.
    configure_logging(config.logging)

    journey_service = service or JourneyService.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # Release pooled HTTP connections on shutdown.
        journey_service.close()

    app = FastAPI(title=config.app.name, lifespan=lifespan)

    # Store the service on `app.state` so route handlers can access it without global variables.
    app.state.journey_service = journey_service

    app.include_router(router)
    return app
