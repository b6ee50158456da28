from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from service_errors.config import settings
from service_errors.dependencies import container
from service_errors.http import register_error_handlers
from service_errors.routers.image import router as image_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager: code before yield runs on startup.

    Startup: every service's errors are declared by now, so the registry is
    sealed and any declaration made while serving fails loudly.
    """
    container.start()
    if settings.seal_registry_on_startup:
        container.registry.seal()
    yield


app = FastAPI(lifespan=lifespan)
register_error_handlers(app, settings)
app.include_router(image_router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint, also reports how many error kinds are declared."""
    return {"status": "ok", "declared_errors": len(container.registry)}
