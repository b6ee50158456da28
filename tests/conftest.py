from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from service_errors.container import ServiceContainer
from service_errors.dependencies import get_image_service
from service_errors.main import app
from service_errors.registry import ErrorRegistry
from service_errors.services.image import ImageService, image_service


@pytest.fixture
def registry() -> ErrorRegistry:
    """A fresh registry, so tests can reuse error names freely."""
    return ErrorRegistry()


@pytest.fixture
def images(registry: ErrorRegistry) -> ImageService:
    """A seeded image service built by its own container."""
    container = ServiceContainer({"image_service": image_service}, registry=registry)
    container.start()
    service: ImageService = container.get("image_service")
    return service


@pytest_asyncio.fixture
async def client(images: ImageService) -> AsyncIterator[AsyncClient]:
    """HTTP client whose requests use the test's own image service."""
    app.dependency_overrides[get_image_service] = lambda: images

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
