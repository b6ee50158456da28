"""Shared FastAPI dependencies.

The service container lives here (not in main.py) so routers can depend on
services without importing the app. Declaring the services' errors happens at
import, before the app serves anything.
"""

from typing import Annotated

from fastapi import Depends

from service_errors.container import ServiceContainer
from service_errors.services.image import ImageService, image_service

container = ServiceContainer({"image_service": image_service})
container.start()


def get_image_service() -> ImageService:
    service: ImageService = container.get("image_service")
    return service


Images = Annotated[ImageService, Depends(get_image_service)]
