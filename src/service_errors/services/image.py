"""Image service.

An in-memory image store used by the example app. Every failure it can
produce is a kind declared in its service metadata and reached through the
``Error`` namespace the container injects.
"""

import base64
import binascii
from dataclasses import dataclass, field
from types import SimpleNamespace

from service_errors.container import Injector, service
from service_errors.declaration import ErrorNamespace

SUPPORTED_FORMATS = ("png", "jpeg", "gif", "webp")


@dataclass
class Image:
    """A stored image. ``data`` is base64 text, as uploaded."""

    id: str
    format: str
    data: str


@dataclass
class ImageService:
    Error: ErrorNamespace
    images: dict[str, Image] = field(default_factory=dict)
    owners: dict[str, str] = field(default_factory=dict)

    def get_image(self, image_id: str) -> Image:
        return self.Error.ImageNotFound.guard(image_id=image_id)(self.images.get(image_id))

    def check_format(self, format: str) -> str:
        """Return the normalized format, or raise UnsupportedImageFormat."""
        normalized = format.lower()
        if normalized not in SUPPORTED_FORMATS:
            raise self.Error.UnsupportedImageFormat(format=format)
        return normalized

    def decode(self, image_id: str) -> bytes:
        """Return the raw bytes of an image.

        Undecodable data is a CorruptImage error caused by the decoder's own error.
        """
        image = self.get_image(image_id)
        try:
            return base64.b64decode(image.data, validate=True)
        except binascii.Error as exc:
            raise self.Error.CorruptImage(exc, image_id=image_id) from exc

    def delete(self, image_id: str, user: str | None) -> None:
        """Delete an image. Only its owner may do so."""
        image = self.get_image(image_id)
        user = self.Error.NotSignedIn.guard()(user)
        if self.owners.get(image.id) != user:
            raise self.Error.NotOwner(image_id=image_id, user=user)
        del self.images[image.id]
        self.owners.pop(image.id, None)


@service(
    "ImageService",
    options={"seed": True},
    errors={
        "UnsupportedImageFormat": (400, lambda format: f'Unsupported image format: "{format}"'),
        "NotSignedIn": (401, "Sign in to manage images"),
        "NotOwner": (
            403,
            lambda image_id, user: f'User "{user}" does not own image "{image_id}"',
        ),
        "ImageNotFound": (404, lambda image_id: f'Image "{image_id}" not found'),
        "CorruptImage": lambda image_id: f'Image "{image_id}" could not be decoded',
    },
)
def image_service(inject: Injector) -> ImageService:
    package: SimpleNamespace = inject(image_service)
    images = ImageService(Error=package.Error)
    if package.options["seed"]:
        images.images["logo"] = Image(id="logo", format="png", data="iVBORw0KGgo=")
        images.images["broken"] = Image(id="broken", format="gif", data="not base64!")
        images.owners["logo"] = "alice"
    return images
