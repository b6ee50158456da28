"""Image response schemas."""

from pydantic import BaseModel


class ImageResponse(BaseModel):
    """A stored image without its payload."""

    model_config = {"from_attributes": True}

    id: str
    format: str


class DecodedImageResponse(BaseModel):
    id: str
    size: int


class ConversionResponse(BaseModel):
    """Result of a (simulated) format conversion."""

    id: str
    source_format: str
    target_format: str
