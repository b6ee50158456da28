"""Image endpoints."""

from fastapi import APIRouter, Header, Query, Response

from service_errors.dependencies import Images
from service_errors.schemas.image import ConversionResponse, DecodedImageResponse, ImageResponse

router = APIRouter()


@router.get("/images/{image_id}", response_model=ImageResponse)
async def get_image(image_id: str, images: Images) -> ImageResponse:
    return ImageResponse.model_validate(images.get_image(image_id))


@router.get("/images/{image_id}/decoded", response_model=DecodedImageResponse)
async def decode_image(image_id: str, images: Images) -> DecodedImageResponse:
    """Decode the stored payload and report its size in bytes."""
    return DecodedImageResponse(id=image_id, size=len(images.decode(image_id)))


@router.get("/images/{image_id}/convert", response_model=ConversionResponse)
async def convert_image(
    image_id: str,
    images: Images,
    format: str = Query(..., min_length=1),
) -> ConversionResponse:
    image = images.get_image(image_id)
    return ConversionResponse(
        id=image.id,
        source_format=image.format,
        target_format=images.check_format(format),
    )


@router.delete("/images/{image_id}", status_code=204)
async def delete_image(
    image_id: str,
    images: Images,
    x_user: str | None = Header(default=None),
) -> Response:
    images.delete(image_id, x_user)
    return Response(status_code=204)
