"""Image helpers for result media."""

import io

from PIL import Image

from booth_pipeline.domain.errors import ValidationError
from booth_pipeline.domain.jobs import Dimensions

THUMBNAIL_SIZE = (400, 400)


def _open(content: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (OSError, ValueError) as exc:
        raise ValidationError("Media is not a readable image") from exc
    return image


def _to_rgb(image: Image.Image) -> Image.Image:
    if image.mode == "RGBA":
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[3])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def image_dimensions(content: bytes) -> Dimensions:
    width, height = _open(content).size
    return Dimensions(width=width, height=height)


def image_type(content: bytes) -> tuple[str, str]:
    """Return the content type and file extension of an encoded image."""
    image_format = (_open(content).format or "JPEG").upper()
    if image_format == "JPEG":
        return "image/jpeg", "jpg"
    return f"image/{image_format.lower()}", image_format.lower()


def make_thumbnail(content: bytes) -> bytes:
    """Return a JPEG thumbnail that fits within THUMBNAIL_SIZE."""
    image = _to_rgb(_open(content))
    image.thumbnail(THUMBNAIL_SIZE, Image.Resampling.LANCZOS)
    output = io.BytesIO()
    image.save(output, format="JPEG", quality=85, optimize=True)
    return output.getvalue()


def composite_overlay(base: bytes, overlay: bytes) -> bytes:
    """Stretch the overlay over the base image and flatten to JPEG."""
    base_image = _open(base).convert("RGBA")
    overlay_image = _open(overlay).convert("RGBA")
    if overlay_image.size != base_image.size:
        overlay_image = overlay_image.resize(
            base_image.size, Image.Resampling.LANCZOS
        )
    combined = Image.alpha_composite(base_image, overlay_image)
    output = io.BytesIO()
    _to_rgb(combined).save(output, format="JPEG", quality=95, optimize=True)
    return output.getvalue()
