"""Image normalization pipeline: decode, auto-rotate, bounded resize, JPEG encode."""

import io
from typing import Tuple

from PIL import Image, ImageColor, ImageOps, UnidentifiedImageError
from pydantic import BaseModel


class ImageTransformError(Exception):
    """Raised when input bytes cannot be decoded or normalized."""


class TransformResult(BaseModel):
    """Normalized JPEG plus the dimensions before and after resizing."""
    content: bytes
    width: int
    height: int
    original_width: int
    original_height: int
    size_bytes: int


def fit_inside(size: Tuple[int, int], max_width: int, max_height: int) -> Tuple[int, int]:
    """Scale ``size`` to fit the bounding box, preserving aspect ratio.

    Never enlarges: sizes already inside the box are returned unchanged.

    Args:
        size: (width, height) of the source image
        max_width: Bounding box width
        max_height: Bounding box height

    Returns:
        tuple: (width, height) of the fitted image
    """
    width, height = size
    scale = min(1.0, max_width / width, max_height / height)
    if scale >= 1.0:
        return width, height
    return max(1, round(width * scale)), max(1, round(height * scale))


def _rescale(image: Image.Image, low: float, high: float) -> Image.Image:
    scale = 255 / ((high - low) or 1)
    return image.point(lambda v: v * scale + (-low * scale)).convert("L")


def to_8bit(image: Image.Image) -> Image.Image:
    """Scale 16-bit, 32-bit integer and float images down to 8-bit ``L``.

    ``convert("L")`` clips these modes to 0-255 instead of rescaling them,
    which turns most 16-bit images white and most float images black.
    Other modes are returned unchanged.
    """
    if image.mode.startswith("I;16"):
        return _rescale(image.convert("I"), 0, 65535)

    if image.mode not in ("I", "F"):
        return image

    low, high = image.getextrema()
    if image.mode == "F" and low >= 0 and high <= 1.0:
        return _rescale(image, 0, 1.0)
    if low >= 0 and high <= 255:
        return image.convert("L")
    if image.mode == "I" and low >= 0 and high <= 65535:
        # 16-bit PNGs decode as "I" on older Pillow releases
        return _rescale(image, 0, 65535)
    return _rescale(image, low, high)


def flatten(image: Image.Image, background: str = "#000000") -> Image.Image:
    """Convert to RGB, compositing any transparency onto ``background``."""
    image = to_8bit(image)

    if image.mode == "P" and "transparency" in image.info:
        image = image.convert("RGBA")

    if image.mode in ("RGBA", "LA", "PA") or image.mode.endswith("a"):
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, ImageColor.getrgb(background))
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas

    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def decode_image(data: bytes) -> Image.Image:
    """Decode bytes into a fully loaded PIL image.

    Raises:
        ImageTransformError: On empty, corrupt, unrecognized or oversized input
    """
    if not data:
        raise ImageTransformError("Empty image payload")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageTransformError(f"Cannot decode image: {exc}") from exc

    return image


def normalize_image(
    data: bytes,
    max_width: int = 1920,
    max_height: int = 1080,
    quality: int = 85,
    background: str = "#000000",
) -> TransformResult:
    """Run the full normalization pipeline on raw upload bytes.

    Steps:
    1. Decode
    2. Apply EXIF orientation (the tag is consumed, output carries no EXIF)
    3. Flatten transparency and convert to RGB
    4. Fit inside max_width x max_height without enlargement
    5. Encode as JPEG at the given quality

    Args:
        data: Raw image bytes in any format Pillow can read
        max_width: Bounding box width
        max_height: Bounding box height
        quality: JPEG quality (1-95)
        background: Colour used where the source is transparent

    Returns:
        TransformResult: JPEG bytes and dimensions

    Raises:
        ImageTransformError: If the input cannot be decoded or encoded
    """
    image = decode_image(data)

    try:
        image = ImageOps.exif_transpose(image)
        original_width, original_height = image.size

        image = flatten(image, background)

        target = fit_inside(image.size, max_width, max_height)
        if target != image.size:
            image = image.resize(target, Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality)
    except (OSError, ValueError) as exc:
        raise ImageTransformError(f"Cannot normalize image: {exc}") from exc

    content = buffer.getvalue()
    return TransformResult(
        content=content,
        width=image.width,
        height=image.height,
        original_width=original_width,
        original_height=original_height,
        size_bytes=len(content),
    )
