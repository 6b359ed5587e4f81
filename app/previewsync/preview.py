"""
Preview rendering: downscale an original image and re-encode it as WebP.
"""
import io
import logging

from PIL import Image, ImageOps

from .errors import EncodeError

logger = logging.getLogger(__name__)

PREVIEW_WIDTH = 480
PREVIEW_QUALITY = 75
PREVIEW_CONTENT_TYPE = "image/webp"


def preview_filename(image_id: str) -> str:
    """Name under which the preview of an original is uploaded."""
    return f"preview-{image_id}.webp"


def render_preview(image_data: bytes, width: int = PREVIEW_WIDTH, quality: int = PREVIEW_QUALITY) -> bytes:
    """
    Resize an image to a fixed width and encode it as lossy WebP.

    Args:
        image_data: Original image bytes
        width: Target width in pixels; height keeps the aspect ratio
        quality: WebP quality (1-100)

    Returns:
        WebP bytes

    Raises:
        EncodeError: if the image cannot be decoded or encoded
    """
    try:
        img = Image.open(io.BytesIO(image_data))
        img = ImageOps.exif_transpose(img)

        # Scale 16/32-bit samples down to 8 bits instead of clipping them
        if img.mode in ("I;16", "I;16B", "I;16L", "I;16N", "I"):
            img = img.convert("I").point(lambda v: v / 256).convert("L")

        # WebP handles RGB and RGBA only
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            img = img.convert("RGBA")
        elif img.mode != "RGB":
            img = img.convert("RGB")

        src_width, src_height = img.size
        height = max(1, round(src_height * width / src_width))
        if (src_width, src_height) != (width, height):
            img = img.resize((width, height), Image.Resampling.LANCZOS)

        buf = io.BytesIO()
        img.save(buf, format="WEBP", quality=quality)
        return buf.getvalue()
    except Exception as e:
        raise EncodeError(f"Could not render preview: {e}") from e
