import io
import logging
import time
from enum import Enum
from typing import Optional, Tuple

from PIL import Image

from .models import SourceImage

logger = logging.getLogger(__name__)

# Every successful restoration is delivered as PNG
CANONICAL_FORMAT = "PNG"
CANONICAL_MIME_TYPE = "image/png"

EXPORT_QUALITY = 90
OPAQUE_BACKGROUND = (255, 255, 255)


class ExportFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def pil_format(self) -> str:
        return self.value.upper()


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )


def normalize_to_png(data: bytes) -> bytes:
    """
    Re-encode arbitrary image bytes as PNG.

    Raises:
        UnidentifiedImageError, OSError: when ``data`` is not a decodable image
    """
    img = _open(data)
    buffer = io.BytesIO()
    img.save(buffer, format=CANONICAL_FORMAT)
    return buffer.getvalue()


def flatten(img: Image.Image, background: Tuple[int, int, int] = OPAQUE_BACKGROUND) -> Image.Image:
    """Composite onto an opaque background so alpha does not turn black."""
    if not _has_alpha(img):
        return img.convert("RGB")

    rgba = img.convert("RGBA")
    backing = Image.new("RGB", rgba.size, background)
    backing.paste(rgba, mask=rgba.getchannel("A"))
    return backing


def export_image(
    image: SourceImage,
    fmt: ExportFormat,
    quality: int = EXPORT_QUALITY,
    background: Tuple[int, int, int] = OPAQUE_BACKGROUND,
) -> SourceImage:
    """Encode ``image`` into one of the downloadable formats."""
    fmt = ExportFormat(fmt)
    img = _open(image.data)

    buffer = io.BytesIO()
    if fmt is ExportFormat.JPEG:
        flatten(img, background).save(buffer, format=fmt.pil_format, quality=quality)
    elif fmt is ExportFormat.WEBP:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        img.save(buffer, format=fmt.pil_format, quality=quality)
    else:
        img.save(buffer, format=fmt.pil_format)

    logger.debug("Exported %s as %s (%d bytes)", image.mime_type, fmt.value, buffer.tell())
    return SourceImage(data=buffer.getvalue(), mime_type=fmt.mime_type)


def export_filename(fmt: ExportFormat, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"restored-image-{timestamp_ms}.{ExportFormat(fmt).value}"

