"""Best-effort downsampling of menu photos before extraction.

Phone photos of menus are routinely 3000-4000 px on a side; the extraction
model reads them just as well at 700 px and the request is far smaller.

Normalization never fails the pipeline: if Pillow is missing, the image cannot
be decoded, or re-encoding fails, the original bytes are returned and a warning
is logged. The implementation is chosen once via get_image_normalizer(), not at
call sites.
"""

from io import BytesIO
from typing import Callable, Optional, Protocol, TypeVar

from src.utils.config import config
from src.utils.logger import logger

# Try to import PIL for image resizing
try:
    from PIL import Image, ImageOps

    HAS_PIL = True
except ImportError:
    HAS_PIL = False


T = TypeVar("T")

# Formats Pillow can write back without changing the file type
_REENCODABLE_FORMATS = {"JPEG", "PNG", "WEBP", "GIF"}


def safe_execute_sync(
    func: Callable[[], T],
    operation_name: str,
    log_level: str = "warning",
    default_return: Optional[T] = None,
) -> Optional[T]:
    """Run func, logging and returning default_return on any exception.

    Only for optional operations that should degrade gracefully.
    """
    try:
        return func()
    except Exception as e:
        msg = f"{operation_name}: {e}"
        if log_level == "debug":
            logger.debug(msg)
        elif log_level == "error":
            logger.error(msg)
        else:
            logger.warning(msg)
        return default_return


class ImageNormalizer(Protocol):
    def normalize(self, image_bytes: bytes) -> bytes:
        ...


class NoOpImageNormalizer:
    """Returns images unchanged. Used when Pillow is unavailable or normalization is disabled."""

    def normalize(self, image_bytes: bytes) -> bytes:
        return image_bytes


class PillowImageNormalizer:
    """Shrink images so the largest side is at most max_dimension pixels.

    Aspect ratio is preserved, images are never upscaled, and images already
    within the cap are returned byte-for-byte unchanged.
    """

    def __init__(self, max_dimension: int = 700) -> None:
        self.max_dimension = max_dimension

    def target_size(self, width: int, height: int) -> tuple[int, int]:
        """Compute the resized (width, height); the larger side becomes exactly max_dimension."""
        if width >= height:
            return self.max_dimension, max(1, round(height * self.max_dimension / width))
        return max(1, round(width * self.max_dimension / height)), self.max_dimension

    def normalize(self, image_bytes: bytes) -> bytes:
        def _resize() -> bytes:
            img = Image.open(BytesIO(image_bytes))
            source_format = (img.format or "").upper()
            # Apply the EXIF Orientation tag to the pixels; re-encoding drops the tag
            img = ImageOps.exif_transpose(img)
            width, height = img.size
            if max(width, height) <= self.max_dimension:
                return image_bytes

            new_size = self.target_size(width, height)
            resized = img.resize(new_size, Image.Resampling.LANCZOS)

            output_format = source_format if source_format in _REENCODABLE_FORMATS else "JPEG"
            if output_format == "JPEG" and resized.mode not in ("RGB", "L"):
                resized = resized.convert("RGB")

            output = BytesIO()
            save_kwargs = {"quality": 85, "optimize": True} if output_format in ("JPEG", "WEBP") else {}
            resized.save(output, format=output_format, **save_kwargs)
            normalized = output.getvalue()

            logger.debug(
                f"Image normalized: {width}x{height} → {new_size[0]}x{new_size[1]} "
                f"({len(image_bytes) / 1024:.1f}KB → {len(normalized) / 1024:.1f}KB)"
            )
            return normalized

        return safe_execute_sync(_resize, "Image normalization", log_level="warning", default_return=image_bytes)


def get_image_normalizer() -> ImageNormalizer:
    """Select the normalizer implementation from configuration and installed packages."""
    if not config.NORMALIZE_IMAGES:
        logger.info("Image normalization disabled (NORMALIZE_IMAGES=false)")
        return NoOpImageNormalizer()
    if not HAS_PIL:
        logger.warning("Pillow not available, images will be sent without normalization")
        return NoOpImageNormalizer()
    return PillowImageNormalizer(max_dimension=config.MAX_IMAGE_DIMENSION)
