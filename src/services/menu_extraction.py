"""Menu extraction: turn a menu photo or menu text into MenuItem records.

Pipeline for one request:
1. Resolve the input into a MenuSource (ProcessMenuRequest.to_source()).
2. For image sources, obtain the bytes (decode base64, read the local file, or
   fetch the URL), check format and size, then normalize the dimensions.
3. Ask the extraction model for ``{"menuItems": [...]}``.
4. Clean the returned entries into MenuItem objects.

Single attempt, no retries. An empty list is a valid result (e.g. the photo
was not a menu); deciding what to do with it is the caller's job.
"""

import asyncio
import base64
import binascii
import re
from pathlib import Path
from typing import Any, Optional

import aiohttp
import filetype

from src.models.models import (
    ImageBase64Source,
    ImageUrlSource,
    LocalFileSource,
    MenuItem,
    MenuSource,
    MenuTextSource,
    ProcessMenuRequest,
)
from src.prompts.prompts import (
    EXTRACTION_IMAGE_PROMPT,
    build_extraction_text_prompt,
    get_extraction_instructions,
)
from src.services.image_normalizer import get_image_normalizer
from src.services.llm import ModelContent, generate_model_text, image_part
from src.services.sanitizer import parse_model_json
from src.utils.config import config
from src.utils.errors import UpstreamError, ValidationError
from src.utils.logger import logger

OPERATION = "menu extraction"

# filetype extension -> MIME type accepted by the extraction model
SUPPORTED_IMAGE_TYPES = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "heic": "image/heic",
}

_DATA_URL_RE = re.compile(r"^data:[^,]*;base64,", re.IGNORECASE)
_PRICE_RE = re.compile(r"-?\d+(?:\.\d+)?")

_normalizer = get_image_normalizer()


# ============================================================================
# Image input helpers
# ============================================================================


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 image, with or without a ``data:image/...;base64,`` prefix.

    Raises:
        ValidationError: If the payload is not valid base64.
    """
    payload = _DATA_URL_RE.sub("", data.strip(), count=1)
    payload = "".join(payload.split())
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("imageBase64 is not valid base64", details=str(e)) from e
    if not decoded:
        raise ValidationError("imageBase64 is empty")
    return decoded


def detect_image_mime(image_bytes: bytes) -> str:
    """Detect the MIME type from magic bytes.

    Raises:
        ValidationError: If the bytes are not a supported image format.
    """
    kind = filetype.guess(image_bytes)
    if kind is None or kind.extension not in SUPPORTED_IMAGE_TYPES:
        detected = kind.mime if kind else "unknown"
        logger.warning(f"Rejected image with unsupported format: {detected}")
        raise ValidationError(
            "Unsupported image format. Use JPEG, PNG, WEBP or HEIC.",
            details=f"detected: {detected}",
        )
    return SUPPORTED_IMAGE_TYPES[kind.extension]


def validate_image_size(image_bytes: bytes) -> None:
    """Reject images larger than MAX_IMAGE_SIZE_MB.

    Raises:
        ValidationError: If the image is too large.
    """
    max_bytes = config.MAX_IMAGE_SIZE_MB * 1024 * 1024
    size = len(image_bytes)
    if size > max_bytes:
        logger.warning(f"Rejected image of {size / 1024 / 1024:.1f}MB (limit {config.MAX_IMAGE_SIZE_MB}MB)")
        raise ValidationError(f"Image too large. Maximum size is {config.MAX_IMAGE_SIZE_MB}MB")


def resolve_local_path(path: str) -> Path:
    """Map a public path such as ``/uploads/menu.jpg`` to a file under STATIC_DIR.

    Raises:
        ValidationError: If local paths are disabled, the path escapes
            STATIC_DIR, or the file does not exist.
    """
    if not config.ALLOW_LOCAL_FILE_PATHS:
        raise ValidationError("localFilePath is disabled on this server")

    static_root = Path(config.STATIC_DIR).resolve()
    candidate = (static_root / path.lstrip("/\\")).resolve()
    if not candidate.is_relative_to(static_root):
        logger.warning(f"Rejected localFilePath outside static root: {path}")
        raise ValidationError("localFilePath must point inside the static directory")
    if not candidate.is_file():
        raise ValidationError(f"File not found: {path}")
    return candidate


async def read_local_image(path: str) -> bytes:
    """Read a previously uploaded file off the event loop."""
    resolved = resolve_local_path(path)
    return await asyncio.to_thread(resolved.read_bytes)


async def fetch_image_url(url: str) -> bytes:
    """Download an image for inline submission to the model.

    Raises:
        UpstreamError: On network errors, non-2xx responses, or timeouts.
    """
    timeout = aiohttp.ClientTimeout(total=config.IMAGE_FETCH_TIMEOUT_SECONDS)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Failed to fetch menu image from {url}: {e}")
        raise UpstreamError("Failed to fetch image from imageUrl", details=str(e)) from e


async def load_image_bytes(source: MenuSource) -> bytes:
    """Obtain raw image bytes for an image source variant."""
    if isinstance(source, ImageBase64Source):
        return decode_base64_image(source.data)
    if isinstance(source, LocalFileSource):
        return await read_local_image(source.path)
    if isinstance(source, ImageUrlSource):
        return await fetch_image_url(source.url)
    raise TypeError(f"Not an image source: {type(source).__name__}")


def prepare_image(image_bytes: bytes) -> tuple[bytes, str]:
    """Validate then normalize an image. Returns (bytes, mime_type) to send to the model."""
    detect_image_mime(image_bytes)
    validate_image_size(image_bytes)
    normalized = _normalizer.normalize(image_bytes)
    # Re-encoding may change the container (e.g. to JPEG)
    return normalized, detect_image_mime(normalized)


# ============================================================================
# Response cleaning
# ============================================================================


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def coerce_price(value: Any) -> Optional[float]:
    """Coerce a model-supplied price to a non-negative float, or None.

    Accepts numbers and numeric strings with currency decoration ("$12.50", "12").

    Example:
        >>> coerce_price("$12.50")
        12.5
        >>> coerce_price("market price") is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        price = float(value)
    elif isinstance(value, str):
        match = _PRICE_RE.search(value.replace(" ", "").replace(",", ""))
        if not match:
            return None
        price = float(match.group(0))
    else:
        return None
    if price < 0 or price != price or price == float("inf"):
        return None
    return price


def clean_menu_items(raw_items: list[Any]) -> list[MenuItem]:
    """Convert raw model entries into MenuItems, dropping entries without a usable name."""
    items = []
    dropped = 0
    for raw in raw_items:
        if not isinstance(raw, dict):
            dropped += 1
            continue
        name = _clean_text(raw.get("name"))
        if not name:
            dropped += 1
            continue
        items.append(
            MenuItem(
                name=name[:300],
                description=_clean_text(raw.get("description")),
                course=_clean_text(raw.get("course")),
                price=coerce_price(raw.get("price")),
            )
        )
    if dropped:
        logger.warning(f"{OPERATION}: dropped {dropped} malformed menu item(s)")
    return items


def parse_menu_items(text: str) -> list[MenuItem]:
    """Parse the extraction model's response.

    Raises:
        UpstreamError: If the text is not JSON or lacks a ``menuItems`` list.
    """
    data = parse_model_json(text, OPERATION)
    if not isinstance(data, dict) or not isinstance(data.get("menuItems"), list):
        logger.error(f"{OPERATION}: unexpected response shape: {str(data)[:200]!r}")
        raise UpstreamError(
            f"Model returned an invalid response for {OPERATION}",
            details='expected an object with a "menuItems" list',
        )
    return clean_menu_items(data["menuItems"])


# ============================================================================
# Entry points
# ============================================================================


async def prepare_inline_image(source: MenuSource) -> Optional[tuple[bytes, str]]:
    """Decode, validate and normalize an image the caller supplied directly.

    Covers imageBase64 and localFilePath, whose failures are the caller's
    fault and need no outbound call. Returns None for text and imageUrl
    sources; remote images are fetched by extract_menu().

    Raises:
        ValidationError: Invalid base64, unsupported format, oversized image, or bad local path.
    """
    if not isinstance(source, (ImageBase64Source, LocalFileSource)):
        return None
    raw = await load_image_bytes(source)
    return await asyncio.to_thread(prepare_image, raw)


async def extract_menu(
    source: MenuSource,
    dietary_context: str = "",
    image: Optional[tuple[bytes, str]] = None,
) -> list[MenuItem]:
    """Extract menu items from one menu source.

    Args:
        source: Resolved menu input.
        dietary_context: Formatted dietary block appended to the system instruction.
        image: Output of prepare_inline_image() when already computed for this source.

    Returns:
        Cleaned menu items in menu order. May be empty.

    Raises:
        ValidationError: Invalid image data, unsupported format, or bad local path.
        UpstreamError: Image fetch failure, model failure, or unusable model output.
    """
    contents: list[ModelContent]
    if isinstance(source, MenuTextSource):
        logger.info(f"{OPERATION}: text menu ({len(source.text)} chars)")
        contents = [build_extraction_text_prompt(source.text)]
    else:
        if image is None:
            raw = await load_image_bytes(source)
            image = await asyncio.to_thread(prepare_image, raw)
        image_bytes, mime_type = image
        logger.info(f"{OPERATION}: {source.kind} image ({mime_type}, {len(image_bytes) / 1024:.1f}KB)")
        contents = [image_part(image_bytes, mime_type), EXTRACTION_IMAGE_PROMPT]

    text = await generate_model_text(
        model=config.EXTRACTION_MODEL,
        system_instruction=get_extraction_instructions(dietary_context, config.EXTRACTION_PROMPT_FILE),
        contents=contents,
        operation=OPERATION,
    )
    items = parse_menu_items(text)
    logger.info(f"{OPERATION}: extracted {len(items)} item(s)")
    return items


async def extract(request: ProcessMenuRequest, dietary_context: str = "") -> list[MenuItem]:
    """Validate a processMenu request and extract its menu."""
    return await extract_menu(request.to_source(), dietary_context)
