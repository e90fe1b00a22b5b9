"""Sanitization and parsing of language-model JSON output.

Gemini is asked for bare JSON but may still wrap it in a fenced code block.
Every model response goes through ``parse_model_json`` before use: strip the
fence, parse, and turn any failure into an UpstreamError. No repair is
attempted beyond fence stripping.
"""

import json
import re
from typing import Any

from src.utils.errors import UpstreamError
from src.utils.logger import logger

# ```json\n{...}\n```  (tag optional, closing fence optional on truncated output)
_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?(?P<body>.*?)\n?[ \t]*(?:```)?$", re.DOTALL)

RAW_LOG_LIMIT = 500


def strip_code_fences(text: str) -> str:
    """Return the JSON payload inside a fenced code block, or the trimmed input.

    Idempotent on already-clean input.

    Example:
        >>> strip_code_fences('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    stripped = (text or "").strip()
    if not stripped.startswith("```"):
        return stripped
    match = _FENCE_RE.match(stripped)
    if not match:
        return stripped
    return match.group("body").strip()


def parse_model_json(text: str, operation: str) -> Any:
    """Sanitize and parse a model response as JSON.

    Args:
        text: Raw model output.
        operation: Pipeline stage name for logs (e.g. "menu extraction").

    Returns:
        The decoded JSON value.

    Raises:
        UpstreamError: If the sanitized text is not valid JSON. The raw text is
            logged (truncated) but never included in the error message.
    """
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(
            f"{operation}: model returned unparseable JSON ({e}). "
            f"Raw output: {(text or '')[:RAW_LOG_LIMIT]!r}"
        )
        raise UpstreamError(f"Failed to parse model response for {operation}", details=str(e)) from e
