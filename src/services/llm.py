"""Single-attempt Gemini calls for the menu pipeline.

All three model-backed stages (extraction, quiz, recommendation) go through
generate_model_text(). One call per invocation, bounded by
MODEL_TIMEOUT_SECONDS, no automatic retries: a failed attempt surfaces as
UpstreamError and retrying is the caller's decision.
"""

import asyncio
from typing import Optional, Sequence, Union

from google import genai
from google.genai import types

from src.utils.config import config
from src.utils.errors import UpstreamError
from src.utils.logger import logger

ModelContent = Union[str, types.Part]


def image_part(image_bytes: bytes, mime_type: str) -> types.Part:
    """Wrap image bytes as inline content for a multimodal request."""
    return types.Part.from_bytes(data=image_bytes, mime_type=mime_type)


async def generate_model_text(
    *,
    model: str,
    system_instruction: str,
    contents: Sequence[ModelContent],
    operation: str,
    timeout: Optional[float] = None,
) -> str:
    """Call Gemini once and return the raw response text.

    The request asks for ``application/json`` output, but callers must still
    sanitize the text before parsing.

    Args:
        model: Gemini model id.
        system_instruction: Fixed instruction, optionally augmented with dietary context.
        contents: Text and/or image parts.
        operation: Pipeline stage name for logs and error messages.
        timeout: Seconds before the call is abandoned. Defaults to MODEL_TIMEOUT_SECONDS.

    Returns:
        Non-empty response text.

    Raises:
        UpstreamError: On API errors, timeouts, or empty responses.
    """
    timeout = timeout or config.MODEL_TIMEOUT_SECONDS
    client = genai.Client(api_key=config.GEMINI_API_KEY)
    generation_config = types.GenerateContentConfig(
        system_instruction=system_instruction,
        response_mime_type="application/json",
        temperature=config.TEMPERATURE,
        max_output_tokens=config.MAX_OUTPUT_TOKENS,
    )

    logger.info(f"{operation}: calling {model} ({len(contents)} content part(s), timeout {timeout:.0f}s)")
    try:
        # The sync client runs in a worker thread; wait_for bounds how long the request waits on it
        response = await asyncio.wait_for(
            asyncio.to_thread(
                client.models.generate_content,
                model=model,
                contents=list(contents),
                config=generation_config,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        logger.error(f"{operation}: model call timed out after {timeout:.0f}s")
        raise UpstreamError(f"Model request timed out during {operation}", details=f"timeout after {timeout}s") from e
    except Exception as e:
        logger.error(f"{operation}: model call failed: {e}")
        raise UpstreamError(f"Model request failed during {operation}", details=str(e)) from e

    text = getattr(response, "text", None)
    if not text or not text.strip():
        logger.error(f"{operation}: model returned no content")
        raise UpstreamError(f"Model returned no content during {operation}")

    return text
