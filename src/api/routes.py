"""HTTP routes for the menu pipeline.

Order of checks on every model-backed route: request body validation, then
the per-client rate limit, then the outbound call. A request rejected by
validation never consumes rate-limit budget.

Identity: the ``X-User-Id`` header carries the caller's id as established by
the identity provider in front of this service. Routes that can use dietary
preferences look them up when the header is present.
"""

import asyncio
import re
import time
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Header, Request, UploadFile

from src.models.models import (
    GenerateQuizRequest,
    MenuItem,
    PreferencesResponse,
    ProcessMenuRequest,
    QuizQuestion,
    Recommendation,
    SavePreferencesRequest,
    SavePreferencesResponse,
    SuggestMenuRequest,
    UploadResponse,
)
from src.services.menu_extraction import extract_menu, prepare_inline_image
from src.services.preferences import (
    UserMetadataStore,
    format_preferences_for_prompt,
    get_dietary_preferences,
    save_preferences,
)
from src.services.quiz import generate_quiz, get_static_questions
from src.services.rate_limit import RateLimitResult, SlidingWindowRateLimiter, get_client_ip
from src.services.recommendation import recommend
from src.utils.config import config
from src.utils.errors import RateLimitExceeded, StorageError, UnauthorizedError, ValidationError
from src.utils.logger import logger

router = APIRouter(prefix="/api")

_WHITESPACE_RE = re.compile(r"\s+")


# ============================================================================
# Dependencies
# ============================================================================


def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> Optional[str]:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def require_user_id(user_id: Optional[str] = Depends(get_user_id)) -> str:
    """Resolved before body fields are validated, so a mis-shaped anonymous request gets 401."""
    if not user_id:
        raise UnauthorizedError()
    return user_id


def get_metadata_store(request: Request) -> UserMetadataStore:
    return request.app.state.metadata_store


async def enforce_rate_limit(request: Request, limiter: SlidingWindowRateLimiter) -> RateLimitResult:
    """Admit the request or raise RateLimitExceeded (mapped to HTTP 429)."""
    result = await limiter.check(get_client_ip(request))
    if not result.allowed:
        raise RateLimitExceeded(result)
    return result


async def dietary_context_for(user_id: Optional[str], store: UserMetadataStore) -> str:
    preferences = await get_dietary_preferences(user_id, store)
    return format_preferences_for_prompt(preferences)


# ============================================================================
# Model-backed routes
# ============================================================================


@router.post("/processMenu", response_model=List[MenuItem])
async def process_menu(
    body: ProcessMenuRequest,
    request: Request,
    user_id: Optional[str] = Depends(get_user_id),
    store: UserMetadataStore = Depends(get_metadata_store),
) -> List[MenuItem]:
    """Extract menu items from a photo (base64, URL or uploaded file) or menu text."""
    source = body.to_source()
    # Inline images are decoded and checked before they can cost rate-limit budget
    image = await prepare_inline_image(source)
    await enforce_rate_limit(request, request.app.state.model_limiter)
    client_ip = get_client_ip(request)
    logger.info(f"processMenu: {source.kind} input from {client_ip}", extra={"client_ip": client_ip, "user_id": user_id})
    return await extract_menu(source, await dietary_context_for(user_id, store), image=image)


@router.post("/generateQuiz", response_model=List[QuizQuestion])
async def generate_quiz_route(
    body: GenerateQuizRequest,
    request: Request,
    user_id: Optional[str] = Depends(get_user_id),
    store: UserMetadataStore = Depends(get_metadata_store),
) -> List[QuizQuestion]:
    """Standard questions followed by questions generated for this menu."""
    if not body.menu:
        raise ValidationError("menu is required")
    await enforce_rate_limit(request, request.app.state.model_limiter)
    return await generate_quiz(body.menu, await dietary_context_for(user_id, store))


@router.post("/suggestMenuItem", response_model=Recommendation)
async def suggest_menu_item(
    body: SuggestMenuRequest,
    request: Request,
    user_id: Optional[str] = Depends(get_user_id),
    store: UserMetadataStore = Depends(get_metadata_store),
) -> Recommendation:
    """Recommend dishes from the extracted menu given the quiz transcript."""
    if not body.menu_items:
        raise ValidationError("menuItems must contain at least one item")
    if not body.questions_and_answers:
        raise ValidationError("questionsAndAnswers is required")
    await enforce_rate_limit(request, request.app.state.model_limiter)
    return await recommend(body.menu_items, body.questions_and_answers, await dietary_context_for(user_id, store))


# ============================================================================
# Static questions and uploads
# ============================================================================


@router.get("/questions", response_model=List[QuizQuestion])
async def list_questions() -> List[QuizQuestion]:
    return get_static_questions()


def upload_filename(original_name: Optional[str], now_ms: Optional[int] = None) -> str:
    """``<epoch-ms>-<basename>`` with whitespace runs replaced by '-'.

    Example:
        >>> upload_filename("my menu.jpg", now_ms=1700000000000)
        '1700000000000-my-menu.jpg'
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    # Path(...).name drops any client-supplied directories
    basename = Path((original_name or "").replace("\\", "/")).name or "upload"
    return f"{now_ms}-{_WHITESPACE_RE.sub('-', basename)}"


def _write_upload(directory: Path, filename: str, data: bytes) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_bytes(data)


@router.post("/upload", response_model=UploadResponse)
async def upload(request: Request, file: Optional[UploadFile] = File(None)) -> UploadResponse:
    """Store a menu photo under UPLOAD_DIR and return its public URL."""
    if file is None:
        raise ValidationError("No file provided")
    await enforce_rate_limit(request, request.app.state.general_limiter)

    data = await file.read()
    filename = upload_filename(file.filename)
    logger.info(
        f"upload: {file.filename!r} ({file.content_type}, {len(data) / 1024:.2f} KB) -> {filename}",
        extra={"client_ip": get_client_ip(request)},
    )

    try:
        await asyncio.to_thread(_write_upload, Path(config.UPLOAD_DIR), filename, data)
    except OSError as e:
        logger.error(f"upload: failed to write {filename}: {e}")
        raise StorageError("Upload failed", details=str(e)) from e

    return UploadResponse(url=f"/uploads/{filename}", filename=filename)


# ============================================================================
# Dietary preferences
# ============================================================================


@router.post("/savePreferences", response_model=SavePreferencesResponse)
async def save_preferences_route(
    body: SavePreferencesRequest,
    user_id: str = Depends(require_user_id),
    store: UserMetadataStore = Depends(get_metadata_store),
) -> SavePreferencesResponse:
    preferences = await save_preferences(user_id, body, store)
    return SavePreferencesResponse(preferences=preferences)


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences_route(
    user_id: str = Depends(require_user_id),
    store: UserMetadataStore = Depends(get_metadata_store),
) -> PreferencesResponse:
    """The caller's saved preferences, or ``{"preferences": null}`` before onboarding."""
    return PreferencesResponse(preferences=await get_dietary_preferences(user_id, store))
