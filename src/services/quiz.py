"""Quiz generation: preference questions tailored to an extracted menu.

A quiz is the fixed STANDARD_QUESTIONS prefix (hunger, dietary restrictions,
calorie preference) followed by the model's menu-specific questions. Model
questions that do not have exactly four distinct answers are dropped, so a
degenerate model response still yields a usable quiz.
"""

from typing import Any, Sequence

from pydantic import ValidationError as PydanticValidationError

from src.models.models import MenuItem, QuizQuestion
from src.prompts.prompts import build_quiz_prompt, get_quiz_instructions
from src.services.llm import generate_model_text
from src.services.sanitizer import parse_model_json
from src.utils.config import config
from src.utils.errors import UpstreamError, ValidationError
from src.utils.logger import logger

OPERATION = "quiz generation"

AI_ANSWER_COUNT = 4


STANDARD_QUESTIONS: tuple[QuizQuestion, ...] = (
    QuizQuestion(
        question="How hungry are you?",
        answers=[
            "Girl dinner. Just vibes and crumbs.",
            "Appetizer energy only.",
            "Regular human hungry.",
            "I could eat a cow.",
        ],
    ),
    QuizQuestion(
        question="Do you have any dietary restrictions?",
        answers=[
            "Vegetarian",
            "Vegan",
            "Gluten-free (celiac disease)",
            "Lactose intolerant",
            "Kosher",
            "Halal",
            "Low sodium",
            "Diabetic-friendly/Low sugar",
        ],
        allow_multiple=True,
    ),
    QuizQuestion(
        question="Calorie Preference",
        answers=[
            "Caloric deficit — gotta watch my carbs.",
            "Caloric maintenance — I’ll have what they’re having.",
            "Caloric surplus — I’m not watching my waist.",
            "No clue, just feed me good food.",
        ],
    ),
)

# Menu-independent questions served when the model is unavailable
_STATIC_MOOD_QUESTIONS: tuple[QuizQuestion, ...] = (
    QuizQuestion(
        question="What flavor mood is ruling your stomach today?",
        answers=["Fiery and adventurous", "Cheesy and comforting", "Crisp and salty", "Herbaceous and light"],
    ),
    QuizQuestion(
        question="What texture are you daydreaming about?",
        answers=["Crunchy and shareable", "Tender and melt-in-your-mouth", "Bubbly and creamy", "Crispy and golden"],
    ),
    QuizQuestion(
        question="Pick the vibe your plate should bring",
        answers=["Casual party-friendly", "Romantic upscale", "Nostalgic homey", "Bold and indulgent"],
    ),
    QuizQuestion(
        question="Pick the after-meal vibe you’re hunting",
        answers=["Cozy and satisfied", "Energized and ready to chat", "A little tipsy and merry", "Light and refreshed"],
    ),
)


def get_static_questions() -> list[QuizQuestion]:
    """The fixed question list: standard prefix plus flavor, texture and vibe questions."""
    return [q.model_copy(deep=True) for q in (*STANDARD_QUESTIONS, *_STATIC_MOOD_QUESTIONS)]


def summarize_menu(items: Sequence[MenuItem]) -> str:
    """One-line menu summary used as quiz input.

    Example:
        >>> summarize_menu([MenuItem(name="Caesar Salad", price=12)])
        'Caesar Salad ($12.00)'
    """
    parts = []
    for item in items:
        if item.price is not None:
            parts.append(f"{item.name} (${item.price:.2f})")
        else:
            parts.append(item.name)
    return ", ".join(parts)


def _to_quiz_question(raw: Any) -> QuizQuestion | None:
    """Validate one model-proposed question, or return None to drop it."""
    if not isinstance(raw, dict):
        return None
    answers = raw.get("answers")
    if not isinstance(answers, list) or len(answers) != AI_ANSWER_COUNT:
        return None
    if not all(isinstance(answer, str) for answer in answers):
        return None
    allow_multiple = raw.get("allowMultiple")
    if allow_multiple is not None and not isinstance(allow_multiple, bool):
        return None
    try:
        return QuizQuestion(question=raw.get("question"), answers=answers, allow_multiple=allow_multiple)
    except PydanticValidationError:
        return None


def parse_quiz_questions(text: str) -> list[QuizQuestion]:
    """Parse and filter the quiz model's response.

    Raises:
        UpstreamError: If the text is not JSON or lacks a ``questions`` list.
    """
    data = parse_model_json(text, OPERATION)
    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        logger.error(f"{OPERATION}: unexpected response shape: {str(data)[:200]!r}")
        raise UpstreamError(
            f"Model returned an invalid response for {OPERATION}",
            details='expected an object with a "questions" list',
        )

    candidates = data["questions"]
    questions = [q for q in map(_to_quiz_question, candidates) if q is not None]
    if len(questions) < len(candidates):
        logger.warning(f"{OPERATION}: dropped {len(candidates) - len(questions)} of {len(candidates)} question(s)")
    return questions


async def generate_quiz_questions(menu_summary: str, dietary_context: str = "") -> list[QuizQuestion]:
    """Ask the model for menu-specific questions.

    Args:
        menu_summary: Output of summarize_menu() or equivalent free text.
        dietary_context: Formatted dietary block appended to the system instruction.

    Returns:
        Filtered questions, possibly empty.

    Raises:
        ValidationError: If the summary is blank.
        UpstreamError: On model failure or an unusable response.
    """
    if not menu_summary or not menu_summary.strip():
        raise ValidationError("Menu summary is required")

    text = await generate_model_text(
        model=config.GEMINI_MODEL,
        system_instruction=get_quiz_instructions(dietary_context),
        contents=[build_quiz_prompt(menu_summary.strip())],
        operation=OPERATION,
    )
    questions = parse_quiz_questions(text)
    logger.info(f"{OPERATION}: {len(questions)} menu-specific question(s)")
    return questions


async def generate_quiz(menu_summary: str, dietary_context: str = "") -> list[QuizQuestion]:
    """Full quiz: STANDARD_QUESTIONS followed by the model's questions."""
    questions = await generate_quiz_questions(menu_summary, dietary_context)
    return [q.model_copy(deep=True) for q in STANDARD_QUESTIONS] + questions
