"""Recommendation: pick dishes from an extracted menu given the quiz transcript.

In "ai" mode the model chooses; its answer is validated into a Recommendation
and then checked against the input menu. The check only logs: items the model
invented, overlap between selected and alternate picks, and list sizes outside
2-3 are reported as warnings and the recommendation is returned as-is.

In "keyword" mode the offline keyword matcher ranks the menu instead.
"""

import json
from typing import Sequence

from pydantic import ValidationError as PydanticValidationError

from src.models.models import MenuItem, Recommendation
from src.prompts.prompts import build_recommendation_prompt, get_recommendation_instructions
from src.services.keyword_matcher import keyword_recommend
from src.services.llm import generate_model_text
from src.services.sanitizer import parse_model_json
from src.utils.config import config
from src.utils.errors import UpstreamError, ValidationError
from src.utils.logger import logger

OPERATION = "recommendation"

EXPECTED_PICKS = (2, 3)


def _name_key(name: str) -> str:
    return " ".join(name.split()).casefold()


def check_recommendation(recommendation: Recommendation, menu_items: Sequence[MenuItem]) -> list[str]:
    """Compare a recommendation against the menu it was drawn from.

    Returns:
        Warning messages (also logged). Empty when the recommendation is consistent.
    """
    menu_names = {_name_key(item.name) for item in menu_items}
    warnings = []

    for label, picks in (("selectedItems", recommendation.selected_items), ("alternateChoices", recommendation.alternate_choices)):
        unknown = [item.name for item in picks if _name_key(item.name) not in menu_names]
        if unknown:
            warnings.append(f"{label} contains items not on the menu: {', '.join(unknown)}")
        if not EXPECTED_PICKS[0] <= len(picks) <= EXPECTED_PICKS[1]:
            warnings.append(f"{label} has {len(picks)} item(s), expected {EXPECTED_PICKS[0]}-{EXPECTED_PICKS[1]}")

    selected = {_name_key(item.name) for item in recommendation.selected_items}
    overlap = [item.name for item in recommendation.alternate_choices if _name_key(item.name) in selected]
    if overlap:
        warnings.append(f"alternateChoices repeats selected items: {', '.join(overlap)}")

    for message in warnings:
        logger.warning(f"{OPERATION}: {message}")
    return warnings


def parse_recommendation(text: str) -> Recommendation:
    """Parse and validate the model's recommendation.

    Raises:
        UpstreamError: If the text is not JSON or does not match Recommendation.
    """
    data = parse_model_json(text, OPERATION)
    try:
        return Recommendation.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"{OPERATION}: response failed validation: {e}")
        raise UpstreamError(f"Model returned an invalid response for {OPERATION}", details=str(e)) from e


async def recommend(
    menu_items: Sequence[MenuItem],
    transcript: str,
    dietary_context: str = "",
) -> Recommendation:
    """Recommend dishes for a diner.

    Args:
        menu_items: The extracted menu. Must be non-empty.
        transcript: Quiz answers as built by build_transcript().
        dietary_context: Formatted dietary block appended to the system instruction.

    Raises:
        ValidationError: If the menu is empty or the transcript is blank.
        UpstreamError: On model failure or an unusable response (ai mode only).
    """
    if not menu_items:
        raise ValidationError("menuItems must contain at least one item")
    if not transcript or not transcript.strip():
        raise ValidationError("questionsAndAnswers is required")

    if config.RECOMMENDATION_MODE == "keyword":
        return keyword_recommend(menu_items, transcript)

    menu_json = json.dumps([item.model_dump(by_alias=True) for item in menu_items], ensure_ascii=False, indent=2)
    text = await generate_model_text(
        model=config.GEMINI_MODEL,
        system_instruction=get_recommendation_instructions(dietary_context),
        contents=[build_recommendation_prompt(menu_json, transcript.strip())],
        operation=OPERATION,
    )
    recommendation = parse_recommendation(text)
    check_recommendation(recommendation, menu_items)
    logger.info(
        f"{OPERATION}: {len(recommendation.selected_items)} selected, "
        f"{len(recommendation.alternate_choices)} alternate(s)"
    )
    return recommendation
