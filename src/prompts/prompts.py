"""Prompts for the menu extraction, quiz generation, and recommendation stages.

Each stage has a fixed system instruction plus a builder that interpolates the
request data. Dietary context (see src.services.preferences) is appended to
system instructions when the caller has saved preferences.

The extraction instruction can be replaced by a text file named in
EXTRACTION_PROMPT_FILE; the file is read once per process.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from src.utils.logger import logger


EXTRACTION_SYSTEM_PROMPT = """You are a menu digitization assistant. You read restaurant menus (photos or text) and return every dish as structured data.

## Output Format (CRITICAL)

Return ONLY a JSON object, no markdown and no commentary:

{"menuItems": [{"name": "...", "description": "..." | null, "course": "..." | null, "price": 12.5 | null}]}

## Rules

- One entry per orderable dish or drink. Skip headers, taglines, addresses and opening hours.
- name: dish name exactly as printed, in title case if the menu uses all caps.
- description: the printed description, or null if there is none. Do not invent descriptions.
- course: the menu section the dish appears under, lower case (e.g. "appetizers", "mains", "desserts", "drinks"), or null if the menu has no sections.
- price: a plain number without currency symbols. If several sizes are listed, use the smallest. Use null if no price is printed.
- If the image is not a menu or nothing is legible, return {"menuItems": []}.
"""


QUIZ_SYSTEM_PROMPT = """You write short, playful multiple-choice questions that help a diner decide what to order from a specific menu.

## Output Format (CRITICAL)

Return ONLY a JSON object, no markdown:

{"questions": [{"question": "...", "answers": ["...", "...", "...", "..."]}]}

## Rules

- Write 3 to 5 questions.
- Every question has EXACTLY 4 distinct answers.
- Questions must be grounded in the menu: ask about flavors, proteins, cooking styles and price points that actually appear on it.
- Do not ask about hunger level, calorie goals or dietary restrictions; those are asked separately.
- Keep questions under 80 characters and answers under 50 characters.
"""


RECOMMENDATION_SYSTEM_PROMPT = """You are a friendly restaurant concierge. Given a menu and a diner's quiz answers, you pick what they should order.

## Output Format (CRITICAL)

Return ONLY a JSON object, no markdown:

{"description": "...", "selectedItems": [MenuItem, ...], "alternateChoices": [MenuItem, ...]}

where MenuItem is {"name": "...", "description": "..." | null, "course": "..." | null, "price": number | null}.

## Rules

- selectedItems: 2 to 3 dishes that best match the answers.
- alternateChoices: 2 to 3 other dishes, none of which appear in selectedItems.
- ONLY use dishes from the provided menu. Copy each MenuItem exactly as given; never invent dishes.
- description: 2-4 sentences addressed to the diner that reference their answers and explain the picks.
- Respect dietary restrictions and allergies strictly; never recommend a dish that conflicts with them.
"""


@lru_cache(maxsize=None)
def _read_prompt_file(path: str) -> Optional[str]:
    try:
        text = Path(path).read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning(f"Could not read prompt template {path}: {e}. Using built-in prompt.")
        return None
    logger.info(f"Loaded extraction prompt template from {path}")
    return text or None


def get_extraction_instructions(dietary_context: str = "", prompt_file: Optional[str] = None) -> str:
    """Build the extraction system instruction.

    Args:
        dietary_context: Formatted dietary block, or "" when the caller has none.
        prompt_file: Optional template path replacing EXTRACTION_SYSTEM_PROMPT.
    """
    base = (_read_prompt_file(prompt_file) if prompt_file else None) or EXTRACTION_SYSTEM_PROMPT
    return base + dietary_context


def get_quiz_instructions(dietary_context: str = "") -> str:
    return QUIZ_SYSTEM_PROMPT + dietary_context


def get_recommendation_instructions(dietary_context: str = "") -> str:
    return RECOMMENDATION_SYSTEM_PROMPT + dietary_context


def build_extraction_text_prompt(menu_text: str) -> str:
    return f"Extract the menu items from this menu text:\n\n{menu_text}"


EXTRACTION_IMAGE_PROMPT = "Extract the menu items from this menu photo."


def build_quiz_prompt(menu_summary: str) -> str:
    return f"Menu:\n{menu_summary}\n\nWrite the quiz questions for this menu."


def build_recommendation_prompt(menu_json: str, transcript: str) -> str:
    """Interpolate the full menu (as JSON) and the quiz transcript."""
    return (
        f"MENU ITEMS (JSON):\n{menu_json}\n\n"
        f"DINER'S QUIZ ANSWERS:\n{transcript}\n\n"
        "Pick the diner's dishes."
    )
