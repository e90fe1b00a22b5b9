"""Offline recommender that ranks menu items by keyword overlap with quiz answers.

Used instead of the model when RECOMMENDATION_MODE=keyword (demos, tests,
quota outages). Scoring per item, for every answer keyword:

- +2 for each keyword token (3+ letters, not a stopword) found among the
  item's name, description and course tokens
- +1 if the whole keyword phrase appears in that text

Items are ranked by score (ties keep menu order). Unmatched items follow the
matched ones, so with no matches at all the ranking is the menu order and the
first dishes are offered as popular picks.
"""

import re
from dataclasses import dataclass, field
from typing import Sequence

from src.models.models import MenuItem, Recommendation
from src.services.transcript import transcript_answers
from src.utils.logger import logger

MAX_SELECTED = 3
MAX_ALTERNATES = 3

_TOKEN_RE = re.compile(r"[a-z]+")

STOPWORDS = frozenset(
    {
        "and", "the", "for", "with", "just", "only", "all", "any", "but", "not",
        "you", "your", "are", "have", "what", "they", "that", "this", "from",
        "food", "good", "feed", "like", "very", "little", "ready", "clue",
        "regular", "human", "energy", "gotta", "watch", "waist", "none",
    }
)


@dataclass
class ScoredItem:
    item: MenuItem
    position: int
    score: int = 0
    matched: list[str] = field(default_factory=list)


def extract_keywords(transcript: str) -> list[str]:
    """Lower-cased answer phrases from a transcript, comma-split, without "none" and duplicates."""
    keywords: list[str] = []
    for answer in transcript_answers(transcript):
        for phrase in answer.split(","):
            phrase = phrase.strip().lower()
            if phrase and phrase != "none" and phrase not in keywords:
                keywords.append(phrase)
    return keywords


def keyword_tokens(phrase: str) -> list[str]:
    return [t for t in _TOKEN_RE.findall(phrase.lower()) if len(t) >= 3 and t not in STOPWORDS]


def score_item(item: MenuItem, keywords: Sequence[str], position: int = 0) -> ScoredItem:
    """Score one item against every keyword phrase."""
    text = " ".join(part for part in (item.name, item.description, item.course) if part).lower()
    item_tokens = set(_TOKEN_RE.findall(text))
    scored = ScoredItem(item=item, position=position)
    for phrase in keywords:
        hits = sum(2 for token in keyword_tokens(phrase) if token in item_tokens)
        if phrase in text:
            hits += 1
        if hits:
            scored.score += hits
            scored.matched.append(phrase)
    return scored


def rank_items(items: Sequence[MenuItem], keywords: Sequence[str]) -> list[ScoredItem]:
    """Matched items by descending score, then unmatched items in menu order."""
    scored = [score_item(item, keywords, i) for i, item in enumerate(items)]
    # sorted() is stable, so ties keep menu order
    matched = sorted((s for s in scored if s.score > 0), key=lambda s: s.score, reverse=True)
    unmatched = [s for s in scored if s.score == 0]
    return matched + unmatched


def selection_size(total: int, matched: int) -> int:
    """How many ranked items to select, leaving at least one alternate on small menus."""
    size = min(MAX_SELECTED, total) if total > MAX_SELECTED else max(1, total - 1)
    if matched:
        size = min(size, matched)
    return size


def keyword_recommend(menu_items: Sequence[MenuItem], transcript: str) -> Recommendation:
    """Recommend dishes without a model call.

    Args:
        menu_items: Non-empty extracted menu.
        transcript: Quiz transcript in ``Q: ... A: ...`` form.

    Returns:
        Recommendation whose items are drawn from menu_items, with disjoint
        selected and alternate lists.
    """
    keywords = extract_keywords(transcript)
    ranked = rank_items(menu_items, keywords)
    matched = [s for s in ranked if s.score > 0]

    size = selection_size(len(ranked), len(matched))
    selected = ranked[:size]
    alternates = ranked[size : size + MAX_ALTERNATES]

    names = ", ".join(s.item.name for s in selected)
    if matched:
        hit_keywords: list[str] = []
        for s in selected:
            hit_keywords.extend(k for k in s.matched if k not in hit_keywords)
        description = f"Based on your answers ({', '.join(hit_keywords)}), we recommend {names}."
    else:
        description = f"Nothing on the menu matched your answers directly, so here are popular choices: {names}."

    logger.info(
        f"keyword recommendation: {len(keywords)} keyword(s), {len(matched)} matching item(s), "
        f"{len(selected)} selected, {len(alternates)} alternate(s)"
    )
    return Recommendation(
        description=description,
        selected_items=[s.item.model_copy() for s in selected],
        alternate_choices=[s.item.model_copy() for s in alternates],
    )
