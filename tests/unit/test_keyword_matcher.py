"""Unit tests for the offline keyword recommender."""

import pytest

from src.models.models import MenuItem
from src.services.keyword_matcher import (
    extract_keywords,
    keyword_recommend,
    keyword_tokens,
    rank_items,
    score_item,
    selection_size,
)

MOCK_MENU = [
    MenuItem(name="Spicy Chicken Wings", description="Crispy wings tossed in our signature hot sauce", course="appetizers"),
    MenuItem(name="Grilled Chicken Caesar Salad", description="Fresh romaine with grilled chicken and parmesan", course="salads"),
    MenuItem(name="Szechuan Chicken Stir-Fry", description="Spicy stir-fried chicken with vegetables", course="mains"),
    MenuItem(name="Mild Herb Chicken", description="Tender chicken with herbs and lemon", course="mains"),
    MenuItem(name="Buffalo Chicken Pizza", description="Pizza topped with spicy buffalo chicken", course="mains"),
    MenuItem(name="Vegetable Curry", description="Spicy vegetable curry with rice", course="mains"),
]

SPICY_CHICKEN = "Q: What flavor? A: spicy\n\nQ: Which protein? A: chicken"


class TestKeywords:
    def test_extract_keywords(self):
        transcript = "Q: Diet? A: None\n\nQ: Flavor? A: Spicy, Smoky\n\nQ: Again? A: spicy"
        assert extract_keywords(transcript) == ["spicy", "smoky"]

    def test_keyword_tokens_skip_short_and_stopwords(self):
        assert keyword_tokens("Fiery and adventurous") == ["fiery", "adventurous"]
        assert keyword_tokens("a bit of it") == ["bit"]


class TestScoring:
    def test_token_and_phrase_scores(self):
        scored = score_item(MOCK_MENU[0], ["spicy", "chicken"])
        assert scored.score == 6
        assert scored.matched == ["spicy", "chicken"]

    def test_multi_token_phrase(self):
        item = MenuItem(name="Crispy Calamari", description="Crunchy and shareable")
        assert score_item(item, ["crunchy and shareable"]).score == 5

    def test_ranking_is_stable_by_score(self):
        ranked = rank_items(MOCK_MENU, ["spicy", "chicken"])
        assert [s.item.name for s in ranked] == [
            "Spicy Chicken Wings",
            "Szechuan Chicken Stir-Fry",
            "Buffalo Chicken Pizza",
            "Grilled Chicken Caesar Salad",
            "Mild Herb Chicken",
            "Vegetable Curry",
        ]

    @pytest.mark.parametrize("total,matched,expected", [(6, 6, 3), (6, 2, 2), (6, 0, 3), (3, 0, 2), (2, 2, 1), (1, 0, 1)])
    def test_selection_size(self, total, matched, expected):
        assert selection_size(total, matched) == expected


class TestKeywordRecommend:
    def test_spicy_chicken(self):
        rec = keyword_recommend(MOCK_MENU, SPICY_CHICKEN)
        assert [i.name for i in rec.selected_items] == [
            "Spicy Chicken Wings",
            "Szechuan Chicken Stir-Fry",
            "Buffalo Chicken Pizza",
        ]
        assert [i.name for i in rec.alternate_choices] == [
            "Grilled Chicken Caesar Salad",
            "Mild Herb Chicken",
            "Vegetable Curry",
        ]
        assert "spicy" in rec.description and "chicken" in rec.description

    def test_selected_and_alternates_disjoint_and_from_menu(self):
        rec = keyword_recommend(MOCK_MENU, SPICY_CHICKEN)
        names = {i.name for i in MOCK_MENU}
        selected = {i.name for i in rec.selected_items}
        alternates = {i.name for i in rec.alternate_choices}
        assert selected <= names and alternates <= names
        assert not selected & alternates

    def test_no_match_falls_back_to_popular(self):
        rec = keyword_recommend(MOCK_MENU, "Q: Flavor? A: Herbaceous and light")
        assert [i.name for i in rec.selected_items] == [i.name for i in MOCK_MENU[:3]]
        assert "popular" in rec.description

    def test_small_menu_keeps_an_alternate(self):
        rec = keyword_recommend(MOCK_MENU[:2], "Q: Flavor? A: nothing matches")
        assert len(rec.selected_items) == 1
        assert len(rec.alternate_choices) == 1

    def test_single_item_menu(self):
        rec = keyword_recommend(MOCK_MENU[:1], SPICY_CHICKEN)
        assert [i.name for i in rec.selected_items] == ["Spicy Chicken Wings"]
        assert rec.alternate_choices == []
