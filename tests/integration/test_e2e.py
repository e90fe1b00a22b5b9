"""End-to-end tests for the menu pipeline against the real Gemini API.

Run with: pytest tests/integration -m integration
"""

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.client.orchestrator import MenuOrchestrator, SessionStore
from src.services.quiz import STANDARD_QUESTIONS
from src.services.rate_limit import SlidingWindowRateLimiter
from src.utils.config import config
from src.utils.logger import logger

pytestmark = pytest.mark.integration

MENU_TEXT = """
APPETIZERS
Spicy Chicken Wings - crispy wings tossed in our signature hot sauce  $11
Garlic Bread - toasted baguette with garlic butter  $6

SALADS
Caesar Salad - romaine, parmesan, croutons  $12

MAINS
Grilled Salmon - lemon butter, seasonal vegetables  $24
Szechuan Chicken Stir-Fry - spicy stir-fried chicken with vegetables  $18
Vegetable Curry - coconut curry with rice  $15

DESSERTS
Chocolate Lava Cake  $9
"""


def names(items) -> set[str]:
    return {" ".join(item["name"].casefold().split()) for item in items}


@pytest.fixture(scope="module")
def client(tmp_path_factory):
    config.UPLOAD_DIR = str(tmp_path_factory.mktemp("uploads"))
    # Generous limits so the suite is never throttled by its own requests
    limiter = SlidingWindowRateLimiter(1000, 60, name="integration")
    return TestClient(create_app(model_limiter=limiter, general_limiter=limiter))


@pytest.fixture(scope="module")
def menu_items(client) -> list[dict]:
    response = client.post("/api/processMenu", json={"menuText": MENU_TEXT})
    assert response.status_code == 200, response.text
    items = response.json()
    logger.info(f"Extracted {len(items)} item(s): {[i['name'] for i in items]}")
    return items


class TestExtraction:
    def test_text_menu(self, menu_items):
        assert len(menu_items) >= 6
        assert any("salmon" in name for name in names(menu_items))
        for item in menu_items:
            assert item["name"].strip()
            assert item["price"] is None or item["price"] >= 0

    def test_prices_parsed(self, menu_items):
        salmon = next(i for i in menu_items if "salmon" in i["name"].lower())
        assert salmon["price"] == 24


class TestQuiz:
    def test_generated_quiz(self, client, menu_items):
        summary = ", ".join(f"{i['name']} (${i['price']:.2f})" if i["price"] is not None else i["name"] for i in menu_items)
        response = client.post("/api/generateQuiz", json={"menu": summary})
        assert response.status_code == 200, response.text

        questions = response.json()
        prefix = [q.question for q in STANDARD_QUESTIONS]
        assert [q["question"] for q in questions[: len(prefix)]] == prefix
        for question in questions[len(prefix):]:
            assert len(question["answers"]) == 4


class TestRecommendation:
    def test_spicy_chicken(self, client, menu_items, monkeypatch):
        monkeypatch.setattr(config, "RECOMMENDATION_MODE", "ai")
        transcript = (
            "Q: How hungry are you? A: Regular human hungry.\n\n"
            "Q: What flavor mood is ruling your stomach today? A: Fiery and adventurous\n\n"
            "Q: Pick a protein A: Chicken"
        )
        response = client.post(
            "/api/suggestMenuItem",
            json={"menuItems": menu_items, "questionsAndAnswers": transcript},
        )
        assert response.status_code == 200, response.text

        body = response.json()
        assert body["description"].strip()
        selected = names(body["selectedItems"])
        alternates = names(body["alternateChoices"])
        assert 1 <= len(selected) <= 3
        assert selected <= names(menu_items)
        assert alternates <= names(menu_items)
        assert not selected & alternates


class TestOrchestrator:
    def test_run(self, client, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "RECOMMENDATION_MODE", "ai")
        flow = MenuOrchestrator(client, SessionStore(tmp_path / "session.json"), user_id="integration-user")
        flow.extract(menu_text=MENU_TEXT)
        for i, question in enumerate(flow.load_quiz()):
            flow.answer(i, [question.answers[0]] if question.allow_multiple else question.answers[0])

        suggestion = flow.recommend()
        assert suggestion.selected_items
        assert SessionStore(tmp_path / "session.json").get("suggestion") is not None
