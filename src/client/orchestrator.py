"""Client-side driver for the menu pipeline.

Runs Upload -> Extraction -> Quiz -> Answers -> Recommendation against the
HTTP API and keeps intermediate artifacts in a SessionStore, the equivalent of
the web client's localStorage. Each step reads what the previous step stored;
re-running extraction clears everything downstream of it.

Example:
    >>> with httpx.Client(base_url="http://localhost:7777") as http:
    ...     flow = MenuOrchestrator(http, SessionStore())
    ...     upload = flow.upload("menu.jpg")
    ...     flow.extract(local_file_path=upload["url"])
    ...     for i, q in enumerate(flow.load_quiz()):
    ...         flow.answer(i, q.answers[0])
    ...     print(flow.recommend().description)
"""

import json
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import httpx
from pydantic import TypeAdapter

from src.models.models import MenuItem, QuizQuestion, Recommendation
from src.services.quiz import summarize_menu
from src.services.transcript import build_transcript
from src.utils.logger import logger

MENU_ITEMS_KEY = "menuItems"
QUIZ_QUESTIONS_KEY = "quizQuestions"
QUIZ_ANSWERS_KEY = "quizAnswers"
SUGGESTION_KEY = "suggestion"

_DOWNSTREAM_OF_MENU = (QUIZ_QUESTIONS_KEY, QUIZ_ANSWERS_KEY, SUGGESTION_KEY)

_menu_items_adapter = TypeAdapter(list[MenuItem])
_questions_adapter = TypeAdapter(list[QuizQuestion])

Answer = Union[str, list[str]]


class OrchestrationError(Exception):
    """A step was run out of order or with invalid input."""


class EmptyMenuError(OrchestrationError):
    """Extraction succeeded but found no dishes."""

    def __init__(self) -> None:
        super().__init__("No menu items were found. Please try again with a clearer photo of the menu.")


class APIError(Exception):
    """Non-2xx response from the menu API."""

    def __init__(self, status_code: int, error: str, details: Optional[str] = None) -> None:
        super().__init__(f"{status_code}: {error}" + (f" ({details})" if details else ""))
        self.status_code = status_code
        self.error = error
        self.details = details


class RateLimitedError(APIError):
    """429 response. ``retry_after`` is in seconds."""

    def __init__(self, error: str, retry_after: Optional[int] = None, details: Optional[str] = None) -> None:
        super().__init__(429, error, details)
        self.retry_after = retry_after


class SessionStore:
    """String-keyed JSON store, optionally mirrored to a file.

    Writes are last-write-wins; two orchestrators sharing a file will
    overwrite each other's keys.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path else None
        self._data: dict[str, Any] = {}
        if self.path and self.path.exists():
            self._data = json.loads(self.path.read_text(encoding="utf-8"))

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)
        self._flush()

    def clear(self) -> None:
        self._data.clear()
        self._flush()

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def _flush(self) -> None:
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")


def raise_for_api_error(response: httpx.Response) -> None:
    """Translate an error response into APIError / RateLimitedError."""
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    error = body.get("error") or response.reason_phrase or "Request failed"
    details = body.get("details")
    if response.status_code == 429:
        retry_after = body.get("retryAfter") or response.headers.get("Retry-After")
        raise RateLimitedError(error, retry_after=int(retry_after) if retry_after else None, details=details)
    raise APIError(response.status_code, error, details)


class MenuOrchestrator:
    """Sequences the pipeline steps for one diner session."""

    def __init__(self, client: httpx.Client, store: SessionStore, user_id: Optional[str] = None) -> None:
        self.client = client
        self.store = store
        self.user_id = user_id

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"X-User-Id": self.user_id} if self.user_id else {}

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self.client.request(method, path, headers=self._headers(), **kwargs)
        raise_for_api_error(response)
        return response.json()

    # ------------------------------------------------------------------
    # Stored artifacts
    # ------------------------------------------------------------------

    @property
    def menu_items(self) -> list[MenuItem]:
        return _menu_items_adapter.validate_python(self.store.get(MENU_ITEMS_KEY) or [])

    @property
    def questions(self) -> list[QuizQuestion]:
        return _questions_adapter.validate_python(self.store.get(QUIZ_QUESTIONS_KEY) or [])

    @property
    def answers(self) -> dict[int, Answer]:
        # JSON object keys are strings
        return {int(k): v for k, v in (self.store.get(QUIZ_ANSWERS_KEY) or {}).items()}

    @property
    def suggestion(self) -> Optional[Recommendation]:
        raw = self.store.get(SUGGESTION_KEY)
        return Recommendation.model_validate(raw) if raw else None

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def upload(self, path: Union[str, Path]) -> dict[str, str]:
        """Upload a menu photo. Returns ``{"url": ..., "filename": ...}``."""
        file_path = Path(path)
        with file_path.open("rb") as f:
            body = self._request("POST", "/api/upload", files={"file": (file_path.name, f)})
        logger.info(f"Uploaded {file_path.name} as {body['url']}")
        return {"url": body["url"], "filename": body["filename"]}

    def extract(
        self,
        *,
        menu_text: Optional[str] = None,
        image_url: Optional[str] = None,
        image_base64: Optional[str] = None,
        local_file_path: Optional[str] = None,
    ) -> list[MenuItem]:
        """Run menu extraction and store the items.

        Raises:
            EmptyMenuError: If the menu yielded no dishes.
            APIError: On an error response.
        """
        payload = {
            "menuText": menu_text,
            "imageUrl": image_url,
            "imageBase64": image_base64,
            "localFilePath": local_file_path,
        }
        body = self._request("POST", "/api/processMenu", json={k: v for k, v in payload.items() if v})
        items = _menu_items_adapter.validate_python(body)

        self.store.remove(*_DOWNSTREAM_OF_MENU)
        if not items:
            self.store.remove(MENU_ITEMS_KEY)
            raise EmptyMenuError()

        self.store.set(MENU_ITEMS_KEY, [item.model_dump(by_alias=True) for item in items])
        logger.info(f"Stored {len(items)} menu item(s)")
        return items

    def load_quiz(self) -> list[QuizQuestion]:
        """Generate the quiz for the stored menu, falling back to the static questions.

        The fallback applies to server errors only; validation errors and rate
        limiting are raised to the caller.

        Raises:
            OrchestrationError: If no menu has been extracted.
        """
        items = self.menu_items
        if not items:
            raise OrchestrationError("Extract a menu before loading the quiz")

        try:
            body = self._request("POST", "/api/generateQuiz", json={"menu": summarize_menu(items)})
        except RateLimitedError:
            raise
        except APIError as e:
            if e.status_code < 500:
                raise
            logger.warning(f"Quiz generation failed ({e}); using static questions")
            body = self._request("GET", "/api/questions")

        questions = _questions_adapter.validate_python(body)
        self.store.set(QUIZ_QUESTIONS_KEY, [q.model_dump(by_alias=True, exclude_none=True) for q in questions])
        self.store.remove(QUIZ_ANSWERS_KEY, SUGGESTION_KEY)
        return questions

    def answer(self, index: int, answer: Answer) -> None:
        """Record the answer to question ``index``.

        Raises:
            OrchestrationError: If the index or the answer is not valid for the quiz.
        """
        questions = self.questions
        if not 0 <= index < len(questions):
            raise OrchestrationError(f"No question at index {index}")
        question = questions[index]

        chosen = [answer] if isinstance(answer, str) else list(answer)
        if not isinstance(answer, str) and not question.allow_multiple:
            raise OrchestrationError(f"Question {index} accepts a single answer")
        if not chosen:
            raise OrchestrationError("An answer is required")
        invalid = [a for a in chosen if a not in question.answers]
        if invalid:
            raise OrchestrationError(f"Not an option for question {index}: {', '.join(invalid)}")

        answers = self.store.get(QUIZ_ANSWERS_KEY) or {}
        answers[str(index)] = answer if isinstance(answer, str) else chosen
        self.store.set(QUIZ_ANSWERS_KEY, answers)

    def transcript(self) -> str:
        """Quiz answers as a transcript, in question order.

        Raises:
            OrchestrationError: If any question is unanswered.
        """
        questions = self.questions
        if not questions:
            raise OrchestrationError("Load the quiz before building a transcript")
        answers = self.answers
        missing = [i for i in range(len(questions)) if i not in answers]
        if missing:
            raise OrchestrationError(f"Unanswered question(s): {', '.join(str(i) for i in missing)}")
        return build_transcript((q.question, answers[i]) for i, q in enumerate(questions))

    def recommend(self) -> Recommendation:
        """Request a recommendation for the stored menu and answers, and store it."""
        items = self.menu_items
        if not items:
            raise OrchestrationError("Extract a menu before requesting a recommendation")
        body = self._request(
            "POST",
            "/api/suggestMenuItem",
            json={
                "menuItems": [item.model_dump(by_alias=True) for item in items],
                "questionsAndAnswers": self.transcript(),
            },
        )
        suggestion = Recommendation.model_validate(body)
        self.store.set(SUGGESTION_KEY, suggestion.model_dump(by_alias=True))
        return suggestion

    def run(self, answers: Sequence[Answer], **source: Optional[str]) -> Recommendation:
        """Extract, load the quiz, answer it in order, and recommend."""
        self.extract(**source)
        questions = self.load_quiz()
        if len(answers) != len(questions):
            raise OrchestrationError(f"Expected {len(questions)} answer(s), got {len(answers)}")
        for i, answer in enumerate(answers):
            self.answer(i, answer)
        return self.recommend()
