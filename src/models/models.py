"""Data models and schemas for the menu recommendation service.

Defines Pydantic models for request/response validation and domain objects.
All models use Pydantic v2. Python attributes are snake_case; JSON payloads use
camelCase aliases (menuText, selectedItems, allowMultiple, ...) to match the
web client.
"""

from typing import Annotated, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.utils.errors import ValidationError
from src.utils.logger import logger


CAMEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
)


# ============================================================================
# Domain models
# ============================================================================


class MenuItem(BaseModel):
    """One dish extracted from a menu.

    Only ``name`` is required. Missing optional fields are explicit ``None``
    rather than a reason to discard the record.
    """

    model_config = CAMEL_CONFIG

    name: Annotated[str, Field(min_length=1, max_length=300, description="Dish name (required, non-blank)")]
    description: Annotated[Optional[str], Field(None, description="Menu description, if printed")]
    course: Annotated[Optional[str], Field(None, description="Section label, e.g. appetizers, mains, desserts")]
    price: Annotated[Optional[float], Field(None, ge=0, description="Non-negative price, if printed")]

    @field_validator("description", "course", mode="after")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class QuizQuestion(BaseModel):
    """One multiple-choice preference question.

    Answer order is display order. Duplicate answers are rejected.
    """

    model_config = CAMEL_CONFIG

    question: Annotated[str, Field(min_length=1, max_length=500)]
    answers: Annotated[List[str], Field(min_length=2, max_length=20)]
    allow_multiple: Annotated[Optional[bool], Field(None, description="Accept a set of answers instead of one")]

    @field_validator("answers", mode="after")
    @classmethod
    def validate_answers(cls, answers: List[str]) -> List[str]:
        """Strip answers and reject blank or duplicate entries."""
        cleaned = [answer.strip() for answer in answers]
        if any(not answer for answer in cleaned):
            raise ValueError("answers must not contain blank entries")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("answers must not contain duplicates")
        return cleaned


class Recommendation(BaseModel):
    """Final output of the pipeline: rationale plus primary and alternate picks."""

    model_config = CAMEL_CONFIG

    description: Annotated[str, Field(min_length=1, description="Narrative rationale referencing the quiz answers")]
    selected_items: Annotated[List[MenuItem], Field(default_factory=list, description="2-3 primary picks")]
    alternate_choices: Annotated[List[MenuItem], Field(default_factory=list, description="2-3 alternates")]


class DietaryPreferences(BaseModel):
    """Dietary restrictions and allergies held in the identity provider's user metadata."""

    model_config = CAMEL_CONFIG

    restrictions: List[str] = Field(default_factory=list)
    restrictions_other: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    allergies_other: Optional[List[str]] = None
    has_completed_onboarding: bool = False


# ============================================================================
# Menu sources (tagged union decided once at the request boundary)
# ============================================================================


class MenuTextSource(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class ImageUrlSource(BaseModel):
    kind: Literal["image_url"] = "image_url"
    url: str


class ImageBase64Source(BaseModel):
    kind: Literal["image_base64"] = "image_base64"
    data: str


class LocalFileSource(BaseModel):
    kind: Literal["local_file"] = "local_file"
    path: str


MenuSource = Annotated[
    Union[MenuTextSource, ImageUrlSource, ImageBase64Source, LocalFileSource],
    Field(discriminator="kind"),
]


# ============================================================================
# Request schemas
# ============================================================================


class ProcessMenuRequest(BaseModel):
    """Request schema for menu extraction.

    At least one input field must be non-blank. When several are supplied the
    highest-precedence one wins: imageBase64, localFilePath, imageUrl, menuText.
    """

    model_config = CAMEL_CONFIG

    menu_text: Optional[str] = None
    image_url: Optional[str] = None
    image_base64: Optional[str] = None
    local_file_path: Optional[str] = None

    def to_source(self) -> MenuSource:
        """Resolve the request into exactly one menu source variant.

        Raises:
            ValidationError: If no input is present or imageUrl is not http(s).
        """
        present = [
            (field_name, value)
            for field_name, value in (
                ("imageBase64", self.image_base64),
                ("localFilePath", self.local_file_path),
                ("imageUrl", self.image_url),
                ("menuText", self.menu_text),
            )
            if value
        ]
        if not present:
            raise ValidationError("One of menuText, imageUrl, imageBase64, or localFilePath is required")

        if len(present) > 1:
            logger.warning(
                f"Multiple menu inputs supplied ({', '.join(name for name, _ in present)}); "
                f"using {present[0][0]}"
            )

        field_name, value = present[0]
        if field_name == "imageBase64":
            return ImageBase64Source(data=value)
        if field_name == "localFilePath":
            return LocalFileSource(path=value)
        if field_name == "imageUrl":
            if urlparse(value).scheme not in ("http", "https"):
                raise ValidationError("imageUrl must be an http or https URL")
            return ImageUrlSource(url=value)
        return MenuTextSource(text=value)


class GenerateQuizRequest(BaseModel):
    """Request schema for quiz generation: a short text summary of the menu."""

    model_config = CAMEL_CONFIG

    menu: Optional[str] = None


class SuggestMenuRequest(BaseModel):
    """Request schema for recommendations."""

    model_config = CAMEL_CONFIG

    menu_items: List[MenuItem] = Field(default_factory=list)
    questions_and_answers: Optional[str] = None


class SavePreferencesRequest(BaseModel):
    """Request schema for saving dietary preferences during onboarding."""

    model_config = CAMEL_CONFIG

    restrictions: List[str]
    allergies: List[str]
    restrictions_other: Optional[str] = None
    allergies_other: Optional[List[str]] = None


# ============================================================================
# Response schemas
# ============================================================================


class UploadResponse(BaseModel):
    success: bool = True
    url: str
    filename: str


class SavePreferencesResponse(BaseModel):
    success: bool = True
    message: str = "Preferences saved successfully"
    preferences: DietaryPreferences


class PreferencesResponse(BaseModel):
    preferences: Optional[DietaryPreferences] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
