"""Dietary preferences held in the identity provider's per-user metadata.

The identity provider itself is external. This module only depends on the
UserMetadataStore interface: a read/write key-value document per user id.
InMemoryUserMetadataStore backs it for development and tests; preferences are
lost on restart.
"""

import asyncio
from typing import Any, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from src.models.models import DietaryPreferences, SavePreferencesRequest
from src.utils.errors import UnauthorizedError
from src.utils.logger import logger

METADATA_KEY = "dietaryPreferences"


class UserMetadataStore(Protocol):
    async def get_metadata(self, user_id: str) -> dict[str, Any]:
        ...

    async def update_metadata(self, user_id: str, metadata: dict[str, Any]) -> dict[str, Any]:
        ...


class InMemoryUserMetadataStore:
    """Process-local metadata store. Updates merge top-level keys."""

    def __init__(self) -> None:
        self._metadata: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get_metadata(self, user_id: str) -> dict[str, Any]:
        async with self._lock:
            return dict(self._metadata.get(user_id, {}))

    async def update_metadata(self, user_id: str, metadata: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            merged = {**self._metadata.get(user_id, {}), **metadata}
            self._metadata[user_id] = merged
            return dict(merged)


async def save_preferences(
    user_id: Optional[str],
    request: SavePreferencesRequest,
    store: UserMetadataStore,
) -> DietaryPreferences:
    """Persist onboarding answers and mark onboarding complete.

    Raises:
        UnauthorizedError: If there is no authenticated user.
    """
    if not user_id:
        raise UnauthorizedError()

    preferences = DietaryPreferences(
        restrictions=request.restrictions,
        restrictions_other=request.restrictions_other,
        allergies=request.allergies,
        allergies_other=request.allergies_other,
        has_completed_onboarding=True,
    )
    await store.update_metadata(user_id, {METADATA_KEY: preferences.model_dump(by_alias=True)})
    logger.info(
        f"Saved dietary preferences for user {user_id}: "
        f"{len(preferences.restrictions)} restriction(s), {len(preferences.allergies)} allergy tag(s)"
    )
    return preferences


async def get_dietary_preferences(user_id: Optional[str], store: UserMetadataStore) -> Optional[DietaryPreferences]:
    """Return the user's preferences, or None if unauthenticated or onboarding is incomplete."""
    if not user_id:
        return None

    raw = (await store.get_metadata(user_id)).get(METADATA_KEY)
    if not raw:
        return None

    try:
        preferences = DietaryPreferences.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning(f"Ignoring malformed dietary preferences for user {user_id}: {e}")
        return None

    if not preferences.has_completed_onboarding:
        return None
    return preferences


def format_preferences_for_prompt(preferences: Optional[DietaryPreferences]) -> str:
    """Format preferences as a block appended to model system instructions.

    Returns "" when there is nothing to add. "Other" entries are only included
    alongside at least one tagged restriction or allergy, matching onboarding,
    where "Other" is itself a tag.
    """
    if not preferences:
        return ""

    parts = []

    if preferences.restrictions:
        restrictions = list(preferences.restrictions)
        if preferences.restrictions_other:
            restrictions.append(preferences.restrictions_other)
        parts.append(f"Dietary restrictions: {', '.join(restrictions)}")

    if preferences.allergies:
        allergies = list(preferences.allergies)
        if preferences.allergies_other:
            allergies.extend(preferences.allergies_other)
        parts.append(f"Allergies: {', '.join(allergies)}")

    if not parts:
        return ""

    joined = "\n".join(parts)
    return f"\n\nUSER'S DIETARY INFORMATION (IMPORTANT - Must be considered in all recommendations):\n{joined}\n"
