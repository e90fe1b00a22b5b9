"""Unit tests for dietary preferences."""

import pytest

from src.models.models import DietaryPreferences, SavePreferencesRequest
from src.services.preferences import (
    METADATA_KEY,
    InMemoryUserMetadataStore,
    format_preferences_for_prompt,
    get_dietary_preferences,
    save_preferences,
)
from src.utils.errors import UnauthorizedError

HEADER = "\n\nUSER'S DIETARY INFORMATION (IMPORTANT - Must be considered in all recommendations):\n"


class TestSaveAndLoad:
    @pytest.mark.asyncio
    async def test_save_marks_onboarding_complete(self):
        store = InMemoryUserMetadataStore()
        request = SavePreferencesRequest(restrictions=["Vegan"], allergies=["Peanuts"], allergies_other=["Kiwi"])

        saved = await save_preferences("user_1", request, store)

        assert saved.has_completed_onboarding is True
        metadata = await store.get_metadata("user_1")
        assert metadata[METADATA_KEY]["hasCompletedOnboarding"] is True
        assert metadata[METADATA_KEY]["allergiesOther"] == ["Kiwi"]

    @pytest.mark.asyncio
    async def test_save_requires_user(self):
        with pytest.raises(UnauthorizedError):
            await save_preferences(None, SavePreferencesRequest(restrictions=[], allergies=[]), InMemoryUserMetadataStore())

    @pytest.mark.asyncio
    async def test_save_keeps_other_metadata(self):
        store = InMemoryUserMetadataStore()
        await store.update_metadata("user_1", {"theme": "dark"})
        await save_preferences("user_1", SavePreferencesRequest(restrictions=[], allergies=[]), store)
        assert (await store.get_metadata("user_1"))["theme"] == "dark"

    @pytest.mark.asyncio
    async def test_round_trip(self):
        store = InMemoryUserMetadataStore()
        saved = await save_preferences(
            "user_1", SavePreferencesRequest(restrictions=["Halal"], allergies=[], restrictions_other="No pork"), store
        )
        assert await get_dietary_preferences("user_1", store) == saved

    @pytest.mark.asyncio
    async def test_incomplete_onboarding_ignored(self):
        store = InMemoryUserMetadataStore()
        await store.update_metadata("user_1", {METADATA_KEY: {"restrictions": ["Vegan"], "allergies": [], "hasCompletedOnboarding": False}})
        assert await get_dietary_preferences("user_1", store) is None

    @pytest.mark.asyncio
    async def test_missing_user_or_metadata(self):
        store = InMemoryUserMetadataStore()
        assert await get_dietary_preferences(None, store) is None
        assert await get_dietary_preferences("nobody", store) is None

    @pytest.mark.asyncio
    async def test_malformed_metadata_ignored(self, caplog):
        store = InMemoryUserMetadataStore()
        await store.update_metadata("user_1", {METADATA_KEY: {"restrictions": "Vegan", "hasCompletedOnboarding": True}})
        assert await get_dietary_preferences("user_1", store) is None
        assert "malformed" in caplog.text


class TestFormatPreferencesForPrompt:
    def test_none(self):
        assert format_preferences_for_prompt(None) == ""

    def test_nothing_set(self):
        assert format_preferences_for_prompt(DietaryPreferences(has_completed_onboarding=True)) == ""

    def test_restrictions_and_allergies(self):
        prefs = DietaryPreferences(
            restrictions=["Vegan", "Other"],
            restrictions_other="No mushrooms",
            allergies=["Peanuts"],
            allergies_other=["Kiwi", "Mango"],
        )
        assert format_preferences_for_prompt(prefs) == (
            HEADER + "Dietary restrictions: Vegan, Other, No mushrooms\nAllergies: Peanuts, Kiwi, Mango\n"
        )

    def test_other_values_need_a_tagged_entry(self):
        prefs = DietaryPreferences(restrictions_other="No mushrooms", allergies=["Soy"], allergies_other=None)
        assert format_preferences_for_prompt(prefs) == HEADER + "Allergies: Soy\n"
