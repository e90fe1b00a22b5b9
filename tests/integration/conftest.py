"""Pytest configuration and fixtures for integration tests.

Integration tests call the real Gemini API. They are skipped unless a real
GEMINI_API_KEY is available from the environment or .env.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

TEST_GEMINI_KEY = "test-gemini-key"


def pytest_configure(config):
    """Load .env and print the run configuration."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print("Note: These tests require a valid GEMINI_API_KEY")
    print(f"Environment loaded from: {env_path}")
    print(f"  - Model: {os.getenv('GEMINI_MODEL', 'gemini-2.5-flash')}")
    print(f"  - Extraction model: {os.getenv('EXTRACTION_MODEL', 'gemini-2.5-flash')}")
    print("=" * 70 + "\n")


@pytest.fixture(scope="session", autouse=True)
def check_api_keys():
    """Skip the session when only the unit-test placeholder key is set."""
    gemini_key = os.getenv("GEMINI_API_KEY")
    if not gemini_key or gemini_key == TEST_GEMINI_KEY:
        pytest.skip(
            "Integration tests skipped. Missing API key: GEMINI_API_KEY. Please set it in your .env file.",
            allow_module_level=True,
        )
