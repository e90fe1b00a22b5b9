"""Shared pytest configuration.

src.utils.config validates at import time, so a placeholder GEMINI_API_KEY is
seeded before any test module imports application code. Unit tests never call
Gemini; integration tests skip themselves when only the placeholder is set.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

TEST_GEMINI_KEY = "test-gemini-key"


def pytest_configure(config):
    # A real key in .env takes precedence over the placeholder
    load_dotenv(Path(__file__).parent.parent / ".env")
    os.environ.setdefault("GEMINI_API_KEY", TEST_GEMINI_KEY)
    os.environ["ENVIRONMENT"] = "test"
    # Keep uploads created by app tests out of the working tree
    if "STATIC_DIR" not in os.environ:
        os.environ["STATIC_DIR"] = tempfile.mkdtemp(prefix="menu-matcher-static-")
