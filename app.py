"""Menu Matcher API server.

Single entry point for the HTTP service:
- Menu extraction from photos or text (POST /api/processMenu)
- Preference quiz generation (POST /api/generateQuiz, GET /api/questions)
- Dish recommendations (POST /api/suggestMenuItem)
- Menu photo uploads served from /uploads
- Dietary preferences (POST /api/savePreferences, GET /api/preferences)

Run with: python app.py
"""

import uvicorn

from src.api.app import create_app
from src.utils.config import config
from src.utils.logger import logger


logger.info("Initializing Menu Matcher...")
logger.info(f"Extraction model: {config.EXTRACTION_MODEL}, quiz/recommendation model: {config.GEMINI_MODEL}")
logger.info(f"Image normalization: {'enabled' if config.NORMALIZE_IMAGES else 'disabled'} (max {config.MAX_IMAGE_DIMENSION}px)")
if config.ALLOW_LOCAL_FILE_PATHS and config.is_production:
    logger.warning("ALLOW_LOCAL_FILE_PATHS is enabled in production")

app = create_app()


if __name__ == "__main__":
    logger.info(f"Starting Menu Matcher on http://localhost:{config.PORT}")
    logger.info(f"API docs: http://localhost:{config.PORT}/docs")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
