"""
FastAPI application entry point for the relayout service.
"""

# Load .env before anything reads the environment
from dotenv import load_dotenv
load_dotenv()

import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relayout.api.translate import router as translate_router
from relayout.config import get_settings
from relayout.logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    settings = get_settings()
    setup_logging(log_dir=settings.LOG_DIR, log_level=settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=(
            "Reconstructs the text layout of document images, translates it and "
            "re-renders the translation in the original layout or as markdown."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    cors_origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(translate_router)

    @app.on_event("startup")
    async def startup_event():
        """Pre-warm the heavy collaborators."""
        logger = logging.getLogger(__name__)
        try:
            logger.info("Pre-loading translation services...")
            from relayout.services.translate_service import get_translate_service
            service = get_translate_service()
            service._get_inpainter()
            logger.info("Translation services ready.")
        except Exception as e:
            logger.warning(f"Pre-loading failed (will retry on first request): {e}")

    return app


# Application instance
app = create_app()


def run():
    """Run the application with uvicorn."""
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    run()
