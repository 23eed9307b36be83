"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portion_api.agents.llm import get_llm_info
from portion_api.api.dependencies import close_clients
from portion_api.api.routes import portion
from portion_api.core.config import get_settings
from portion_api.core.exceptions import APIError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} v{settings.api_version}")

    if not settings.is_segmentation_configured:
        logger.warning(
            "REPLICATE_API_TOKEN or REPLICATE_MODEL_VERSION is not set - "
            "segmentation will fail until both are configured"
        )
    if not settings.is_llm_configured:
        logger.warning(
            f"No API key for LLM provider '{settings.llm_provider.value}' - "
            "identification and density estimation will fail"
        )

    yield

    logger.info("Shutting down...")
    await close_clients()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.api_version,
        description="Food portion mass estimation from a single photo",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        """Handle custom API errors."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.message,
                "details": exc.details,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Report missing or malformed fields in the same shape as other errors."""
        missing = [
            str(err["loc"][-1]) for err in exc.errors() if err.get("loc")
        ]
        return JSONResponse(
            status_code=400,
            content={
                "error": f"Missing or invalid fields: {', '.join(missing) or 'request body'}",
                "details": {"fields": missing},
            },
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": settings.app_name,
            "version": settings.api_version,
            "segmentation_configured": settings.is_segmentation_configured,
            "llm": get_llm_info(settings),
        }

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": settings.app_name,
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "/api/identify": "POST - Name the food in a photo",
                "/api/segment": "POST - Segment a photo and locate the mask",
                "/api/measure": "POST - Pixel fraction of a mask",
                "/api/estimate-portion": "POST - Grams from pixel fraction and food name",
                "/api/analyze": "POST - Full pipeline for one photo",
                "/api/recognition/health": "GET - Food identification provider health",
            },
        }

    # Include routers
    app.include_router(portion.router, prefix="/api", tags=["Portion"])

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "portion_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )
