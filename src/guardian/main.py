"""Guardian - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from guardian import __version__
from guardian.api import timeline_router, worktrees_router
from guardian.config import settings
from guardian.core.exceptions import GuardianError
from guardian.core.logger import API_NAMESPACE, get_logger
from guardian.github.webhook import router as github_webhook_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"Starting {settings.app_name}...")

    settings.resolved_memory_dir.mkdir(parents=True, exist_ok=True)

    if not settings.webhook_secret:
        logger.warning(
            "GITHUB_WEBHOOK_SECRET is not configured - webhook signatures will not be verified"
        )
    if settings.api_token is None:
        logger.warning("API_TOKEN is not configured - /api routes are open")

    yield

    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title=settings.app_name,
    description="Parallel agent orchestration: worktrees, workflow state, timeline and webhook intake",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(GuardianError)
async def guardian_error_handler(request: Request, exc: GuardianError) -> JSONResponse:
    """Map Guardian errors to their HTTP status."""
    if exc.status_code >= 500:
        get_logger(API_NAMESPACE).error(
            "Request failed",
            {"method": request.method, "path": request.url.path, "error": str(exc)},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# Include routers
app.include_router(github_webhook_router)
app.include_router(worktrees_router)
app.include_router(timeline_router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "webhook_signature_verification": bool(settings.webhook_secret),
        "api_auth": settings.api_token is not None,
    }


# =============================================================================
# Development server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "guardian.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
