"""Main FastAPI application"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jirabridge.api import identity_mappings, sync
from jirabridge.config import settings
from jirabridge.scheduler import scheduler
from jirabridge.security import TokenAuthMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting GitHub/Jira Bridge Service")
    if settings.scheduler_enabled:
        scheduler.start()
    yield
    # Shutdown
    logger.info("Stopping GitHub/Jira Bridge Service")
    if settings.scheduler_enabled:
        scheduler.stop()


app = FastAPI(
    title="GitHub/Jira Bridge Service",
    description="Reconcile GitHub issues with Jira issues in both directions",
    version="1.0.0",
    lifespan=lifespan,
)

# Optional built-in auth (recommended if exposed beyond localhost/private networks)
if settings.api_token:
    app.add_middleware(TokenAuthMiddleware, token=settings.api_token, allow_paths={"/health"})

# Include API routers
app.include_router(sync.router)
app.include_router(identity_mappings.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "GitHub/Jira Bridge"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jirabridge.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
