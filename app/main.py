"""
Shopify Offer Scheduler - Main Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from .config import settings
from .dependencies import init_dependencies, close_dependencies
from .routes import (
    auth_router, offers_router, api_router, sample_csv_router, webhooks_router
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting Shopify Offer Scheduler...")
    await init_dependencies()
    logger.info("Application ready")
    yield
    logger.info("Shutting down...")
    await close_dependencies()


# Create app
app = FastAPI(
    title="Shopify Offer Scheduler",
    description="Schedule temporary and permanent price changes from CSV uploads",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(auth_router)
app.include_router(offers_router)
app.include_router(api_router)
app.include_router(sample_csv_router)
app.include_router(webhooks_router)


@app.get("/")
async def root():
    """Redirect root to offers page."""
    return RedirectResponse(url="/offers", status_code=303)


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
