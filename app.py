"""FastAPI application exposing the UsefulTools plugin store."""

import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Configure logging BEFORE importing any modules that use logger
log_level = os.getenv('LOG_LEVEL', 'INFO')
logging.basicConfig(
    level=getattr(logging, log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Import after logging is configured
from fastapi import FastAPI
from usefultools import __version__
from usefultools.routers import plugins_router

# Create FastAPI app
app = FastAPI(
    title="UsefulTools Plugin Host",
    description="Plugin registry, cache and installer for UsefulTools",
    version=__version__
)

app.include_router(plugins_router)  # /api/plugins endpoints


@app.get("/")
async def root():
    return {"message": "UsefulTools Plugin Host API", "docs": "/docs"}


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    from usefultools.dependencies import get_plugin_manager

    logger.info("Starting UsefulTools Plugin Host")
    manager = get_plugin_manager()
    logger.info(f"Plugins directory: {manager.plugins_dir}")
    logger.info(f"Registry: {manager.get_config().registry_url}")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Shutting down UsefulTools Plugin Host")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "9090"))
    uvicorn.run("app:app", host="127.0.0.1", port=port, reload=True)
