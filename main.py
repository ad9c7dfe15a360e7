#!/usr/bin/env python3
"""Main entry point for the Glimpse matching service.

Runs the FastAPI application with Uvicorn. The application lifespan owns the
database setup and the periodic expired-match sweep.

Environment Variables:
    API_HOST (str): The host to bind the server to.
    API_PORT (int): The port to bind the server to.
    LOG_LEVEL (str): The logging level (e.g., 'INFO', 'DEBUG').
    DEBUG (bool): Whether to enable auto-reload for development.
"""

import uvicorn

from glimpse.config import settings
from glimpse.utils.logging import get_logger

logger = get_logger(__name__)

if __name__ == "__main__":
    logger.info(f"Starting Glimpse Match on {settings.API_HOST}:{settings.API_PORT}")

    uvicorn.run(
        "glimpse.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )
