"""
FastAPI application entry point for the Behavior CRM API.

Configures logging, CORS, the error-to-status mapping and the API routers, and
manages the database pool over the application lifespan.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from behavior_crm import __version__
from behavior_crm.api import api_router
from behavior_crm.core.config import get_settings
from behavior_crm.core.database import close_db, init_db
from behavior_crm.core.errors import CRMError, PersistenceError
from behavior_crm.core.log import log_event

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    On startup open the database pool; on shutdown close it.

    A failed pool open is logged and startup continues: /health and the
    detector endpoint work without a database.
    """
    logger.info("Behavior CRM API starting")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("Behavior CRM API shutting down")
    await close_db()
    logger.info("Database connection pool closed")


app = FastAPI(
    title="Behavior CRM API",
    version=__version__,
    description=(
        "Sales-behavior analytics for field reps: behavior metrics, outcome "
        "snapshots, coaching and competitor signals, behavior-outcome "
        "correlation and next best actions."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CRMError)
async def crm_error_handler(request: Request, exc: CRMError) -> JSONResponse:
    level = logging.ERROR if isinstance(exc, PersistenceError) else logging.INFO
    log_event(
        logger, level, 'request.failed',
        path=request.url.path, status=exc.status_code, error=type(exc).__name__,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Behavior CRM API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "behavior_crm.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
