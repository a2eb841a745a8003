"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_sync.api.v1.api import api_router
from catalog_sync.config import settings
from catalog_sync import __version__
from catalog_sync.connectors.supplier_connector import get_supplier_connector
from catalog_sync.scheduler import start_scheduler, shutdown_scheduler

# Custom TRACE level
logging.TRACE = 5
logging.addLevelName(logging.TRACE, "TRACE")

# Add trace method to standard Logger class for all instances
def trace_method(self, msg, *args, **kwargs):
    if self.isEnabledFor(logging.TRACE):
        self._log(logging.TRACE, msg, args, **kwargs)

logging.Logger.trace = trace_method

# Configure root logger early
log_level_str = settings.log_level.upper()
log_level = logging.TRACE if log_level_str == "TRACE" else getattr(logging, log_level_str, logging.INFO)
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)-8s - %(message)s'
    )

    root = logging.getLogger()

    # Handle VERBOSE mode and set specific loggers
    if log_level_str == "VERBOSE":
        root_level = logging.DEBUG
        httpcore_level = logging.DEBUG
        httpx_level = logging.DEBUG
        connectors_level = logging.TRACE
        scheduler_level = logging.DEBUG
        root.info("VERBOSE mode enabled: HTTP details and supplier gateway traces active for debugging.")
    elif log_level_str == "TRACE":
        root_level = logging.TRACE
        httpcore_level = logging.TRACE
        httpx_level = logging.TRACE
        connectors_level = logging.TRACE
        scheduler_level = logging.TRACE
    else:
        root_level = log_level
        httpcore_level = logging.WARNING
        httpx_level = logging.WARNING
        connectors_level = root_level
        scheduler_level = logging.WARNING  # APScheduler logs every job execution at INFO

    root.setLevel(root_level)
    logging.getLogger("httpcore").setLevel(httpcore_level)
    logging.getLogger("httpcore.http11").setLevel(httpcore_level)
    logging.getLogger("httpx").setLevel(httpx_level)
    logging.getLogger("catalog_sync.connectors").setLevel(connectors_level)
    logging.getLogger("apscheduler").setLevel(scheduler_level)

    root.trace("Trace logging enabled at startup (verbose details).") if log_level_str == "TRACE" else root.debug("Debug logging enabled at startup.")

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    start_scheduler()
    log.info("Catalog sync service started")
    try:
        yield
    finally:
        shutdown_scheduler()
        await get_supplier_connector().close()
        log.info("Catalog sync service stopped")


app = FastAPI(
    title="Supplier Catalog Sync",
    description="Keeps the local catalog's stock and prices in sync with the supplier API",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__
    }

@app.get("/")
async def root():
    """Root endpoint - redirect to docs."""
    return {
        "message": "Supplier Catalog Sync API",
        "version": __version__,
        "docs": "/docs"
    }

app.include_router(api_router, prefix=settings.api_v1_str)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info" if log_level_str in ("VERBOSE", "TRACE") else settings.log_level.lower())
