"""
FastAPI backend for the calibration database editor.

This process owns the canonical dataset and serves the command channel the
UI process talks to: open/create, tree projection, entity get/update, save,
binary symbol loading and symbol merge all go through ``POST /api/commands``.
"""

import traceback

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse

from api.app_config import load_settings
from api.shared.logger import get_logger, setup_logging

settings = load_settings()
setup_logging(settings.log_level)
logger = get_logger(__name__)

from api.commands import router as commands_router
from api.system import router as system_router

# Create FastAPI app
app = FastAPI(
    title="caldb-editor API",
    description="Command channel for the calibration database editor",
    version="0.1.0",
    default_response_class=ORJSONResponse,
)


# ============= Exception Handlers for Error Logging =============


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return JSON response."""
    # Only log 5xx errors (server errors)
    if exc.status_code >= 500:
        logger.error("%s failed with %d: %s", request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    logger.error(
        "Unhandled %s on %s: %s\n%s",
        type(exc).__name__,
        request.url.path,
        exc,
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# The UI may be served from a dev server on another port
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(commands_router, prefix="/api", tags=["commands"])
app.include_router(system_router, prefix="/api", tags=["system"])


# ============= Startup Events =============


@app.on_event("startup")
async def startup_event():
    """Log startup configuration."""
    logger.info("caldb-editor backend starting...")
    logger.info("Config directory: %s", settings.config_dir)
    logger.info("Startup complete, backend ready")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="caldb-editor backend server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or CALDB_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=settings.host,
        help="Host to bind to (default: 127.0.0.1 or CALDB_HOST env var)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=not settings.desktop_mode,
        help="Enable auto-reload (default: on unless desktop mode)",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
