"""
FastAPI app for the W-9 Form Service.

Run with ``python run_web.py`` or ``uvicorn web.app:app``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import get_settings
from export.w9_errors import RecordResolutionError, W9FormError, W9ValidationError
from services.logging_config import configure_logging
from web.middleware import ContentLengthLimitMiddleware, RequestIDMiddleware
from web.w9_api import router as w9_router

settings = get_settings()
configure_logging(
    level=settings.log_level,
    json_output=settings.json_logs,
    log_file=settings.log_file,
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.name, version=settings.version)


# =============================================================================
# MIDDLEWARE (last added = first executed)
# =============================================================================

app.add_middleware(ContentLengthLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-W9-Warnings", "X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)

app.include_router(w9_router)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Errors go out as {"error": ...} like the widget expects."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(W9ValidationError)
async def w9_validation_error_handler(request: Request, exc: W9ValidationError):
    logger.info(f"Rejected W-9 with invalid fields: {', '.join(sorted(exc.errors))}")
    return JSONResponse(
        status_code=422,
        content={"error": "Validation failed", "errors": exc.errors},
    )


@app.exception_handler(RecordResolutionError)
async def record_resolution_error_handler(request: Request, exc: RecordResolutionError):
    logger.warning(f"W-9 record could not be resolved: {exc.message}")
    return JSONResponse(status_code=422, content=exc.to_dict())


@app.exception_handler(W9FormError)
async def w9_form_error_handler(request: Request, exc: W9FormError):
    """Template and serialization failures."""
    logger.error(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=500, content=exc.to_dict())


logger.info(f"{settings.name} ready | environment={settings.environment}")
