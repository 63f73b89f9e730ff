"""FastAPI exception handlers for custom exceptions."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from core.analysis.models import outcome_from_error
from core.exceptions import FacesightError
from services.api.utils import status_for_outcome


def status_for_error(exc: FacesightError) -> int:
    """Status code of the outcome the error would produce from a submission."""
    return status_for_outcome(outcome_from_error(exc))


async def facesight_exception_handler(request: Request, exc: FacesightError) -> JSONResponse:
    """Handle Facesight-specific exceptions."""
    status_code = status_for_error(exc)

    logger.error(
        "Facesight exception: {type} - {message}",
        type=type(exc).__name__,
        message=str(exc),
        details=exc.details,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.message,
            "kind": type(exc).__name__,
            "details": exc.details,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An unexpected error occurred.", "kind": type(exc).__name__},
    )
