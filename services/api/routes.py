from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse
from loguru import logger

from core.analysis.coordinator import SubmissionCoordinator
from core.analysis.models import AnalysisRequest, CustomScope, DefaultScope, UnknownFailure
from services.api.schemas import ErrorResponse, HealthResponse, UploadResponse
from services.api.utils import get_coordinator, is_truthy, status_for_outcome


router = APIRouter()

DISCONNECT_CHECK_SECONDS = 0.5
CLIENT_CLOSED_REQUEST = 499


async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    while not cancel_event.is_set():
        await asyncio.sleep(DISCONNECT_CHECK_SECONDS)
        if await request.is_disconnected():
            logger.info("Client disconnected, stopping result polling")
            cancel_event.set()


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
    tags=["analysis"],
)
async def upload_image(
    request: Request,
    coordinator: Annotated[SubmissionCoordinator, Depends(get_coordinator)],
    image: Annotated[UploadFile | None, File()] = None,
    useCustomCredentials: Annotated[str | None, Form()] = None,
    accessKeyId: Annotated[str | None, Form()] = None,
    secretAccessKey: Annotated[str | None, Form()] = None,
    region: Annotated[str | None, Form()] = None,
    bucketName: Annotated[str | None, Form()] = None,
) -> JSONResponse:
    """Upload an image and block until its analysis result is available."""
    if image is None or not image.filename:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "No image file provided.", "kind": "validation_error"},
        )

    # One byte past the limit is enough for the size check to reject it
    data = await image.read(coordinator.upload.max_bytes + 1)
    scope = (
        CustomScope.from_form(
            access_key_id=accessKeyId,
            secret_access_key=secretAccessKey,
            region=region,
            bucket_name=bucketName,
        )
        if is_truthy(useCustomCredentials)
        else DefaultScope()
    )
    analysis_request = AnalysisRequest(
        image_bytes=data,
        filename=image.filename,
        mime_type=image.content_type or "",
        scope=scope,
    )

    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        outcome = await coordinator.submit(analysis_request, cancel_event)
    except asyncio.CancelledError:
        if not cancel_event.is_set():
            raise
        return JSONResponse(
            status_code=CLIENT_CLOSED_REQUEST,
            content={"error": "Client closed request.", "kind": "cancelled"},
        )
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    status_code = status_for_outcome(outcome)
    if outcome.ok:
        body = UploadResponse(filename=image.filename, result=outcome.to_dict()["result"])
        return JSONResponse(status_code=status_code, content=body.model_dump())

    payload = outcome.to_dict()
    message = payload.pop("message", "")
    if isinstance(outcome, UnknownFailure):
        logger.error("Processing {filename} failed: {message}", filename=image.filename, message=message)
    error = ErrorResponse(error=message, kind=payload.pop("kind"), details=payload)
    return JSONResponse(status_code=status_code, content=error.model_dump())


@router.get("/health", response_model=HealthResponse, tags=["meta"])
async def health() -> HealthResponse:
    return HealthResponse(status="OK", timestamp=datetime.now(timezone.utc).isoformat())
