from __future__ import annotations

import asyncio
import json
from uuid import uuid4

from loguru import logger

from core.analysis.credentials import (
    ClientFactory,
    StorageTarget,
    build_default_target,
    open_target,
    s3_client_factory,
)
from core.analysis.keys import input_key, result_key
from core.analysis.models import (
    AnalysisOutcome,
    AnalysisRequest,
    CredentialScope,
    DefaultScope,
    Success,
    Timeout,
    UnknownFailure,
    outcome_from_error,
)
from core.analysis.polling import PollPolicy, PollState, ResultPoller, SleepFn
from core.exceptions import FacesightError, ResultPayloadError, ValidationError
from core.settings import Settings, UploadSettings, get_settings
from core.storage import StorageLocation


def _format_limit(max_bytes: int) -> str:
    mib = 1024 * 1024
    if max_bytes >= mib and max_bytes % mib == 0:
        return f"{max_bytes // mib}MB"
    return f"{max_bytes} byte"


class SubmissionCoordinator:
    """Upload an image, wait for the worker's result object, return one outcome."""

    def __init__(
        self,
        default_target: StorageTarget,
        *,
        upload: UploadSettings | None = None,
        policy: PollPolicy | None = None,
        client_factory: ClientFactory | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.default_target = default_target
        self.upload = upload or UploadSettings()
        self.policy = policy or PollPolicy()
        self.client_factory = client_factory or s3_client_factory()
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "SubmissionCoordinator":
        return cls(
            build_default_target(settings),
            upload=settings.upload,
            policy=PollPolicy.from_settings(settings.polling),
            client_factory=s3_client_factory(settings.storage.endpoint_url),
        )

    def validate(self, request: AnalysisRequest) -> None:
        """Reject a request before any storage call is made."""
        mime_type = (request.mime_type or "").lower()
        if mime_type not in self.upload.allowed_mime_types:
            raise ValidationError(
                "Invalid file type. Only JPEG and PNG images are allowed.",
                {"mime_type": request.mime_type or ""},
            )
        if request.size > self.upload.max_bytes:
            raise ValidationError(
                f"File size exceeds the {_format_limit(self.upload.max_bytes)} limit.",
                {"size": str(request.size), "max_bytes": str(self.upload.max_bytes)},
            )
        input_key(request.filename)

    async def submit(
        self,
        request: AnalysisRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> AnalysisOutcome:
        request_id = uuid4().hex[:12]
        with logger.contextualize(request_id=request_id):
            try:
                self.validate(request)
                with open_target(request.scope, self.default_target, self.client_factory) as target:
                    outcome = await self._process(target, request, cancel_event)
            except FacesightError as exc:
                outcome = outcome_from_error(exc)
            except Exception as exc:
                logger.exception("Unexpected failure while processing {filename}", filename=request.filename)
                outcome = UnknownFailure(
                    message="An error occurred while processing the image.",
                    cause=f"{type(exc).__name__}: {exc}",
                )

            log = logger.info if outcome.ok else logger.warning
            log("Submission of {filename} finished: {kind}", filename=request.filename, kind=outcome.kind)
            return outcome

    async def _process(
        self,
        target: StorageTarget,
        request: AnalysisRequest,
        cancel_event: asyncio.Event | None,
    ) -> AnalysisOutcome:
        in_key = input_key(request.filename)
        input_location = StorageLocation(target.bucket, in_key)
        result_location = StorageLocation(target.bucket, result_key(in_key))

        logger.info("Uploading file: {filename} to key: {key}", filename=request.filename, key=input_location)
        await asyncio.to_thread(
            target.storage.put_bytes, input_location, request.image_bytes, request.mime_type
        )
        logger.info("File uploaded. Waiting for result at {location}", location=result_location)

        poller = ResultPoller(target.storage, self.policy, sleep=self._sleep)
        polled = await poller.run(result_location, cancel_event)

        if polled.state is PollState.EXHAUSTED:
            return Timeout(attempts=polled.checks)
        if polled.error is not None:
            return outcome_from_error(polled.error)

        return Success(payload=self._decode(result_location, polled.payload or b""))

    @staticmethod
    def _decode(location: StorageLocation, payload: bytes) -> object:
        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ResultPayloadError(
                f"Result object is not valid JSON: {exc}",
                {"bucket": location.bucket, "key": location.key},
            ) from exc


def submit_image_for_analysis(
    image_bytes: bytes,
    filename: str,
    mime_type: str,
    credential_scope: CredentialScope | None = None,
    *,
    coordinator: SubmissionCoordinator | None = None,
) -> AnalysisOutcome:
    """Blocking entry point: returns once the result is found, times out or fails."""
    coordinator = coordinator or SubmissionCoordinator.from_settings(get_settings())
    request = AnalysisRequest(
        image_bytes=image_bytes,
        filename=filename,
        mime_type=mime_type,
        scope=credential_scope or DefaultScope(),
    )
    return asyncio.run(coordinator.submit(request))


__all__ = ["SubmissionCoordinator", "submit_image_for_analysis"]
