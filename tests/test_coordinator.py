"""Submission coordinator behaviour against in-memory storage."""

import asyncio

import pytest

from core.analysis.coordinator import submit_image_for_analysis
from core.analysis.models import (
    AnalysisRequest,
    CredentialRejected,
    CustomScope,
    NotFound,
    PermissionDenied,
    Success,
    Timeout,
    UnknownFailure,
    ValidationFailed,
)
from core.exceptions import (
    CredentialError,
    ObjectNotFoundError,
    StorageError,
    StoragePermissionError,
)
from core.settings import UploadSettings
from tests.fakes import FakeClientFactory, FakeStorage, RecordingSleep, make_coordinator

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _custom_scope(**overrides) -> CustomScope:
    fields = {
        "access_key_id": "AKIAEXAMPLE",
        "secret_access_key": "secret",
        "region": "eu-west-1",
        "bucket_name": "custom-bucket",
    }
    fields.update(overrides)
    return CustomScope.from_form(**fields)


@pytest.mark.asyncio()
async def test_end_to_end_default_scope():
    storage = FakeStorage(misses=3, payload={"FaceDetails": []})
    sleep = RecordingSleep()
    coordinator = make_coordinator(storage, sleep=sleep)
    image = b"\x00" * (900 * 1024)

    outcome = await coordinator.submit(AnalysisRequest(image, "face.png", "image/png"))

    assert outcome == Success(payload={"FaceDetails": []})
    location, data, content_type = storage.puts[0]
    assert (location.bucket, location.key) == ("rekog-input-bucket-xyz", "face.png")
    assert data == image
    assert content_type == "image/png"
    assert len(storage.exists_calls) == 4
    assert {loc.key for loc in storage.exists_calls} == {"face.result.json"}
    assert storage.get_calls[0].key == "face.result.json"
    assert len(sleep.delays) == 3


@pytest.mark.asyncio()
async def test_timeout_after_configured_attempts():
    storage = FakeStorage(never=True)
    sleep = RecordingSleep()
    coordinator = make_coordinator(storage, max_attempts=6, interval_seconds=0.5, sleep=sleep)

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, "photo.jpg", "image/jpeg"))

    assert isinstance(outcome, Timeout)
    assert outcome.attempts == 6
    assert len(storage.exists_calls) == 6
    assert sleep.total == pytest.approx(5 * 0.5)


@pytest.mark.asyncio()
@pytest.mark.parametrize("mime_type", ["image/jpeg", "image/jpg", "image/png", "IMAGE/PNG"])
async def test_allowed_types_never_fail_validation(mime_type):
    coordinator = make_coordinator(FakeStorage())

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, "photo.jpg", mime_type))

    assert not isinstance(outcome, ValidationFailed)


@pytest.mark.asyncio()
@pytest.mark.parametrize("mime_type", ["image/gif", "application/pdf", ""])
async def test_rejected_type_skips_storage(mime_type):
    storage = FakeStorage()
    coordinator = make_coordinator(storage)

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, "photo.gif", mime_type))

    assert isinstance(outcome, ValidationFailed)
    assert "Invalid file type" in outcome.message
    assert storage.puts == []
    assert storage.exists_calls == []


@pytest.mark.asyncio()
async def test_oversized_upload_is_rejected():
    storage = FakeStorage()
    coordinator = make_coordinator(storage, upload=UploadSettings(max_bytes=1024))

    outcome = await coordinator.submit(AnalysisRequest(b"x" * 1025, "big.png", "image/png"))

    assert isinstance(outcome, ValidationFailed)
    assert storage.puts == []


@pytest.mark.asyncio()
async def test_upload_at_limit_is_accepted():
    storage = FakeStorage()
    coordinator = make_coordinator(storage, upload=UploadSettings(max_bytes=1024))

    outcome = await coordinator.submit(AnalysisRequest(b"x" * 1024, "edge.png", "image/png"))

    assert isinstance(outcome, Success)


@pytest.mark.asyncio()
async def test_validation_is_repeatable():
    storage = FakeStorage()
    coordinator = make_coordinator(storage)
    request = AnalysisRequest(PNG_BYTES, "anim.gif", "image/gif")

    first = await coordinator.submit(request)
    second = await coordinator.submit(request)

    assert first == second
    assert isinstance(first, ValidationFailed)
    assert storage.puts == []


@pytest.mark.asyncio()
async def test_zero_byte_image_is_uploaded():
    storage = FakeStorage(payload={"FaceDetails": []})
    coordinator = make_coordinator(storage)

    outcome = await coordinator.submit(AnalysisRequest(b"", "face.png", "image/png"))

    assert outcome == Success(payload={"FaceDetails": []})
    assert storage.puts[0][1] == b""


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "filename, expected_result_key",
    [("uploads/face.png", "uploads/face.result.json"), ("a\\b.jpg", "a\\b.result.json")],
)
async def test_filename_with_separators_is_used_as_key(filename, expected_result_key):
    storage = FakeStorage(misses=1, payload={"FaceDetails": []})
    coordinator = make_coordinator(storage)

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, filename, "image/png"))

    assert outcome == Success(payload={"FaceDetails": []})
    assert storage.puts[0][0].key == filename
    assert {loc.key for loc in storage.exists_calls} == {expected_result_key}
    assert storage.get_calls[0].key == expected_result_key


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "error, expected",
    [
        (StoragePermissionError("denied"), PermissionDenied),
        (ObjectNotFoundError("no bucket", bucket="rekog-input-bucket-xyz"), NotFound),
        (CredentialError("bad key"), CredentialRejected),
        (StorageError("boom"), UnknownFailure),
    ],
)
async def test_upload_failure_skips_polling(error, expected):
    storage = FakeStorage(put_error=error)
    coordinator = make_coordinator(storage)

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, "face.png", "image/png"))

    assert isinstance(outcome, expected)
    assert storage.exists_calls == []


@pytest.mark.asyncio()
async def test_not_found_outcome_names_bucket():
    storage = FakeStorage(put_error=ObjectNotFoundError("no bucket", bucket="missing-bucket"))
    coordinator = make_coordinator(storage)

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, "face.png", "image/png"))

    assert outcome == NotFound(message="no bucket", bucket="missing-bucket")


@pytest.mark.asyncio()
async def test_existence_failure_is_unknown_error():
    storage = FakeStorage(exists_error=StorageError("head failed"))
    coordinator = make_coordinator(storage)

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, "face.png", "image/png"))

    assert isinstance(outcome, UnknownFailure)
    assert outcome.message == "head failed"


@pytest.mark.asyncio()
async def test_malformed_result_reports_parse_reason():
    storage = FakeStorage(raw_payload=b"{not json")
    coordinator = make_coordinator(storage)

    outcome = await coordinator.submit(AnalysisRequest(PNG_BYTES, "face.png", "image/png"))

    assert isinstance(outcome, UnknownFailure)
    assert outcome.cause == "ResultPayloadError"
    assert "not valid JSON" in outcome.message


@pytest.mark.asyncio()
async def test_custom_scope_uses_private_client_and_bucket():
    default_storage = FakeStorage()
    custom_storage = FakeStorage(payload={"ModerationLabels": []})
    factory = FakeClientFactory(custom_storage)
    coordinator = make_coordinator(default_storage, factory=factory)

    outcome = await coordinator.submit(
        AnalysisRequest(PNG_BYTES, "face.png", "image/png", scope=_custom_scope())
    )

    assert outcome == Success(payload={"ModerationLabels": []})
    assert default_storage.puts == []
    assert custom_storage.puts[0][0].bucket == "custom-bucket"
    assert factory.scopes[0].region == "eu-west-1"
    assert custom_storage.close_calls == 1
    assert default_storage.close_calls == 0


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "storage",
    [
        FakeStorage(never=True),
        FakeStorage(put_error=StoragePermissionError("denied")),
        FakeStorage(exists_error=StorageError("head failed")),
        FakeStorage(raw_payload=b"<html>"),
    ],
    ids=["timeout", "put-error", "exists-error", "bad-json"],
)
async def test_custom_client_released_once_on_every_path(storage):
    factory = FakeClientFactory(storage)
    coordinator = make_coordinator(FakeStorage(), factory=factory, max_attempts=3)

    await coordinator.submit(AnalysisRequest(PNG_BYTES, "face.png", "image/png", scope=_custom_scope()))

    assert storage.close_calls == 1


@pytest.mark.asyncio()
async def test_custom_client_released_when_cancelled():
    storage = FakeStorage(never=True)
    factory = FakeClientFactory(storage)
    coordinator = make_coordinator(FakeStorage(), factory=factory)
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(asyncio.CancelledError):
        await coordinator.submit(
            AnalysisRequest(PNG_BYTES, "face.png", "image/png", scope=_custom_scope()),
            cancel,
        )

    assert storage.close_calls == 1


@pytest.mark.asyncio()
@pytest.mark.parametrize("missing", ["access_key_id", "secret_access_key", "region", "bucket_name"])
async def test_incomplete_custom_scope_is_rejected(missing):
    factory = FakeClientFactory()
    default_storage = FakeStorage()
    coordinator = make_coordinator(default_storage, factory=factory)

    outcome = await coordinator.submit(
        AnalysisRequest(PNG_BYTES, "face.png", "image/png", scope=_custom_scope(**{missing: "  "}))
    )

    assert isinstance(outcome, ValidationFailed)
    assert factory.scopes == []
    assert default_storage.puts == []


@pytest.mark.asyncio()
async def test_concurrent_submissions_do_not_block_each_other():
    slow = FakeStorage(misses=3, payload={"who": "slow"})
    fast = FakeStorage(payload={"who": "fast"})
    slow_coordinator = make_coordinator(slow, interval_seconds=0.01, sleep=asyncio.sleep)
    fast_coordinator = make_coordinator(fast, interval_seconds=0.01, sleep=asyncio.sleep)

    results = await asyncio.gather(
        slow_coordinator.submit(AnalysisRequest(PNG_BYTES, "a.png", "image/png")),
        fast_coordinator.submit(AnalysisRequest(PNG_BYTES, "b.png", "image/png")),
    )

    assert results == [Success(payload={"who": "slow"}), Success(payload={"who": "fast"})]


def test_blocking_entry_point_returns_outcome():
    storage = FakeStorage(misses=1, payload={"FaceDetails": [{"Confidence": 99.9}]})
    coordinator = make_coordinator(storage)

    outcome = submit_image_for_analysis(PNG_BYTES, "face.jpeg", "image/jpeg", coordinator=coordinator)

    assert outcome.ok
    assert outcome.to_dict() == {"kind": "success", "result": {"FaceDetails": [{"Confidence": 99.9}]}}
    assert storage.get_calls[0].key == "face.result.json"
