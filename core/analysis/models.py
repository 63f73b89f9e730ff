"""Request, credential scope and outcome types for image submissions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from core.exceptions import (
    CredentialError,
    FacesightError,
    ObjectNotFoundError,
    StoragePermissionError,
    ValidationError,
)
from core.logging_config import mask_secret


@dataclass(frozen=True)
class DefaultScope:
    """Use the deployment identity and bucket."""


@dataclass(frozen=True)
class CustomScope:
    """Caller-supplied identity and bucket, valid for one request only."""

    access_key_id: str | None
    secret_access_key: str | None = field(repr=False)
    region: str | None
    bucket_name: str | None

    @classmethod
    def from_form(
        cls,
        *,
        access_key_id: str | None,
        secret_access_key: str | None,
        region: str | None,
        bucket_name: str | None,
    ) -> "CustomScope":
        def _clean(value: str | None) -> str | None:
            if value is None:
                return None
            value = value.strip()
            return value or None

        return cls(
            access_key_id=_clean(access_key_id),
            secret_access_key=_clean(secret_access_key),
            region=_clean(region),
            bucket_name=_clean(bucket_name),
        )

    def missing_fields(self) -> list[str]:
        names = ("access_key_id", "secret_access_key", "region", "bucket_name")
        return [name for name in names if not getattr(self, name)]

    def describe(self) -> str:
        return f"key={mask_secret(self.access_key_id)} region={self.region} bucket={self.bucket_name}"


CredentialScope = Union[DefaultScope, CustomScope]


@dataclass(frozen=True)
class AnalysisRequest:
    image_bytes: bytes = field(repr=False)
    filename: str
    mime_type: str
    scope: CredentialScope = field(default_factory=DefaultScope)

    @property
    def size(self) -> int:
        return len(self.image_bytes)


# ----- Outcomes -------------------------------------------------------------


@dataclass(frozen=True)
class AnalysisOutcome:
    kind: ClassVar[str] = "outcome"

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind}


@dataclass(frozen=True)
class Success(AnalysisOutcome):
    kind: ClassVar[str] = "success"
    payload: Any = None

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "result": self.payload}


@dataclass(frozen=True)
class Timeout(AnalysisOutcome):
    kind: ClassVar[str] = "timeout"
    attempts: int = 0
    message: str = "Timeout: Result file not found within the expected time."

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "attempts": self.attempts}


@dataclass(frozen=True)
class _FailureOutcome(AnalysisOutcome):
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True)
class ValidationFailed(_FailureOutcome):
    kind: ClassVar[str] = "validation_error"


@dataclass(frozen=True)
class CredentialRejected(_FailureOutcome):
    kind: ClassVar[str] = "credential_error"
    message: str = "Invalid AWS credentials provided."


@dataclass(frozen=True)
class PermissionDenied(_FailureOutcome):
    kind: ClassVar[str] = "permission_error"
    message: str = "Access denied. Check your AWS credentials and bucket permissions."


@dataclass(frozen=True)
class NotFound(_FailureOutcome):
    kind: ClassVar[str] = "not_found"
    bucket: str = ""
    message: str = "The specified S3 bucket does not exist."

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "bucket": self.bucket}


@dataclass(frozen=True)
class UnknownFailure(_FailureOutcome):
    kind: ClassVar[str] = "unknown_error"
    cause: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "cause": self.cause}


def outcome_from_error(exc: Exception) -> AnalysisOutcome:
    """Convert an exception raised during a submission into its outcome."""
    if isinstance(exc, ValidationError):
        return ValidationFailed(message=exc.message)
    if isinstance(exc, CredentialError):
        return CredentialRejected(message=exc.message)
    if isinstance(exc, StoragePermissionError):
        return PermissionDenied(message=exc.message)
    if isinstance(exc, ObjectNotFoundError):
        return NotFound(message=exc.message, bucket=exc.bucket)
    if isinstance(exc, FacesightError):
        return UnknownFailure(message=exc.message, cause=type(exc).__name__)
    return UnknownFailure(message=str(exc) or type(exc).__name__, cause=type(exc).__name__)


__all__ = [
    "AnalysisOutcome",
    "AnalysisRequest",
    "CredentialRejected",
    "CredentialScope",
    "CustomScope",
    "DefaultScope",
    "NotFound",
    "PermissionDenied",
    "Success",
    "Timeout",
    "UnknownFailure",
    "ValidationFailed",
    "outcome_from_error",
]
