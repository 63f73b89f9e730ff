"""Custom exception hierarchy for the Facesight service."""

from __future__ import annotations


class FacesightError(Exception):
    """Base exception for all Facesight-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(FacesightError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(FacesightError):
    """Raised when a submission is rejected before any storage call."""
    pass


class StorageError(FacesightError):
    """Raised when object store operations fail."""
    pass


class CredentialError(StorageError):
    """Raised when the object store rejects the supplied identity."""
    pass


class StoragePermissionError(StorageError):
    """Raised when the identity is valid but not allowed on the bucket or key."""
    pass


class ObjectNotFoundError(StorageError):
    """Raised when a bucket or key does not exist."""

    def __init__(
        self,
        message: str,
        *,
        bucket: str,
        key: str | None = None,
        details: dict[str, str] | None = None,
    ) -> None:
        merged = {"bucket": bucket}
        if key is not None:
            merged["key"] = key
        merged.update(details or {})
        super().__init__(message, merged)
        self.bucket = bucket
        self.key = key


class ResultPayloadError(StorageError):
    """Raised when a result object cannot be decoded as JSON."""
    pass
