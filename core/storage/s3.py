from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
)
from loguru import logger

from core.exceptions import (
    CredentialError,
    ObjectNotFoundError,
    StorageError,
    StoragePermissionError,
)
from core.storage import StorageLocation

CREDENTIAL_ERROR_CODES = {
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
    "TokenRefreshRequired",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
}
PERMISSION_ERROR_CODES = {"AccessDenied", "Forbidden", "AllAccessDisabled", "403"}
NOT_FOUND_ERROR_CODES = {"NoSuchBucket", "NoSuchKey", "NotFound", "404"}


def create_s3_client(
    *,
    region: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    endpoint_url: Optional[str] = None,
) -> Any:
    """Build a boto3 S3 client for an explicit identity.

    Missing keys fall back to the boto3 default credential chain.
    """
    session = boto3.session.Session(
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        region_name=region,
    )
    return session.client("s3", endpoint_url=endpoint_url)


def _error_code(exc: ClientError) -> str:
    error = exc.response.get("Error", {}) if exc.response else {}
    code = str(error.get("Code") or "")
    if not code:
        status = (exc.response or {}).get("ResponseMetadata", {}).get("HTTPStatusCode")
        code = str(status or "")
    return code


def translate_error(exc: Exception, location: StorageLocation) -> StorageError:
    """Map a boto error onto the storage exception hierarchy."""
    details = {"bucket": location.bucket, "key": location.key}
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return CredentialError("Invalid AWS credentials provided.", details)
    if isinstance(exc, ClientError):
        code = _error_code(exc)
        details["code"] = code
        if code in CREDENTIAL_ERROR_CODES:
            return CredentialError("Invalid AWS credentials provided.", details)
        if code in PERMISSION_ERROR_CODES:
            return StoragePermissionError(
                "Access denied. Check your AWS credentials and bucket permissions.", details
            )
        if code == "NoSuchBucket":
            return ObjectNotFoundError(
                "The specified S3 bucket does not exist.", bucket=location.bucket, details={"code": code}
            )
        if code in NOT_FOUND_ERROR_CODES:
            return ObjectNotFoundError(
                f"Object not found: {location}", bucket=location.bucket, key=location.key, details={"code": code}
            )
        return StorageError(f"S3 request failed ({code}): {exc}", details)
    return StorageError(f"S3 request failed: {exc}", details)


class S3Storage:
    """Object store gateway backed by a boto3 S3 client."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def put_bytes(self, location: StorageLocation, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=location.bucket,
                Key=location.key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise translate_error(exc, location) from exc
        return f"s3://{location.bucket}/{location.key}"

    def exists(self, location: StorageLocation) -> bool:
        try:
            self.client.head_object(Bucket=location.bucket, Key=location.key)
        except ClientError as exc:
            if _error_code(exc) in NOT_FOUND_ERROR_CODES:
                return False
            raise StorageError(
                f"Existence check failed for {location}: {exc}",
                {"bucket": location.bucket, "key": location.key, "code": _error_code(exc)},
            ) from exc
        except BotoCoreError as exc:
            raise StorageError(
                f"Existence check failed for {location}: {exc}",
                {"bucket": location.bucket, "key": location.key},
            ) from exc
        return True

    def get_bytes(self, location: StorageLocation) -> bytes:
        try:
            response = self.client.get_object(Bucket=location.bucket, Key=location.key)
        except (ClientError, BotoCoreError) as exc:
            error = translate_error(exc, location)
            if isinstance(error, ObjectNotFoundError):
                raise error from exc
            raise StorageError(error.message, error.details) from exc
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is None:
            return
        close()
        logger.debug("S3 client closed")


__all__ = ["S3Storage", "create_s3_client", "translate_error"]
