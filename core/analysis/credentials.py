"""Credential scope resolution.

The default target is built once per process and shared by every
default-scope request. A custom scope gets a private client that lives for
exactly one request and is closed on every exit path.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from loguru import logger

from core.analysis.models import CredentialScope, CustomScope
from core.exceptions import ConfigurationError, ValidationError
from core.settings import Settings
from core.storage import ObjectStorage
from core.storage.local import LocalStorage
from core.storage.s3 import S3Storage, create_s3_client


@dataclass(frozen=True)
class StorageTarget:
    storage: ObjectStorage
    bucket: str


ClientFactory = Callable[[CustomScope], ObjectStorage]


def s3_client_factory(endpoint_url: str | None = None) -> ClientFactory:
    def _factory(scope: CustomScope) -> ObjectStorage:
        client = create_s3_client(
            region=scope.region,
            access_key_id=scope.access_key_id,
            secret_access_key=scope.secret_access_key,
            endpoint_url=endpoint_url,
        )
        return S3Storage(client)

    return _factory


def build_default_target(settings: Settings) -> StorageTarget:
    """Create the process-wide storage target from configuration."""
    storage_settings = settings.storage
    bucket = storage_settings.resolved_bucket
    if not bucket:
        raise ConfigurationError("No default bucket configured", {"setting": "storage.bucket"})

    if storage_settings.backend == "local":
        storage: ObjectStorage = LocalStorage(Path(storage_settings.local_root))
    else:
        client = create_s3_client(
            region=storage_settings.resolved_region,
            access_key_id=storage_settings.access_key_id,
            secret_access_key=storage_settings.secret_access_key,
            endpoint_url=storage_settings.endpoint_url,
        )
        storage = S3Storage(client)

    logger.info(
        "Default storage target ready backend={backend} bucket={bucket}",
        backend=storage_settings.backend,
        bucket=bucket,
    )
    return StorageTarget(storage=storage, bucket=bucket)


def require_complete(scope: CustomScope) -> None:
    missing = scope.missing_fields()
    if missing:
        raise ValidationError(
            "Custom credentials mode requires: accessKeyId, secretAccessKey, region, and bucketName",
            {"missing": ", ".join(missing)},
        )


@contextmanager
def open_target(
    scope: CredentialScope,
    default: StorageTarget,
    factory: ClientFactory,
) -> Iterator[StorageTarget]:
    """Yield the storage target for ``scope``.

    The default target is shared and left open. A custom target is built by
    ``factory`` and closed exactly once when the block exits.
    """
    if not isinstance(scope, CustomScope):
        yield default
        return

    require_complete(scope)
    storage = factory(scope)
    logger.info("Using custom credentials ({scope})", scope=scope.describe())
    try:
        yield StorageTarget(storage=storage, bucket=scope.bucket_name or "")
    finally:
        storage.close()


__all__ = [
    "ClientFactory",
    "StorageTarget",
    "build_default_target",
    "open_target",
    "require_complete",
    "s3_client_factory",
]
