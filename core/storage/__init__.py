"""Storage abstraction (S3 or local filesystem fallback)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class StorageLocation:
    bucket: str
    key: str

    def __str__(self) -> str:
        return f"{self.bucket}/{self.key}"


class ObjectStorage(Protocol):
    """Put, existence check and get against an object store.

    Implementations never retry and never cache; retry policy belongs to the
    caller. Failures are raised as ``core.exceptions.StorageError`` subclasses.
    """

    def put_bytes(self, location: StorageLocation, data: bytes, content_type: str) -> str:  # returns uri
        ...

    def exists(self, location: StorageLocation) -> bool:
        ...

    def get_bytes(self, location: StorageLocation) -> bytes:
        ...

    def close(self) -> None:
        ...


__all__ = ["ObjectStorage", "StorageLocation"]
