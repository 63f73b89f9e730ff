from __future__ import annotations

from pathlib import Path, PurePosixPath

from core.exceptions import ObjectNotFoundError, StorageError
from core.storage import StorageLocation


class LocalStorage:
    """Filesystem stand-in for an object store.

    Each bucket is a directory below ``root`` and must already exist.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def _bucket_dir(self, bucket: str) -> Path:
        path = self.root / bucket
        if not path.is_dir():
            raise ObjectNotFoundError("The specified bucket does not exist.", bucket=bucket)
        return path

    def _path(self, location: StorageLocation) -> Path:
        key = PurePosixPath(location.key)
        if key.is_absolute() or ".." in key.parts:
            raise StorageError(f"Invalid key: {location.key}", {"bucket": location.bucket, "key": location.key})
        return self._bucket_dir(location.bucket) / Path(*key.parts)

    def put_bytes(self, location: StorageLocation, data: bytes, content_type: str) -> str:
        path = self._path(location)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Write failed for {location}: {exc}", {"bucket": location.bucket}) from exc
        return str(path)

    def exists(self, location: StorageLocation) -> bool:
        try:
            return self._path(location).is_file()
        except ObjectNotFoundError:
            return False

    def get_bytes(self, location: StorageLocation) -> bytes:
        path = self._path(location)
        if not path.is_file():
            raise ObjectNotFoundError(
                f"Object not found: {location}", bucket=location.bucket, key=location.key
            )
        return path.read_bytes()

    def close(self) -> None:
        return None


__all__ = ["LocalStorage"]
