from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


DEFAULT_BUCKET = "rekog-input-bucket-xyz"
DEFAULT_REGION = "ap-south-1"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_MIME_TYPES = ["image/jpeg", "image/jpg", "image/png"]


class StorageSettings(BaseModel):
    backend: Literal["s3", "local"] = "s3"
    bucket: str = DEFAULT_BUCKET
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    local_root: str = "data/buckets"
    access_key_id_env: str = "AWS_ACCESS_KEY_ID"
    secret_access_key_env: str = "AWS_SECRET_ACCESS_KEY"
    bucket_env: str = "S3_BUCKET_NAME"
    region_env: str = "AWS_REGION"

    @property
    def access_key_id(self) -> str | None:
        return os.getenv(self.access_key_id_env) or None

    @property
    def secret_access_key(self) -> str | None:
        return os.getenv(self.secret_access_key_env) or None

    @property
    def resolved_bucket(self) -> str:
        return os.getenv(self.bucket_env) or self.bucket

    @property
    def resolved_region(self) -> str:
        return os.getenv(self.region_env) or self.region


class PollingSettings(BaseModel):
    max_attempts: int = Field(15, ge=1)
    interval_ms: int = Field(1000, ge=0)
    # Optional wall-clock ceiling on top of the attempt budget
    deadline_seconds: float | None = Field(default=None, gt=0.0)


class UploadSettings(BaseModel):
    max_bytes: int = Field(DEFAULT_MAX_UPLOAD_BYTES, ge=1)
    allowed_mime_types: list[str] = Field(default_factory=lambda: list(DEFAULT_MIME_TYPES))

    @field_validator("allowed_mime_types", mode="before")
    @classmethod
    def _normalize_mime_types(cls, value: Any) -> list[str]:
        if value is None:
            return list(DEFAULT_MIME_TYPES)
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError("allowed_mime_types must be a list of strings")
        normalized = [str(item).strip().lower() for item in value if str(item).strip()]
        return normalized or list(DEFAULT_MIME_TYPES)


class ApiSettings(BaseModel):
    ui_origin: str = "http://localhost:3000"
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = Field(60, ge=1)
    rate_limit_per_hour: int = Field(1000, ge=1)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = Field(False, alias="json")
    file: str | None = None

    model_config = {"populate_by_name": True}


class Settings(BaseModel):
    storage: StorageSettings = Field(default_factory=StorageSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                FACESIGHT_CONFIG environment variable or defaults to config/default.yaml.

        Returns:
            Settings instance with loaded configuration.

        Raises:
            FileNotFoundError: If configuration file does not exist.
            ValueError: If configuration is invalid.
        """
        config_path = path or Path(os.getenv("FACESIGHT_CONFIG", "config/default.yaml"))
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with config_path.open("r", encoding="utf-8") as fp:
            payload = yaml.safe_load(fp) or {}
        try:
            return cls(**payload)
        except Exception as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "Settings",
    "StorageSettings",
    "PollingSettings",
    "UploadSettings",
    "ApiSettings",
    "LoggingSettings",
    "get_settings",
]
