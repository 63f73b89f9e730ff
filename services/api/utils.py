"""Shared utilities for API routes."""

from __future__ import annotations

from functools import lru_cache

from fastapi import status

from core.analysis.coordinator import SubmissionCoordinator
from core.analysis.models import (
    AnalysisOutcome,
    CredentialRejected,
    NotFound,
    PermissionDenied,
    Success,
    Timeout,
    ValidationFailed,
)
from core.settings import get_settings


# The original service reported a missing bucket as a client error, not 404.
OUTCOME_STATUS: dict[type[AnalysisOutcome], int] = {
    Success: status.HTTP_200_OK,
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    CredentialRejected: status.HTTP_401_UNAUTHORIZED,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_400_BAD_REQUEST,
    Timeout: status.HTTP_504_GATEWAY_TIMEOUT,
}


def status_for_outcome(outcome: AnalysisOutcome) -> int:
    return OUTCOME_STATUS.get(type(outcome), status.HTTP_500_INTERNAL_SERVER_ERROR)


def is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"true", "1", "yes", "on"}


@lru_cache(maxsize=1)
def get_coordinator() -> SubmissionCoordinator:
    """Process-wide coordinator holding the default storage client."""
    return SubmissionCoordinator.from_settings(get_settings())
