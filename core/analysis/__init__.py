"""Image submission: upload to the shared bucket and wait for the worker's result."""

from core.analysis.coordinator import SubmissionCoordinator, submit_image_for_analysis
from core.analysis.models import (
    AnalysisOutcome,
    AnalysisRequest,
    CredentialRejected,
    CustomScope,
    DefaultScope,
    NotFound,
    PermissionDenied,
    Success,
    Timeout,
    UnknownFailure,
    ValidationFailed,
)
from core.analysis.polling import PollPolicy

__all__ = [
    "AnalysisOutcome",
    "AnalysisRequest",
    "CredentialRejected",
    "CustomScope",
    "DefaultScope",
    "NotFound",
    "PermissionDenied",
    "PollPolicy",
    "SubmissionCoordinator",
    "Success",
    "Timeout",
    "UnknownFailure",
    "ValidationFailed",
    "submit_image_for_analysis",
]
