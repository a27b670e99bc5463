"""
Pipeline Exceptions
Error taxonomy shared by the stages, the orchestrator and the API layer.
"""

from typing import Optional


class PipelineException(Exception):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


class StageError(PipelineException):
    """Raised inside a stage. Halts the pipeline and fails the job."""


class StageValidationError(StageError):
    """Stage input or model output has the wrong shape."""


class RemoteModelError(StageError):
    """Text or image provider call failed."""


class PromptValidationError(StageError):
    """Assembled system prompt has critical issues."""

    def __init__(self, issues: list, details: Optional[dict] = None):
        super().__init__(f"System prompt validation failed: {', '.join(issues)}", details)
        self.issues = issues


class JobNotFoundError(PipelineException):
    """No job with the given id."""


class JobStateError(PipelineException):
    """Operation is not allowed in the job's current status."""

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message, {"current_status": current_status})
        self.current_status = current_status


class DuplicateRecordError(PipelineException):
    """A pool record or template with the same key already exists."""


__all__ = [
    "PipelineException",
    "StageError",
    "StageValidationError",
    "RemoteModelError",
    "PromptValidationError",
    "JobNotFoundError",
    "JobStateError",
    "DuplicateRecordError",
]
