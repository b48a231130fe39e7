"""Error taxonomy for the thumbnail pipeline."""
from typing import Any, Optional


class PipelineError(Exception):
    """Base class for fatal pipeline failures."""

    # RunOutcome of the failed run, attached by the pipeline
    outcome: Any = None


class ModeratorAPIError(Exception):
    """Raised when the Content Moderator API returns an error status."""

    def __init__(self, status: int, message: str, response_json: Optional[dict[str, Any]] = None):
        super().__init__(f"Content Moderator error {status}: {message}")
        self.status = status
        self.response_json = response_json or {}


class EvaluationError(PipelineError):
    """One of the moderation calls failed; no partial result is kept."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"Moderation stage '{stage}' failed: {cause}")
        self.stage = stage
        self.cause = cause


class TransformError(PipelineError):
    """An approved image could not be decoded, resized or encoded."""

    def __init__(self, reason: str, source_url: str = "", detail: str = ""):
        message = f"Thumbnail {reason} failed"
        if source_url:
            message += f" for {source_url}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.reason = reason
        self.source_url = source_url


class WriteError(PipelineError):
    """The thumbnail was produced but could not be stored."""

    def __init__(self, source_url: str, destination: str, cause: BaseException):
        super().__init__(f"Failed to write thumbnail of {source_url} to {destination}: {cause}")
        self.source_url = source_url
        self.destination = destination
        self.cause = cause


class SettingsError(ValueError):
    """Raised when required configuration is missing or invalid."""
