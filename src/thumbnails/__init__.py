"""Moderation-gated thumbnails

Evaluates newly uploaded images with Content Moderator and writes a resized
thumbnail for the ones that pass the approval policy.
"""

from .models import (
    ModerationResult,
    ApprovalDecision,
    ThumbnailSpec,
    PolicyConfig,
    BlobCreatedEvent,
    RunState,
    RunOutcome,
)
from .pipeline import ThumbnailPipeline

__all__ = [
    "ModerationResult",
    "ApprovalDecision",
    "ThumbnailSpec",
    "PolicyConfig",
    "BlobCreatedEvent",
    "RunState",
    "RunOutcome",
    "ThumbnailPipeline",
]
