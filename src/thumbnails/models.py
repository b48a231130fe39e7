from pydantic import BaseModel, ConfigDict, Field
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List


class _ModeratorModel(BaseModel):
    """Content Moderator payloads use PascalCase field names."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class KeyValuePair(_ModeratorModel):
    key: Optional[str] = Field(default=None, alias="Key")
    value: Optional[str] = Field(default=None, alias="Value")


class Status(_ModeratorModel):
    code: Optional[int] = Field(default=None, alias="Code")
    description: Optional[str] = Field(default=None, alias="Description")
    exception: Optional[str] = Field(default=None, alias="Exception")


class ClassificationResult(_ModeratorModel):
    """Adult/racy scoring of one image."""
    adult_score: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="AdultClassificationScore")
    is_adult: bool = Field(default=False, alias="IsImageAdultClassified")
    racy_score: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="RacyClassificationScore")
    is_racy: bool = Field(default=False, alias="IsImageRacyClassified")
    result: Optional[bool] = Field(default=None, alias="Result")
    advanced_info: List[KeyValuePair] = Field(default_factory=list, alias="AdvancedInfo")
    status: Optional[Status] = Field(default=None, alias="Status")
    tracking_id: Optional[str] = Field(default=None, alias="TrackingId")


class TextCandidate(_ModeratorModel):
    text: str = Field(default="", alias="Text")
    confidence: Optional[float] = Field(default=None, alias="Confidence")


class TextDetection(_ModeratorModel):
    """Text extracted from the image (OCR)."""
    language: Optional[str] = Field(default=None, alias="Language")
    text: Optional[str] = Field(default=None, alias="Text")
    candidates: List[TextCandidate] = Field(default_factory=list, alias="Candidates")
    status: Optional[Status] = Field(default=None, alias="Status")
    tracking_id: Optional[str] = Field(default=None, alias="TrackingId")

    @property
    def all_text(self) -> List[str]:
        """Every non-empty string detected, full text first."""
        texts = [self.text] if self.text else []
        texts.extend(c.text for c in self.candidates if c.text)
        return texts


class Face(_ModeratorModel):
    bottom: int = Field(alias="Bottom")
    left: int = Field(alias="Left")
    right: int = Field(alias="Right")
    top: int = Field(alias="Top")


class FaceDetection(_ModeratorModel):
    """Bounding boxes of the faces found in the image."""
    result: Optional[bool] = Field(default=None, alias="Result")
    count: int = Field(default=0, ge=0, alias="Count")
    faces: List[Face] = Field(default_factory=list, alias="Faces")
    status: Optional[Status] = Field(default=None, alias="Status")
    tracking_id: Optional[str] = Field(default=None, alias="TrackingId")

    @property
    def face_count(self) -> int:
        return max(self.count, len(self.faces))


class ModerationResult(BaseModel):
    """All three evaluations of one image, taken in the same run."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    image_url: str = Field(alias="imageUrl")
    classification: ClassificationResult
    text_detection: TextDetection = Field(alias="textDetection")
    face_detection: FaceDetection = Field(alias="faceDetection")


class ApprovalDecision(BaseModel):
    """Outcome of the approval policy, with the evidence behind it."""
    model_config = ConfigDict(frozen=True)

    approved: bool
    result: ModerationResult
    reasons: List[str] = Field(default_factory=list)


class AuditRecord(BaseModel):
    """Stored moderation result of one run."""
    id: Optional[int] = None  # SQLite autoincrement
    image_url: str
    result: ModerationResult
    approved: bool
    reasons: List[str] = Field(default_factory=list)
    evaluated_at: datetime


class PolicyConfig(BaseModel):
    """Moderation thresholds."""
    adult_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    racy_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    reject_flagged: bool = True
    reject_faces: bool = False
    max_faces: Optional[int] = Field(default=None, ge=0)
    blocked_terms: List[str] = Field(default_factory=list)


class ThumbnailSpec(BaseModel):
    """Target width and output format of one thumbnail.

    The height is not stored here: ThumbnailTransformer.transform computes it
    from the decoded source with thumbnail_height() so the aspect ratio holds.
    """
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    image_format: str


class BlobCreatedData(BaseModel):
    """`data` section of a Microsoft.Storage.BlobCreated event."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str
    api: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    content_length: Optional[int] = Field(default=None, alias="contentLength")
    blob_type: Optional[str] = Field(default=None, alias="blobType")


BLOB_CREATED_EVENT_TYPE = "Microsoft.Storage.BlobCreated"


class BlobCreatedEvent(BaseModel):
    """Event Grid notification for a new object in storage."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    event_type: str = Field(default=BLOB_CREATED_EVENT_TYPE, alias="eventType")
    subject: Optional[str] = None
    topic: Optional[str] = None
    event_time: Optional[datetime] = Field(default=None, alias="eventTime")
    data: BlobCreatedData

    @property
    def url(self) -> str:
        return self.data.url


class RunState(str, Enum):
    RECEIVED = "received"
    EVALUATING = "evaluating"
    DECIDED = "decided"
    SKIPPED = "skipped"
    TRANSFORMING = "transforming"
    WRITTEN = "written"
    FAILED = "failed"


@dataclass
class RunOutcome:
    """Where a single pipeline run ended."""
    source_url: str
    state: RunState = RunState.RECEIVED
    decision: Optional[ApprovalDecision] = None
    destination: Optional[str] = None
    reason: Optional[str] = None
    history: List[RunState] = field(default_factory=list)

    def advance(self, state: RunState) -> None:
        self.history.append(self.state)
        self.state = state
