"""
Configuration for the thumbnail pipeline.

Values come from environment variables (or a local .env file) and are read
once at startup into a PipelineSettings instance that is passed down to the
pipeline components.
"""
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from src.thumbnails.errors import SettingsError
from src.thumbnails.models import PolicyConfig

MODERATOR_URL_TEMPLATE = "https://{region}.api.cognitive.microsoft.com"
AUDIT_DB_NAME = "moderation_audit.db"

# Environment variable -> PipelineSettings field
_ENV_FIELDS = {
    "CM_REGION": "moderator_region",
    "CM_ENDPOINT": "moderator_endpoint",
    "CM_SUBSCRIPTION_KEY": "moderator_key",
    "THUMBNAIL_WIDTH": "thumbnail_width",
    "THUMBNAIL_CONTAINER_NAME": "thumbnail_container",
    "CHECKED_IMAGES_CONTAINER_NAME": "checked_container",
    "STORAGE_ROOT": "storage_root",
    "CM_CALL_INTERVAL": "call_interval",
    "CM_CALL_TIMEOUT": "call_timeout",
    "CM_OCR_LANGUAGE": "ocr_language",
}

# Environment variable -> PolicyConfig field
_POLICY_ENV_FIELDS = {
    "MODERATION_ADULT_THRESHOLD": "adult_threshold",
    "MODERATION_RACY_THRESHOLD": "racy_threshold",
    "MODERATION_REJECT_FLAGGED": "reject_flagged",
    "MODERATION_REJECT_FACES": "reject_faces",
    "MODERATION_MAX_FACES": "max_faces",
}


class PipelineSettings(BaseModel):
    """Everything one pipeline run needs to know about its environment."""

    moderator_region: Optional[str] = None
    moderator_endpoint: Optional[str] = None
    moderator_key: str = Field(min_length=1)
    thumbnail_width: int = Field(gt=0)
    thumbnail_container: str = "thumbnails"
    checked_container: str = "checked-images"
    storage_root: Path = Path("data/blobs")
    call_interval: float = Field(default=1.0, ge=0.0)
    call_timeout: float = Field(default=30.0, gt=0.0)
    ocr_language: str = "eng"
    policy: PolicyConfig = Field(default_factory=PolicyConfig)

    @model_validator(mode="after")
    def _require_endpoint(self):
        if not self.moderator_region and not self.moderator_endpoint:
            raise ValueError("Either CM_REGION or CM_ENDPOINT must be set")
        return self

    @property
    def moderator_base_url(self) -> str:
        if self.moderator_endpoint:
            return self.moderator_endpoint.rstrip("/")
        return MODERATOR_URL_TEMPLATE.format(region=self.moderator_region)

    @property
    def audit_db_path(self) -> Path:
        return self.storage_root / self.checked_container / AUDIT_DB_NAME

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        """Build settings from the process environment (after loading .env)."""
        if env is None:
            load_dotenv()
            env = os.environ

        values = {
            field_name: env[var]
            for var, field_name in _ENV_FIELDS.items()
            if env.get(var)
        }
        policy = {
            field_name: env[var]
            for var, field_name in _POLICY_ENV_FIELDS.items()
            if env.get(var)
        }
        blocked = env.get("MODERATION_BLOCKED_TERMS")
        if blocked:
            policy["blocked_terms"] = [t.strip() for t in blocked.split(",") if t.strip()]
        values["policy"] = policy

        try:
            return cls(**values)
        except ValidationError as e:
            raise SettingsError(f"Invalid pipeline configuration: {e}") from e
