from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ActivityKind(str, Enum):
    VIDEO = "video"
    GAME = "game"
    APP = "app"
    WEBSITE = "website"
    WEB = "web"
    SOCIAL = "social"
    UNMONITORED = "unmonitored"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivityObservation(BaseModel):
    """One reported unit of child-device activity.

    Produced by the device-side agent and never mutated once classified.
    `screenshot` may be raw image bytes, plain base64, or a `data:` URL.
    """

    model_config = ConfigDict(frozen=True)

    child_name: str = Field(..., min_length=1)
    activity_kind: ActivityKind
    content_title: str
    content_url: Optional[str] = None
    content_description: Optional[str] = None
    app_name: Optional[str] = None
    device_id: Optional[str] = None
    screenshot: Optional[Union[str, bytes]] = Field(default=None, repr=False)
    observed_at: datetime = Field(default_factory=_utcnow)
    duration: Optional[float] = Field(default=None, ge=0)

    def moderation_text(self) -> str:
        """Title, description and app name as one lower-cased string."""
        parts = (self.content_title, self.content_description or "", self.app_name or "")
        return " ".join(parts).lower()


class ActivitySubmission(ActivityObservation):
    """Observation plus the parent account it reports to."""

    parent_id: str = Field(..., min_length=1)

    def to_observation(self) -> ActivityObservation:
        return ActivityObservation(**self.model_dump(exclude={"parent_id"}))


class DurationUpdate(BaseModel):
    duration: float = Field(..., ge=0)
