from __future__ import annotations

from enum import Enum
from typing import Any, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from childwatch.schemas.activity import ActivityObservation


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PolicyContractError(ValueError):
    """A stored threshold policy is missing required fields."""


class ModerationScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    violence_score: float = Field(..., ge=0.0, le=1.0)
    adult_content_score: float = Field(..., ge=0.0, le=1.0)
    inappropriate_score: float = Field(..., ge=0.0, le=1.0)
    detected_categories: List[str] = Field(default_factory=list)
    summary: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)
    flagged: bool = False
    reason: Optional[str] = None
    source: Literal["classifier", "fallback"] = "classifier"

    @property
    def max_score(self) -> float:
        return max(self.violence_score, self.adult_content_score, self.inappropriate_score)


class ThresholdPolicy(BaseModel):
    """A parent's sensitivity settings. Thresholds are independent of each other."""

    model_config = ConfigDict(frozen=True)

    violence_threshold: float = Field(0.6, ge=0.0, le=1.0)
    inappropriate_threshold: float = Field(0.7, ge=0.0, le=1.0)
    adult_content_threshold: float = Field(0.8, ge=0.0, le=1.0)
    notifications_enabled: bool = True

    @classmethod
    def from_stored(cls, stored: Mapping[str, Any]) -> "ThresholdPolicy":
        """Build a policy from a stored settings document.

        Missing keys are a contract violation: substituting defaults here
        could quietly loosen a parent's protections.
        """
        missing = [name for name in cls.model_fields if name not in stored]
        if missing:
            raise PolicyContractError(f"Threshold policy missing fields: {', '.join(missing)}")
        return cls(**{name: stored[name] for name in cls.model_fields})


class NotificationDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    should_notify: bool
    severity: Severity = Severity.LOW
    violations: List[str] = Field(default_factory=list)
    max_score: Optional[float] = None


class ModerationDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    flagged: bool
    violations: List[str] = Field(default_factory=list)
    max_score: float
    should_notify: bool
    severity: Severity


class ModerationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    scores: ModerationScores
    decision: ModerationDecision


class NotificationContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    message: str
    severity: Severity


class ModerationRequest(BaseModel):
    """Stateless moderation of one observation against an inline policy."""

    observation: ActivityObservation
    policy: ThresholdPolicy = Field(default_factory=ThresholdPolicy)


class ModerationPreview(BaseModel):
    outcome: ModerationOutcome
    notification: Optional[NotificationContent] = None
