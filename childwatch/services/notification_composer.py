from __future__ import annotations

from childwatch.schemas.activity import ActivityObservation
from childwatch.schemas.moderation import ModerationScores, NotificationContent
from childwatch.services.threshold_policy import severity_from_score


def compose(observation: ActivityObservation, scores: ModerationScores) -> NotificationContent:
    """Parent-facing alert text for a moderated activity.

    Severity is computed here from the raw scores, independently of the
    engine's threshold-gated decision, so the two can differ when a parent's
    thresholds sit away from the absolute bands.
    """
    child = observation.child_name
    kind = observation.activity_kind.value
    title = observation.content_title or "untitled content"
    categories = ", ".join(scores.detected_categories) or "unspecified content"
    summary = scores.summary or ""

    message = f'{child} is watching/playing "{title}" which may contain {categories}. {summary}'.rstrip()
    return NotificationContent(
        title=f"⚠️ Alert: {child}'s {kind} activity",
        message=message,
        severity=severity_from_score(scores.max_score),
    )
