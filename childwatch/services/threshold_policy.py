"""
Threshold policy: parent settings applied to a score set.

Severity reflects absolute risk, not risk relative to a threshold, so a
violation recorded at 0.65 against a 0.6 threshold is still "low".
"""

from __future__ import annotations

from typing import List, Tuple

from childwatch.schemas.moderation import (
    ModerationScores,
    NotificationDecision,
    Severity,
    ThresholdPolicy,
)

# Evaluated top-down; first match wins
SEVERITY_BANDS: Tuple[Tuple[float, Severity], ...] = (
    (0.9, Severity.CRITICAL),
    (0.8, Severity.HIGH),
    (0.7, Severity.MEDIUM),
)


def severity_from_score(max_score: float) -> Severity:
    for floor, severity in SEVERITY_BANDS:
        if max_score >= floor:
            return severity
    return Severity.LOW


def _checks(scores: ModerationScores, policy: ThresholdPolicy) -> List[Tuple[float, float, str]]:
    return [
        (scores.violence_score, policy.violence_threshold, "violence"),
        (scores.adult_content_score, policy.adult_content_threshold, "adult content"),
        (scores.inappropriate_score, policy.inappropriate_threshold, "inappropriate content"),
    ]


def decide_notification(scores: ModerationScores, policy: ThresholdPolicy) -> NotificationDecision:
    """Decide whether a score set warrants a parent notification."""
    if not policy.notifications_enabled:
        return NotificationDecision(should_notify=False, severity=Severity.LOW)

    violations: List[str] = []
    max_score = 0.0
    for score, threshold, label in _checks(scores, policy):
        if score >= threshold:
            violations.append(label)
            max_score = max(max_score, score)

    if not violations:
        return NotificationDecision(should_notify=False, severity=Severity.LOW)

    return NotificationDecision(
        should_notify=True,
        severity=severity_from_score(max_score),
        violations=violations,
        max_score=max_score,
    )
