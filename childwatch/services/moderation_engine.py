"""
Moderation engine: classifier scores plus a parent's thresholds in, a
flag/notify/severity decision out.

The classifier adapter absorbs classifier failures, so the only errors that
leave `moderate` are contract violations (a malformed policy or observation).
Those propagate unchanged.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping, Optional, Union

from childwatch.core.logger import get_logger
from childwatch.core.moderation_config import ModerationConfig, get_moderation_config
from childwatch.schemas.activity import ActivityObservation
from childwatch.schemas.moderation import (
    ModerationDecision,
    ModerationOutcome,
    ModerationScores,
    NotificationDecision,
    ThresholdPolicy,
)
from childwatch.services.classifier import ContentClassifier
from childwatch.services.classifier_client import ClassifierClient, get_classifier_client
from childwatch.services.threshold_policy import decide_notification, severity_from_score

log = get_logger(__name__)

PolicyLike = Union[ThresholdPolicy, Mapping[str, Any]]


def _coerce_policy(policy: PolicyLike) -> ThresholdPolicy:
    if isinstance(policy, ThresholdPolicy):
        return policy
    if isinstance(policy, Mapping):
        return ThresholdPolicy.from_stored(policy)
    raise TypeError(f"policy must be a ThresholdPolicy or mapping, got {type(policy).__name__}")


def build_decision(scores: ModerationScores, notification: NotificationDecision) -> ModerationDecision:
    # Highest violating score when anything violated, otherwise highest overall
    max_score = notification.max_score if notification.violations else scores.max_score
    return ModerationDecision(
        flagged=scores.flagged,
        violations=list(notification.violations),
        max_score=max_score,
        should_notify=notification.should_notify,
        severity=severity_from_score(max_score),
    )


class ModerationEngine:
    def __init__(
        self,
        config: ModerationConfig,
        classifier: Optional[ContentClassifier] = None,
        client: Optional[ClassifierClient] = None,
    ) -> None:
        self.config = config
        self.classifier = classifier or ContentClassifier(config, client or get_classifier_client())

    async def moderate(self, observation: ActivityObservation, policy: PolicyLike) -> ModerationOutcome:
        if not isinstance(observation, ActivityObservation):
            raise TypeError(f"observation must be an ActivityObservation, got {type(observation).__name__}")
        # Validate the policy before spending a classifier call on it
        resolved = _coerce_policy(policy)

        scores = await self.classifier.classify(observation)
        notification = decide_notification(scores, resolved)
        decision = build_decision(scores, notification)

        log.info(
            "Moderated %r for %s: source=%s flagged=%s notify=%s severity=%s",
            observation.content_title,
            observation.child_name,
            scores.source,
            decision.flagged,
            decision.should_notify,
            decision.severity.value,
        )
        return ModerationOutcome(scores=scores, decision=decision)


@lru_cache(maxsize=1)
def get_moderation_engine() -> ModerationEngine:
    return ModerationEngine(get_moderation_config())
