from __future__ import annotations

from typing import FrozenSet, List

from childwatch.core.moderation_config import ModerationConfig
from childwatch.schemas.moderation import ModerationScores

SAFE_SUMMARY = "Content appears safe"
UNSAFE_SUMMARY = "Content may contain inappropriate elements"


def _keyword_hits(text: str, keywords: FrozenSet[str]) -> int:
    # Substring containment; each keyword counts at most once
    return sum(1 for keyword in keywords if keyword in text)


def score_text(text: str, config: ModerationConfig) -> ModerationScores:
    """Deterministic keyword scoring used when the classifier cannot answer.

    Adult content has no keyword signal here and always scores 0.
    """
    lowered = (text or "").lower()
    violence = min(_keyword_hits(lowered, config.violence_keywords) * config.keyword_weight, 1.0)
    inappropriate = min(_keyword_hits(lowered, config.inappropriate_keywords) * config.keyword_weight, 1.0)

    categories: List[str] = []
    if violence > 0:
        categories.append("Violence")
    if inappropriate > 0:
        categories.append("Inappropriate Content")

    unsafe = violence > config.flag_threshold or inappropriate > config.flag_threshold
    return ModerationScores(
        violence_score=violence,
        adult_content_score=0.0,
        inappropriate_score=inappropriate,
        detected_categories=categories,
        summary=UNSAFE_SUMMARY if unsafe else SAFE_SUMMARY,
        confidence=config.fallback_confidence,
        flagged=False,
        source="fallback",
    )
