"""
Immutable moderation configuration.

Built once from Settings at process start and handed explicitly to the
classifier adapter and the moderation engine, so neither reads globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import FrozenSet, Iterable

from childwatch.core.config import Settings, get_settings


@dataclass(frozen=True)
class ModerationConfig:
    violence_keywords: FrozenSet[str]
    inappropriate_keywords: FrozenSet[str]
    # Each distinct keyword hit adds this much to its category score
    keyword_weight: float = 0.2
    fallback_confidence: float = 0.6
    # Classifier-level flag threshold, independent of parent thresholds
    flag_threshold: float = 0.5
    model: str = "gpt-4o"
    max_tokens: int = 500
    image_detail: str = "low"

    @classmethod
    def from_keywords(
        cls,
        violence: Iterable[str],
        inappropriate: Iterable[str],
        **overrides,
    ) -> "ModerationConfig":
        return cls(
            violence_keywords=frozenset(k.strip().lower() for k in violence if k and k.strip()),
            inappropriate_keywords=frozenset(k.strip().lower() for k in inappropriate if k and k.strip()),
            **overrides,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModerationConfig":
        return cls.from_keywords(
            settings.VIOLENCE_KEYWORDS,
            settings.INAPPROPRIATE_KEYWORDS,
            model=settings.CLASSIFIER_MODEL,
            max_tokens=settings.CLASSIFIER_MAX_TOKENS,
            image_detail=settings.CLASSIFIER_IMAGE_DETAIL,
        )


@lru_cache(maxsize=1)
def get_moderation_config() -> ModerationConfig:
    return ModerationConfig.from_settings(get_settings())
