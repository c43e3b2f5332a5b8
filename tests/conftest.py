import json
from typing import Any, Dict, List, Optional

import pytest

from childwatch.core.moderation_config import ModerationConfig
from childwatch.schemas.activity import ActivityKind, ActivityObservation

VIOLENCE = [
    "fight", "kill", "death", "blood", "weapon", "gun", "violence",
    "attack", "murder", "war", "combat", "shoot", "stab", "gore",
]
INAPPROPRIATE = [
    "adult", "explicit", "mature", "sex", "nude", "porn", "drug",
    "alcohol", "gambling", "profanity", "hate", "discrimination",
]


class FakeClassifierClient:
    """Stands in for ClassifierClient; replays a canned acomplete() result."""

    def __init__(self, response: Optional[Dict[str, Any]] = None, configured: bool = True):
        self.response = response or {"ok": False, "error": "no response configured"}
        self.is_configured = configured
        self.calls: List[Dict[str, Any]] = []

    async def acomplete(self, model, messages, max_tokens=500):
        self.calls.append({"model": model, "messages": messages, "max_tokens": max_tokens})
        return dict(self.response)


def classifier_reply(**overrides) -> Dict[str, Any]:
    body = {
        "violenceScore": 0.1,
        "adultContentScore": 0.0,
        "inappropriateScore": 0.1,
        "detectedCategories": [],
        "summary": "A cartoon about cooking.",
        "confidence": 0.9,
        "flagged": False,
        "reason": "",
    }
    body.update(overrides)
    return {"ok": True, "content": json.dumps(body), "raw": {}}


@pytest.fixture
def config() -> ModerationConfig:
    return ModerationConfig.from_keywords(VIOLENCE, INAPPROPRIATE)


@pytest.fixture
def make_observation():
    def _make(**overrides) -> ActivityObservation:
        data = {
            "child_name": "Sam",
            "activity_kind": ActivityKind.VIDEO,
            "content_title": "Baking Cookies",
        }
        data.update(overrides)
        return ActivityObservation(**data)

    return _make
