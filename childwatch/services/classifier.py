"""
Classifier adapter: turns an activity observation into ModerationScores.

- Builds a vision chat request from the observation (title, URL, activity
  kind, optional screenshot).
- Validates the model's reply against a strict schema; anything that does not
  validate never reaches decision logic.
- Falls back to deterministic keyword scoring when the classifier is not
  configured, the call fails, or the reply is rejected. `classify` never
  raises for classifier problems.
- Recomputes `flagged` locally for every score set, whatever its source.
"""

from __future__ import annotations

import base64
import json
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError, field_validator

from childwatch.core.logger import get_logger
from childwatch.core.moderation_config import ModerationConfig
from childwatch.schemas.activity import ActivityObservation
from childwatch.schemas.moderation import ModerationScores
from childwatch.services.classifier_client import ClassifierClient
from childwatch.services.fallback_scorer import score_text

log = get_logger(__name__)

PROMPT_TEMPLATE = """You are a parental control assistant. Analyze this screenshot from a child's device and decide whether the content is appropriate for children.

Content Title: {title}
Content URL: {url}
Activity Type: {kind}

Rate each category from 0 to 1 (0 = safe, 1 = highly inappropriate):
1. Violence (weapons, fighting, blood, gore)
2. Adult content (sexual content, nudity, suggestive content)
3. General inappropriateness (drugs, profanity, dangerous activities, gambling)

Respond ONLY with a JSON object, no markdown:
{{
  "violenceScore": <number 0-1>,
  "adultContentScore": <number 0-1>,
  "inappropriateScore": <number 0-1>,
  "detectedCategories": [<concerning elements found>],
  "summary": "<1-2 sentences describing what you see>",
  "confidence": <number 0-1>,
  "flagged": <true if any score > 0.5>,
  "reason": "<why, if flagged>"
}}"""

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class ClassifierPayload(BaseModel):
    """Wire shape of the classifier's JSON reply."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    violence_score: float = Field(..., alias="violenceScore", ge=0.0, le=1.0)
    adult_content_score: float = Field(..., alias="adultContentScore", ge=0.0, le=1.0)
    inappropriate_score: float = Field(..., alias="inappropriateScore", ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    detected_categories: List[StrictStr] = Field(..., alias="detectedCategories")
    summary: Optional[StrictStr] = None
    flagged: Optional[StrictBool] = None
    reason: Optional[StrictStr] = None

    @field_validator(
        "violence_score", "adult_content_score", "inappropriate_score", "confidence", mode="before"
    )
    @classmethod
    def _finite_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a number")
        try:
            finite = math.isfinite(value)
        except OverflowError:
            raise ValueError("out of float range")
        if not finite:
            raise ValueError("must be finite")
        return value


@dataclass(frozen=True)
class ParseResult:
    ok: bool
    scores: Optional[ModerationScores] = None
    error: Optional[str] = None


def _extract_json(text: str) -> str:
    cleaned = _FENCE_RE.sub("", text).strip()
    match = re.search(r"\{[\s\S]*\}", cleaned)
    return match.group(0) if match else cleaned


def parse_classifier_output(raw: str) -> ParseResult:
    """Validate a raw classifier reply into scores, or say why not."""
    if not isinstance(raw, str) or not raw.strip():
        return ParseResult(ok=False, error="empty response")
    try:
        data = json.loads(_extract_json(raw))
    except json.JSONDecodeError as e:
        return ParseResult(ok=False, error=f"invalid JSON: {e.msg}")
    except (ValueError, RecursionError) as e:
        # int digit limit, nesting depth
        return ParseResult(ok=False, error=f"invalid JSON: {type(e).__name__}")
    if not isinstance(data, dict):
        return ParseResult(ok=False, error="response is not a JSON object")

    try:
        payload = ClassifierPayload.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        return ParseResult(ok=False, error=f"schema violation: {', '.join(fields)}")

    scores = ModerationScores(
        violence_score=float(payload.violence_score),
        adult_content_score=float(payload.adult_content_score),
        inappropriate_score=float(payload.inappropriate_score),
        detected_categories=list(dict.fromkeys(payload.detected_categories)),
        summary=payload.summary or "",
        confidence=float(payload.confidence),
        flagged=bool(payload.flagged),
        reason=payload.reason,
        source="classifier",
    )
    return ParseResult(ok=True, scores=scores)


def derive_flagged(scores: ModerationScores, flag_threshold: float = 0.5) -> ModerationScores:
    """OR the explicit flag with every category score above the flag threshold."""
    flagged = (
        scores.flagged
        or scores.violence_score > flag_threshold
        or scores.adult_content_score > flag_threshold
        or scores.inappropriate_score > flag_threshold
    )
    if flagged == scores.flagged:
        return scores
    return scores.model_copy(update={"flagged": flagged})


def screenshot_data_url(screenshot: Any) -> Optional[str]:
    """Normalize bytes, plain base64 or a data URL into a data URL."""
    if screenshot is None:
        return None
    if isinstance(screenshot, (bytes, bytearray)):
        if not screenshot:
            return None
        encoded = base64.b64encode(bytes(screenshot)).decode()
        return f"data:image/jpeg;base64,{encoded}"
    text = str(screenshot).strip()
    if not text:
        return None
    if text.startswith("data:"):
        return text
    return f"data:image/jpeg;base64,{text}"


class ContentClassifier:
    def __init__(self, config: ModerationConfig, client: ClassifierClient) -> None:
        self.config = config
        self._client = client

    def build_messages(self, observation: ActivityObservation) -> List[Dict[str, Any]]:
        prompt = PROMPT_TEMPLATE.format(
            title=observation.content_title or "",
            url=observation.content_url or "",
            kind=observation.activity_kind.value,
        )
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        image_url = screenshot_data_url(observation.screenshot)
        if image_url:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": image_url, "detail": self.config.image_detail},
                }
            )
        return [{"role": "user", "content": content}]

    def fallback(self, observation: ActivityObservation) -> ModerationScores:
        scores = score_text(observation.moderation_text(), self.config)
        return derive_flagged(scores, self.config.flag_threshold)

    async def classify(self, observation: ActivityObservation) -> ModerationScores:
        if not self._client.is_configured:
            log.warning("Classifier not configured; keyword fallback for %r", observation.content_title)
            return self.fallback(observation)

        resp = await self._client.acomplete(
            self.config.model,
            self.build_messages(observation),
            max_tokens=self.config.max_tokens,
        )
        if not resp.get("ok"):
            log.error(
                "Classifier unavailable (%s); keyword fallback for %r",
                resp.get("error"),
                observation.content_title,
            )
            return self.fallback(observation)

        result = parse_classifier_output(resp.get("content", ""))
        if not result.ok or result.scores is None:
            log.warning(
                "Classifier output rejected (%s); keyword fallback for %r",
                result.error,
                observation.content_title,
            )
            return self.fallback(observation)

        scores = derive_flagged(result.scores, self.config.flag_threshold)
        log.info("Classification completed: %s (flagged: %s)", scores.summary, scores.flagged)
        return scores
