import base64

import pytest

from conftest import FakeClassifierClient, classifier_reply

from childwatch.services.classifier import (
    ContentClassifier,
    derive_flagged,
    parse_classifier_output,
    screenshot_data_url,
)


@pytest.mark.asyncio
async def test_valid_reply_is_used(config, make_observation):
    client = FakeClassifierClient(
        classifier_reply(violenceScore=0.2, detectedCategories=["cartoon fighting"], summary="Slapstick.")
    )
    scores = await ContentClassifier(config, client).classify(make_observation())
    assert scores.source == "classifier"
    assert scores.violence_score == pytest.approx(0.2)
    assert scores.detected_categories == ["cartoon fighting"]
    assert scores.summary == "Slapstick."
    assert scores.flagged is False
    assert len(client.calls) == 1
    assert client.calls[0]["model"] == config.model


@pytest.mark.asyncio
async def test_flag_recomputed_when_classifier_says_false(config, make_observation):
    client = FakeClassifierClient(classifier_reply(adultContentScore=0.7, flagged=False))
    scores = await ContentClassifier(config, client).classify(make_observation())
    assert scores.flagged is True


@pytest.mark.asyncio
async def test_explicit_flag_kept_with_low_scores(config, make_observation):
    client = FakeClassifierClient(classifier_reply(flagged=True, reason="Dangerous stunt"))
    scores = await ContentClassifier(config, client).classify(make_observation())
    assert scores.flagged is True
    assert scores.reason == "Dangerous stunt"


@pytest.mark.asyncio
async def test_markdown_fenced_reply_is_accepted(config, make_observation):
    reply = classifier_reply(inappropriateScore=0.3)
    reply["content"] = f"```json\n{reply['content']}\n```"
    scores = await ContentClassifier(config, FakeClassifierClient(reply)).classify(make_observation())
    assert scores.source == "classifier"
    assert scores.inappropriate_score == pytest.approx(0.3)


@pytest.mark.asyncio
async def test_transport_failure_falls_back(config, make_observation):
    client = FakeClassifierClient({"ok": False, "error": "Classifier request failed"})
    obs = make_observation(content_title="Gun fight with blood")
    scores = await ContentClassifier(config, client).classify(obs)
    assert scores.source == "fallback"
    assert scores.confidence == pytest.approx(0.6)
    assert scores.violence_score > 0.5
    assert scores.flagged is True


@pytest.mark.asyncio
async def test_unconfigured_client_is_not_called(config, make_observation):
    client = FakeClassifierClient(classifier_reply(), configured=False)
    scores = await ContentClassifier(config, client).classify(make_observation())
    assert scores.source == "fallback"
    assert client.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "not json at all",
        "[0.1, 0.2]",
        '{"violenceScore": 0.1}',
        '{"violenceScore": 1.5, "adultContentScore": 0, "inappropriateScore": 0, "confidence": 1, "detectedCategories": []}',
        '{"violenceScore": "0.4", "adultContentScore": 0, "inappropriateScore": 0, "confidence": 1, "detectedCategories": []}',
        '{"violenceScore": true, "adultContentScore": 0, "inappropriateScore": 0, "confidence": 1, "detectedCategories": []}',
        '{"violenceScore": 0.1, "adultContentScore": 0, "inappropriateScore": 0, "confidence": 1, "detectedCategories": "none"}',
        '{"violenceScore": NaN, "adultContentScore": 0, "inappropriateScore": 0, "confidence": 1, "detectedCategories": []}',
        '{"violenceScore": ' + "9" * 400 + ', "adultContentScore": 0, "inappropriateScore": 0, "confidence": 1, "detectedCategories": []}',
        '{"violenceScore": ' + "9" * 5000 + "}",
        '{"violenceScore": ' + "[" * 50000 + "]" * 50000 + "}",
        None,
    ],
)
async def test_malformed_reply_falls_back(config, make_observation, content):
    client = FakeClassifierClient({"ok": True, "content": content, "raw": {}})
    scores = await ContentClassifier(config, client).classify(make_observation(content_title="War documentary"))
    assert scores.source == "fallback"
    assert scores.violence_score == pytest.approx(0.2)


def test_parse_reports_reason():
    result = parse_classifier_output('{"violenceScore": 0.1}')
    assert result.ok is False
    assert result.scores is None
    assert "schema violation" in result.error
    assert "detectedCategories" in result.error


def test_parse_accepts_integer_scores():
    result = parse_classifier_output(
        '{"violenceScore": 1, "adultContentScore": 0, "inappropriateScore": 0, '
        '"confidence": 1, "detectedCategories": ["gore", "gore"]}'
    )
    assert result.ok is True
    assert result.scores.violence_score == 1.0
    assert result.scores.detected_categories == ["gore"]
    assert result.scores.summary == ""


def test_derive_flagged_is_idempotent(config, make_observation):
    reply = parse_classifier_output(classifier_reply(violenceScore=0.8, flagged=True)["content"]).scores
    once = derive_flagged(reply)
    assert once.flagged is True
    assert derive_flagged(once) == once

    unflagged = reply.model_copy(update={"flagged": False})
    assert derive_flagged(unflagged).flagged is True


def test_request_carries_context_and_screenshot(config, make_observation):
    b64 = base64.b64encode(b"jpeg-bytes").decode()
    obs = make_observation(content_url="https://example.com/v", screenshot=b64)
    messages = ContentClassifier(config, FakeClassifierClient()).build_messages(obs)
    parts = messages[0]["content"]
    assert "Baking Cookies" in parts[0]["text"]
    assert "https://example.com/v" in parts[0]["text"]
    assert "Activity Type: video" in parts[0]["text"]
    assert parts[1]["image_url"] == {"url": f"data:image/jpeg;base64,{b64}", "detail": "low"}


def test_request_without_screenshot_is_text_only(config, make_observation):
    messages = ContentClassifier(config, FakeClassifierClient()).build_messages(make_observation())
    assert len(messages[0]["content"]) == 1


def test_screenshot_data_url_variants():
    assert screenshot_data_url(None) is None
    assert screenshot_data_url("") is None
    assert screenshot_data_url("data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"
    assert screenshot_data_url(b"\x00\x01") == "data:image/jpeg;base64,AAE="
