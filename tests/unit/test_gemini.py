"""Tests for the Gemini client."""

import asyncio
import base64
import io
import json
import wave

import httpx
import pytest

from reelforge.core.errors import AuthError, ContentPolicyError, ProviderError, RateLimitError
from reelforge.services.providers.gemini import IMAGE_MODEL, TTS_MODEL, GeminiClient


def gemini_client(settings, logger, handler):
    return GeminiClient(settings, logger, httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def reply(*parts, finish_reason="STOP"):
    return httpx.Response(200, json={"candidates": [{"content": {"parts": list(parts)}, "finishReason": finish_reason}]})


def test_image_request_carries_references_and_key(settings, logger, sample_image):
    seen = []

    def handler(request):
        seen.append(request)
        return reply({"inlineData": {"mimeType": "image/png", "data": "aW1hZ2U="}})

    client = gemini_client(settings, logger, handler)

    image = asyncio.run(client.generate_image("a cosy kitchen", [sample_image], "9:16"))

    assert image.data == "aW1hZ2U="
    request = seen[0]
    assert request.url.path.endswith(f"/models/{IMAGE_MODEL}:generateContent")
    assert request.headers["x-goog-api-key"] == "test-gemini-key"
    body = json.loads(request.content)
    parts = body["contents"][0]["parts"]
    assert parts[0]["inlineData"]["data"] == sample_image.data
    assert parts[-1] == {"text": "a cosy kitchen"}
    assert body["generationConfig"]["imageConfig"]["aspectRatio"] == "9:16"


def test_prompt_block_raises_content_policy_error(settings, logger):
    def handler(request):
        return httpx.Response(
            200,
            json={
                "promptFeedback": {
                    "blockReason": "SAFETY",
                    "safetyRatings": [{"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "blocked": True}],
                }
            },
        )

    client = gemini_client(settings, logger, handler)

    with pytest.raises(ContentPolicyError) as exc_info:
        asyncio.run(client.generate_image("something risky"))

    assert exc_info.value.category == "HARM_CATEGORY_DANGEROUS_CONTENT"


def test_missing_image_part_is_provider_error(settings, logger):
    client = gemini_client(settings, logger, lambda request: reply({"text": "I cannot draw that"}))

    with pytest.raises(ProviderError):
        asyncio.run(client.generate_image("prompt"))


def test_http_errors_are_classified(settings, logger):
    client = gemini_client(
        settings, logger, lambda request: httpx.Response(429, json={"error": {"message": "quota"}})
    )

    with pytest.raises(RateLimitError, match="quota"):
        asyncio.run(client.generate_text("hello"))


def test_missing_key_is_auth_error(settings, logger):
    settings.gemini_api_key = None
    client = gemini_client(settings, logger, lambda request: reply({"text": "hi"}))

    with pytest.raises(AuthError):
        asyncio.run(client.generate_text("hello"))


def test_generate_text_parses_schema_json(settings, logger):
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return reply({"text": '{"scenes": '}, {"text": "[1, 2]}"})

    client = gemini_client(settings, logger, handler)
    schema = {"type": "object", "properties": {"scenes": {"type": "array"}}}

    result = asyncio.run(client.generate_text("plan an ad", schema))

    assert result == {"scenes": [1, 2]}
    assert seen[0]["generationConfig"]["responseMimeType"] == "application/json"


def test_generate_text_without_schema_returns_text(settings, logger):
    client = gemini_client(settings, logger, lambda request: reply({"text": "plain words"}))

    assert asyncio.run(client.generate_text("hello")) == "plain words"


def test_speech_wraps_pcm_in_wav(settings, logger):
    # One second of 16-bit mono silence at 24kHz
    pcm = b"\x00\x00" * 24000
    seen = []

    def handler(request):
        seen.append(request)
        return reply({"inlineData": {"mimeType": "audio/L16;rate=24000", "data": base64.b64encode(pcm).decode()}})

    client = gemini_client(settings, logger, handler)

    audio = asyncio.run(client.synthesize("Hello there.", "Puck"))

    assert audio.mime_type == "audio/wav"
    assert audio.duration_ms == 1000
    assert seen[0].url.path.endswith(f"/models/{TTS_MODEL}:generateContent")
    voice = json.loads(seen[0].content)["generationConfig"]["speechConfig"]["voiceConfig"]
    assert voice["prebuiltVoiceConfig"]["voiceName"] == "Puck"
    with wave.open(io.BytesIO(base64.b64decode(audio.data))) as wav_file:
        assert wav_file.getframerate() == 24000
        assert wav_file.getnframes() == 24000
