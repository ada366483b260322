"""Gemini client - images with references, text, speech and safety classification."""

import base64
import json
from typing import Any, Optional, Sequence

import httpx

from reelforge.core.config import Settings
from reelforge.core.errors import AuthError, ProviderError, TransientError
from reelforge.models.schemas import ImageData, NarrationAudio, ProviderKind
from reelforge.services.job_poller import CancellationToken
from reelforge.services.providers.base import ImageProvider, SpeechProvider, TextProvider
from reelforge.utils.audio import pcm_to_wav, to_base64
from reelforge.utils.error_handler import classify_http_error, classify_safety_feedback

IMAGE_MODEL = "gemini-2.5-flash-image"
TTS_MODEL = "gemini-2.5-flash-preview-tts"
DEFAULT_VOICE = "Kore"


class GeminiClient(ImageProvider, TextProvider, SpeechProvider):
    """Synchronous-response Gemini REST calls."""

    provider_kind = ProviderKind.GEMINI

    def __init__(self, settings: Settings, logger: Any, client: httpx.AsyncClient):
        """
        Initialize Gemini client.

        Args:
            settings: Application settings
            logger: Logger instance
            client: HTTP client
        """
        self.settings = settings
        self.logger = logger
        self.client = client

    async def generate_content(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        POST models/{model}:generateContent and check safety fields.

        Raises:
            ContentPolicyError: Prompt or output blocked
            AuthError, InvalidRequestError, RateLimitError, TransientError: HTTP failures
        """
        if not self.settings.gemini_api_key:
            raise AuthError("Gemini API key is not configured (GEMINI_API_KEY)", "gemini")

        url = f"{self.settings.gemini_api_url.rstrip('/')}/models/{model}:generateContent"
        try:
            response = await self.client.post(
                url, json=body, headers={"x-goog-api-key": self.settings.gemini_api_key}
            )
        except httpx.HTTPError as e:
            raise TransientError(f"Gemini request failed: {e}", "gemini") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            raise classify_http_error(response.status_code, payload or response.text, response.headers, "gemini")
        if not isinstance(payload, dict):
            raise TransientError("Gemini response was not JSON", "gemini")

        safety_error = classify_safety_feedback(payload, "gemini")
        if safety_error:
            self.logger.warning(f"Gemini safety block: {safety_error.category}")
            raise safety_error
        return payload

    @staticmethod
    def _parts(payload: dict[str, Any]) -> list[dict[str, Any]]:
        candidates = payload.get("candidates") or []
        if not candidates:
            return []
        return (candidates[0].get("content") or {}).get("parts") or []

    async def generate_image(
        self,
        prompt: str,
        reference_images: Sequence[ImageData] = (),
        aspect_ratio: str = "16:9",
        cancel_token: Optional[CancellationToken] = None,
        model: Optional[str] = None,
    ) -> ImageData:
        """Generate one image; reference images are sent inline."""
        parts: list[dict[str, Any]] = [
            {"inlineData": {"mimeType": image.mime_type, "data": image.data}}
            for image in reference_images[: self.max_reference_images]
        ]
        parts.append({"text": prompt})
        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio},
            },
        }

        payload = await self.generate_content(model or IMAGE_MODEL, body)
        for part in self._parts(payload):
            inline = part.get("inlineData")
            if inline and inline.get("data"):
                return ImageData(mime_type=inline.get("mimeType", "image/png"), data=inline["data"])
        raise ProviderError("Gemini returned no image", "gemini")

    async def generate_anchor(
        self,
        prompt: str,
        reference_images: Sequence[ImageData],
        aspect_ratio: str = "16:9",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        return await self.generate_image(prompt, reference_images, aspect_ratio, cancel_token=cancel_token)

    async def generate_text(self, prompt: str, schema: Optional[dict[str, Any]] = None) -> Any:
        """
        Generate text, or JSON matching schema.

        Returns:
            Parsed JSON when schema is given, else the text
        """
        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if schema:
            body["generationConfig"] = {"responseMimeType": "application/json", "responseSchema": schema}

        payload = await self.generate_content(self.settings.text_model, body)
        text = "".join(part.get("text", "") for part in self._parts(payload))
        if not text:
            raise ProviderError("Gemini returned no text", "gemini")
        if not schema:
            return text
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Gemini returned invalid JSON: {e}", "gemini") from e

    async def synthesize(self, text: str, voice: Optional[str] = None) -> NarrationAudio:
        """Speech synthesis; the raw PCM reply is wrapped in a WAV container."""
        body = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice or DEFAULT_VOICE}}},
            },
        }
        payload = await self.generate_content(TTS_MODEL, body)
        for part in self._parts(payload):
            inline = part.get("inlineData")
            if inline and inline.get("data"):
                wav_bytes, duration_ms = pcm_to_wav(base64.b64decode(inline["data"]))
                return NarrationAudio(mime_type="audio/wav", data=to_base64(wav_bytes), duration_ms=duration_ms)
        raise ProviderError("Gemini returned no audio", "gemini")
