"""OpenAI speech client - mp3 narration through the openai SDK."""

import asyncio
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from reelforge.core.config import Settings
from reelforge.core.errors import AuthError, ProviderError, TransientError
from reelforge.models.schemas import NarrationAudio, ProviderKind
from reelforge.services.providers.base import SpeechProvider
from reelforge.utils.audio import measure_duration_ms, to_base64
from reelforge.utils.error_handler import classify_http_error

DEFAULT_VOICE = "nova"


class OpenAISpeechClient(SpeechProvider):
    """Text → mp3 with measured duration."""

    provider_kind = ProviderKind.OPENAI

    def __init__(self, settings: Settings, logger: Any, client: Optional[AsyncOpenAI] = None):
        """
        Initialize OpenAI speech client.

        Args:
            settings: Application settings
            logger: Logger instance
            client: SDK client (built from settings.openai_api_key if omitted)
        """
        self.settings = settings
        self.logger = logger
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise AuthError("OpenAI API key is not configured (OPENAI_API_KEY)", "openai")
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.http_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def synthesize(self, text: str, voice: Optional[str] = None) -> NarrationAudio:
        """
        Synthesize speech as mp3.

        Raises:
            AuthError, InvalidRequestError, RateLimitError, TransientError: mapped SDK errors
        """
        client = self._get_client()
        try:
            response = await client.audio.speech.create(
                model=self.settings.tts_model,
                voice=voice or self.settings.tts_voice or DEFAULT_VOICE,
                input=text,
                response_format="mp3",
                speed=1.0,
            )
        except openai.APIStatusError as e:
            raise classify_http_error(e.status_code, e.message, e.response.headers, "openai") from e
        except openai.APIConnectionError as e:
            raise TransientError(f"OpenAI speech request failed: {e}", "openai") from e

        audio = response.content
        if not audio:
            raise ProviderError("OpenAI returned empty audio", "openai")

        # mp3 decoding runs ffmpeg; keep it off the event loop
        duration_ms = await asyncio.to_thread(measure_duration_ms, audio, "audio/mpeg")
        return NarrationAudio(mime_type="audio/mpeg", data=to_base64(audio), duration_ms=duration_ms)
