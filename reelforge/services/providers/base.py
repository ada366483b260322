"""Provider interfaces and the model → provider-kind table."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from reelforge.core.errors import InvalidRequestError
from reelforge.models.schemas import ImageData, NarrationAudio, ProviderKind
from reelforge.services.job_poller import CancellationToken

# Every model identifier the application knows, resolved once at the call boundary
MODEL_PROVIDER_KINDS: dict[str, ProviderKind] = {
    "flux-kontext-pro": ProviderKind.EACHLABS_FLUX,
    "flux-kontext-max": ProviderKind.EACHLABS_FLUX,
    "flux-2-turbo-edit": ProviderKind.EACHLABS_FLUX,
    "flux-krea-image-to-image": ProviderKind.EACHLABS_FLUX,
    "minimax-hailuo-v2-3-fast-standard-image-to-video": ProviderKind.EACHLABS_HAILUO,
    "gemini-2.5-flash-image": ProviderKind.GEMINI,
    "gemini-3-pro-image-preview": ProviderKind.GEMINI,
    "gemini-2.5-flash": ProviderKind.GEMINI,
    "gemini-2.5-pro": ProviderKind.GEMINI,
    "gemini-2.5-flash-preview-tts": ProviderKind.GEMINI,
    "tts-1": ProviderKind.OPENAI,
    "tts-1-hd": ProviderKind.OPENAI,
    "gpt-4o-mini-tts": ProviderKind.OPENAI,
}

TTS_PROVIDER_KINDS = {
    "openai": ProviderKind.OPENAI,
    "gemini": ProviderKind.GEMINI,
}


def resolve_provider_kind(model: str) -> ProviderKind:
    """
    Look up the provider family of a model.

    Raises:
        InvalidRequestError: For unknown models
    """
    try:
        return MODEL_PROVIDER_KINDS[model]
    except KeyError:
        raise InvalidRequestError(f"Unknown model '{model}'") from None


def resolve_tts_provider_kind(name: str) -> ProviderKind:
    """Provider family of a speech provider name ('openai' or 'gemini')."""
    try:
        return TTS_PROVIDER_KINDS[name.lower()]
    except KeyError:
        raise InvalidRequestError(f"Unknown speech provider '{name}'") from None


class ImageProvider(ABC):
    """Prompt (+ reference images) → one image."""

    max_reference_images: int = 4

    @abstractmethod
    async def generate_image(
        self,
        prompt: str,
        reference_images: Sequence[ImageData] = (),
        aspect_ratio: str = "16:9",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """Generate one image."""

    @abstractmethod
    async def generate_anchor(
        self,
        prompt: str,
        reference_images: Sequence[ImageData],
        aspect_ratio: str = "16:9",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """Generate an image from 1 to 4 reference images (multi-reference mode)."""


class ImageToImageProvider(ABC):
    """Prompt + source image + strength → one derived image."""

    @abstractmethod
    async def generate_variation(
        self,
        prompt: str,
        source_image: ImageData,
        strength: float,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """Derive an image from source_image; strength in [0, 1]."""


class VideoProvider(ABC):
    """Source image + motion prompt → video URL."""

    @abstractmethod
    async def generate_video(
        self,
        source_image: ImageData,
        motion_prompt: str,
        duration_seconds: int = 10,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Generate a video and return its URL."""


class SpeechProvider(ABC):
    """Text (+ voice) → playable audio with measured duration."""

    provider_kind: ProviderKind

    @abstractmethod
    async def synthesize(self, text: str, voice: Optional[str] = None) -> NarrationAudio:
        """Synthesize speech."""


class TextProvider(ABC):
    """Prompt (+ JSON schema) → structured JSON or free text."""

    @abstractmethod
    async def generate_text(self, prompt: str, schema: Optional[dict[str, Any]] = None) -> Any:
        """Generate text; parsed JSON when schema is given."""
