"""EachLabs client - FLUX image models and Hailuo image-to-video over create/poll."""

import base64
from typing import Any, Optional, Sequence

import httpx

from reelforge.core.config import Settings
from reelforge.core.errors import AuthError, InvalidRequestError, ProviderError, RateLimitError, TransientError
from reelforge.models.schemas import ImageData, JobStatus, PollResponse, ProviderKind
from reelforge.services.job_poller import CancellationToken, JobBackend, JobPoller
from reelforge.services.providers.base import ImageProvider, ImageToImageProvider, VideoProvider
from reelforge.services.storage import BlobStorage
from reelforge.utils.error_handler import classify_http_error

EACHLABS_VERSION = "0.0.1"

# Direct generation with 0-1 reference images
FLUX_SINGLE_MODELS = {
    "flux-kontext-pro": "flux-kontext-pro",
    "flux-kontext-max": "flux-kontext-max",
}

# Direct generation with 2 reference images
FLUX_MULTI_MODELS = {
    "flux-kontext-pro": "multi-image-kontext-pro",
    "flux-kontext-max": "multi-image-kontext-max",
}

ANCHOR_MODEL = "flux-2-turbo-edit"
VARIATION_MODEL = "flux-krea-image-to-image"
HAILUO_MODEL = "minimax-hailuo-v2-3-fast-standard-image-to-video"

ANCHOR_GUIDANCE_SCALE = 2.5
VARIATION_GUIDANCE_SCALE = 4.5
VARIATION_INFERENCE_STEPS = 40

# safety_tolerance ranges differ per model family
SINGLE_SAFETY_TOLERANCE = 6
MULTI_SAFETY_TOLERANCE = 2

SUPPORTED_ASPECT_RATIOS = {"16:9", "9:16", "1:1"}


class EachLabsBackend(JobBackend):
    """Prediction endpoint: POST creates, GET {id} reports status."""

    name = "eachlabs"

    def __init__(self, settings: Settings, client: httpx.AsyncClient, provider_kind: ProviderKind):
        self.settings = settings
        self.client = client
        self.provider_kind = provider_kind

    def _headers(self) -> dict[str, str]:
        if not self.settings.eachlabs_api_key:
            raise AuthError("EachLabs API key is not configured (EACHLABS_API_KEY)", self.name)
        return {"X-API-Key": self.settings.eachlabs_api_key, "Content-Type": "application/json"}

    async def create(self, request: dict[str, Any]) -> str:
        body = {
            "model": request["model"],
            "version": EACHLABS_VERSION,
            "input": request["input"],
            "webhook_url": "",
        }
        try:
            response = await self.client.post(
                f"{self.settings.eachlabs_api_url.rstrip('/')}/", json=body, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise TransientError(f"EachLabs create request failed: {e}", self.name) from e

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if response.status_code >= 400:
            raise classify_http_error(response.status_code, payload, response.headers, self.name)

        if not isinstance(payload, dict) or payload.get("status") != "success" or not payload.get("predictionID"):
            detail = payload.get("error") or payload.get("message") if isinstance(payload, dict) else payload
            raise ProviderError(f"EachLabs rejected the prediction: {detail or payload}", self.name)

        return payload["predictionID"]

    async def query(self, job_id: str) -> PollResponse:
        try:
            response = await self.client.get(
                f"{self.settings.eachlabs_api_url.rstrip('/')}/{job_id}", headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise TransientError(f"EachLabs status query failed: {e}", self.name) from e

        if response.status_code >= 400:
            error = classify_http_error(response.status_code, response.text, response.headers, self.name)
            if error.retryable or isinstance(error, RateLimitError):
                raise TransientError(error.message, self.name)
            raise error

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientError("EachLabs status response was not JSON", self.name) from e
        if not isinstance(payload, dict):
            raise TransientError("EachLabs status response was not an object", self.name)

        status = payload.get("status")
        if status == "success" and payload.get("output"):
            return PollResponse(state=JobStatus.SUCCEEDED, payload=payload["output"])
        if status == "error":
            return PollResponse(
                state=JobStatus.FAILED,
                message=payload.get("error") or payload.get("message") or "unknown error",
            )
        return PollResponse(state=JobStatus.PROCESSING)


class EachLabsClient(ImageProvider, ImageToImageProvider, VideoProvider):
    """FLUX Kontext / FLUX-2 edit / FLUX Krea images and Hailuo videos."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        client: httpx.AsyncClient,
        poller: JobPoller,
        storage: BlobStorage,
    ):
        """
        Initialize EachLabs client.

        Args:
            settings: Application settings
            logger: Logger instance
            client: HTTP client
            poller: Job poller used for every prediction
            storage: Scratch storage for reference images
        """
        self.settings = settings
        self.logger = logger
        self.client = client
        self.poller = poller
        self.storage = storage
        self.image_backend = EachLabsBackend(settings, client, ProviderKind.EACHLABS_FLUX)
        self.video_backend = EachLabsBackend(settings, client, ProviderKind.EACHLABS_HAILUO)

    async def generate_image(
        self,
        prompt: str,
        reference_images: Sequence[ImageData] = (),
        aspect_ratio: str = "16:9",
        model: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """
        Direct FLUX Kontext generation.

        With 2 or more reference images the multi-image model is used with the
        first two; otherwise the single-image model with at most one.
        """
        model = model or self.settings.image_model
        use_multi = len(reference_images) >= 2
        if use_multi:
            eachlabs_model = FLUX_MULTI_MODELS.get(model, FLUX_MULTI_MODELS["flux-kontext-pro"])
            staged_images = list(reference_images[:2])
        else:
            eachlabs_model = FLUX_SINGLE_MODELS.get(model, FLUX_SINGLE_MODELS["flux-kontext-pro"])
            staged_images = list(reference_images[:1])

        async with self.storage.staged(staged_images) as urls:
            model_input: dict[str, Any] = {
                "prompt": prompt,
                "output_format": "png",
                "aspect_ratio": aspect_ratio if aspect_ratio in SUPPORTED_ASPECT_RATIOS else "1:1",
                "safety_tolerance": MULTI_SAFETY_TOLERANCE if use_multi else SINGLE_SAFETY_TOLERANCE,
            }
            if use_multi:
                model_input["input_image_1"] = urls[0]
                model_input["input_image_2"] = urls[1]
            elif urls:
                model_input["input_image"] = urls[0]

            self.logger.info(f"Creating FLUX prediction (model: {eachlabs_model}, references: {len(urls)})")
            output_url = await self._run_image_job(eachlabs_model, model_input, cancel_token)

        return await self.download_image(output_url)

    async def generate_anchor(
        self,
        prompt: str,
        reference_images: Sequence[ImageData],
        aspect_ratio: str = "16:9",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """FLUX-2 multi-reference edit with 1 to 4 reference images."""
        if not 1 <= len(reference_images) <= self.max_reference_images:
            raise InvalidRequestError(
                f"Anchor generation needs 1-{self.max_reference_images} reference images, "
                f"got {len(reference_images)}",
                "eachlabs",
            )

        async with self.storage.staged(reference_images) as urls:
            model_input = {
                "prompt": prompt,
                "image_urls": urls,
                "aspect_ratio": aspect_ratio if aspect_ratio in SUPPORTED_ASPECT_RATIOS else "1:1",
                "guidance_scale": ANCHOR_GUIDANCE_SCALE,
                "output_format": "png",
            }
            self.logger.info(f"Creating anchor prediction with {len(urls)} reference images")
            output_url = await self._run_image_job(ANCHOR_MODEL, model_input, cancel_token)

        return await self.download_image(output_url)

    async def generate_variation(
        self,
        prompt: str,
        source_image: ImageData,
        strength: float,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """FLUX Krea image-to-image from source_image."""
        async with self.storage.staged([source_image]) as urls:
            model_input = {
                "prompt": prompt,
                "image_url": urls[0],
                "strength": max(0.0, min(1.0, strength)),
                "num_inference_steps": VARIATION_INFERENCE_STEPS,
                "guidance_scale": VARIATION_GUIDANCE_SCALE,
                "output_format": "png",
            }
            self.logger.info(f"Creating variation prediction (strength {model_input['strength']:.2f})")
            output_url = await self._run_image_job(VARIATION_MODEL, model_input, cancel_token)

        return await self.download_image(output_url)

    async def generate_video(
        self,
        source_image: ImageData,
        motion_prompt: str,
        duration_seconds: int = 10,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Hailuo image-to-video; returns the video URL (6 or 10 seconds)."""
        async with self.storage.staged([source_image]) as urls:
            request = {
                "model": HAILUO_MODEL,
                "input": {
                    "prompt": motion_prompt,
                    "prompt_optimizer": True,
                    "image_url": urls[0],
                    "duration": "10" if duration_seconds >= 10 else "6",
                },
            }
            self.logger.info(f"Creating Hailuo video prediction ({request['input']['duration']}s)")
            video_url = await self.poller.run(
                self.video_backend,
                request,
                self.settings.video_poll_interval_ms,
                self.settings.video_max_wait_ms,
                cancel_token,
            )

        self.logger.info(f"✅ Video generated: {video_url}")
        return video_url

    async def _run_image_job(
        self, model: str, model_input: dict[str, Any], cancel_token: Optional[CancellationToken]
    ) -> str:
        return await self.poller.run(
            self.image_backend,
            {"model": model, "input": model_input},
            self.settings.image_poll_interval_ms,
            self.settings.image_max_wait_ms,
            cancel_token,
        )

    async def download_image(self, url: str) -> ImageData:
        """Fetch a generated image and return it as base64 ImageData."""
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise TransientError(f"Image download failed: {e}", "eachlabs") from e
        if response.status_code >= 400:
            raise classify_http_error(response.status_code, None, response.headers, "eachlabs")

        content_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        return ImageData(mime_type=content_type, data=base64.b64encode(response.content).decode("ascii"))
