"""Media Consistency Pipeline - one anchor image, every other scene derived from it."""

from typing import Any, Optional, Sequence

from reelforge.core.config import Settings
from reelforge.core.errors import InvalidRequestError, PipelineDependencyError
from reelforge.core.logging_config import get_logger
from reelforge.models.schemas import (
    BatchOutcome,
    BatchTask,
    FailurePolicy,
    ImageData,
    OutcomeState,
    ScenarioScene,
    StoryBeat,
)
from reelforge.services.batch_orchestrator import BatchOrchestrator
from reelforge.services.job_poller import CancellationToken
from reelforge.services.providers.base import ImageProvider, ImageToImageProvider
from reelforge.utils.error_handler import format_error_message, retry_async
from reelforge.utils.frames import clamp

# Least to most deviation from the anchor
BEAT_STRENGTHS: dict[StoryBeat, float] = {
    StoryBeat.DISCOVERY: 0.25,
    StoryBeat.REASON: 0.35,
    StoryBeat.STORY: 0.45,
    StoryBeat.EXPERIENCE: 0.55,
    StoryBeat.HOOK: 0.75,
}
DEFAULT_STRENGTH = 0.5

STYLE_PREFIXES = {
    "photorealistic": "Photorealistic cinematic scene for advertisement",
    "animation": "High-quality anime style illustration for advertisement",
    "illustration": "Professional digital illustration for advertisement",
    "cinematic": "Cinematic film still for advertisement",
    "watercolor": "Watercolor painting style scene for advertisement",
    "3d_render": "High-quality 3D rendered scene for advertisement",
}

NO_TEXT_CLAUSE = (
    "absolutely no visible text, letters, numbers, or writing in any language "
    "including on screens, signs, labels, and packaging, no watermarks"
)

DIRECT_RETRY_DELAYS = (2.0, 4.0)


def strength_for_beat(beat: Optional[StoryBeat]) -> float:
    """Image-to-image strength for a story beat, always within [0, 1]."""
    if beat is None:
        return DEFAULT_STRENGTH
    return clamp(BEAT_STRENGTHS.get(beat, DEFAULT_STRENGTH))


def build_scene_prompt(scene: ScenarioScene, image_style: str = "photorealistic") -> str:
    """
    Image prompt for a scene: style prefix, no-text clause, mood and camera.

    Args:
        scene: Scenario scene
        image_style: Key of STYLE_PREFIXES (unknown keys fall back to photorealistic)

    Returns:
        Prompt text
    """
    prefix = STYLE_PREFIXES.get(image_style, STYLE_PREFIXES["photorealistic"])
    mood = f", {scene.mood} mood" if scene.mood else ""
    camera = f", {scene.camera_angle.lower()} shot" if scene.camera_angle else ""
    return f"{prefix}, {NO_TEXT_CLAUSE}{mood}{camera}. {scene.image_prompt}"


class MediaConsistencyPipeline:
    """Generates visually consistent scene images around a single anchor."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        image_provider: ImageProvider,
        variation_provider: ImageToImageProvider,
        orchestrator: Optional[BatchOrchestrator] = None,
        priority_beats: Sequence[StoryBeat] = (StoryBeat.DISCOVERY,),
    ):
        """
        Initialize consistency pipeline.

        Args:
            settings: Application settings
            logger: Logger instance
            image_provider: Direct and multi-reference image generation
            variation_provider: Image-to-image generation
            orchestrator: Batch orchestrator (created if omitted)
            priority_beats: Beats preferred for the anchor scene
        """
        self.settings = settings
        self.logger = logger
        self.image_provider = image_provider
        self.variation_provider = variation_provider
        self.orchestrator = orchestrator or BatchOrchestrator(settings, logger)
        self.priority_beats = tuple(priority_beats)

    def select_anchor(self, scenes: Sequence[ScenarioScene]) -> int:
        """
        Index of the anchor scene: first scene with a priority beat, else 0.

        Raises:
            ValueError: If scenes is empty
        """
        if not scenes:
            raise ValueError("No scenes to anchor")
        for index, scene in enumerate(scenes):
            if scene.story_beat in self.priority_beats:
                return index
        return 0

    async def generate_anchor(
        self,
        scene: ScenarioScene,
        reference_images: Sequence[ImageData],
        aspect_ratio: str = "16:9",
        image_style: str = "photorealistic",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """
        Anchor image from 1-4 reference images.

        Raises:
            InvalidRequestError: If the reference count is outside 1..max_reference_images
        """
        limit = self.image_provider.max_reference_images
        if not 1 <= len(reference_images) <= limit:
            raise InvalidRequestError(
                f"Anchor generation needs 1-{limit} reference images, got {len(reference_images)}"
            )

        prompt = build_scene_prompt(scene, image_style)
        self.logger.info(
            f"Generating anchor from scene {scene.scene_number} with {len(reference_images)} reference images"
        )
        return await self.image_provider.generate_anchor(
            prompt, reference_images, aspect_ratio, cancel_token=cancel_token
        )

    async def generate_variation(
        self,
        scene: ScenarioScene,
        anchor_image: Optional[ImageData],
        image_style: str = "photorealistic",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """
        Derive a scene image from the anchor.

        Raises:
            PipelineDependencyError: If there is no anchor image
        """
        if anchor_image is None:
            raise PipelineDependencyError(
                f"Scene {scene.scene_number} variation requested before an anchor image exists"
            )

        strength = strength_for_beat(scene.story_beat)
        scene_logger = get_logger(__name__, scene_number=scene.scene_number)
        scene_logger.debug(f"Variation for scene {scene.scene_number} (beat {scene.story_beat}, strength {strength})")
        image = await self.variation_provider.generate_variation(
            build_scene_prompt(scene, image_style), anchor_image, strength, cancel_token=cancel_token
        )
        scene_logger.info(f"✅ Variation image for scene {scene.scene_number}")
        return image

    async def run(
        self,
        scenes: Sequence[ScenarioScene],
        reference_images: Sequence[ImageData],
        aspect_ratio: str = "16:9",
        image_style: str = "photorealistic",
        failure_policy: FailurePolicy = FailurePolicy.COLLECT_ALL,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[BatchTask]:
        """
        Anchor first, then every other scene as a variation of it.

        An anchor failure is raised and no variation is attempted. Variation
        failures are recorded per scene.

        Args:
            scenes: Scenes in playback order
            reference_images: 1-4 reference images (e.g. a product photo)
            aspect_ratio: 16:9, 9:16 or 1:1
            image_style: Style prefix key
            failure_policy: Policy for the variation batch
            cancel_token: Optional cancellation token

        Returns:
            One BatchTask per scene, in input order, payload ImageData
        """
        anchor_index = self.select_anchor(scenes)
        anchor_scene = scenes[anchor_index]

        try:
            anchor_image = await self.generate_anchor(
                anchor_scene, reference_images, aspect_ratio, image_style, cancel_token
            )
        except Exception as e:
            self.logger.error(
                format_error_message("Anchor generation", e, {"scene_number": anchor_scene.scene_number})
            )
            raise
        self.logger.info(f"✅ Anchor image ready (scene {anchor_scene.scene_number})")

        others = [(i, scene) for i, scene in enumerate(scenes) if i != anchor_index]

        async def worker(scene: ScenarioScene) -> ImageData:
            return await self.generate_variation(scene, anchor_image, image_style, cancel_token)

        variation_tasks = await self.orchestrator.run(
            [scene for _, scene in others],
            worker,
            batch_size=self.settings.image_batch_size,
            inter_window_delay_ms=self.settings.image_window_delay_ms,
            failure_policy=failure_policy,
            labels=[f"Variation scene {scene.scene_number}" for _, scene in others],
        )

        results: list[Optional[BatchTask]] = [None] * len(scenes)
        results[anchor_index] = BatchTask(
            index=anchor_index,
            scene_number=anchor_scene.scene_number,
            input=anchor_scene,
            outcome=BatchOutcome(state=OutcomeState.SUCCESS, payload=anchor_image),
        )

        for (original_index, scene), task in zip(others, variation_tasks):
            results[original_index] = BatchTask(
                index=original_index,
                scene_number=scene.scene_number,
                input=scene,
                outcome=task.outcome,
            )
        return results

    async def generate_direct(
        self,
        scene: ScenarioScene,
        reference_images: Sequence[ImageData] = (),
        aspect_ratio: str = "16:9",
        image_style: str = "photorealistic",
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImageData:
        """Single scene image without an anchor, retrying transient failures."""
        prompt = build_scene_prompt(scene, image_style)
        scene_logger = get_logger(__name__, scene_number=scene.scene_number)

        async def attempt() -> ImageData:
            return await self.image_provider.generate_image(
                prompt, reference_images, aspect_ratio, cancel_token=cancel_token
            )

        image = await retry_async(
            attempt,
            attempts=self.settings.image_retry_attempts,
            delays=DIRECT_RETRY_DELAYS,
            logger=scene_logger,
            operation=f"Scene {scene.scene_number} image",
            sleep=self.orchestrator.sleep,
        )
        scene_logger.info(f"✅ Image for scene {scene.scene_number}")
        return image

    async def generate_direct_batch(
        self,
        scenes: Sequence[ScenarioScene],
        reference_images: Sequence[ImageData] = (),
        aspect_ratio: str = "16:9",
        image_style: str = "photorealistic",
        failure_policy: FailurePolicy = FailurePolicy.STOP_ON_FIRST_FAILURE,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[BatchTask]:
        """Direct generation for every scene, in image-sized windows."""

        async def worker(scene: ScenarioScene) -> ImageData:
            return await self.generate_direct(scene, reference_images, aspect_ratio, image_style, cancel_token)

        return await self.orchestrator.run(
            list(scenes),
            worker,
            batch_size=self.settings.image_batch_size,
            inter_window_delay_ms=self.settings.image_window_delay_ms,
            failure_policy=failure_policy,
            labels=[f"Image scene {scene.scene_number}" for scene in scenes],
            scene_numbers=[scene.scene_number for scene in scenes],
        )
