"""Scenario pipeline - scenario → images + narration → render plan → mp4."""

import asyncio
from pathlib import Path
from typing import Any, Optional, Sequence

import httpx

from reelforge.core.config import Settings
from reelforge.core.errors import InvalidRequestError, PipelineDependencyError
from reelforge.core.logging_config import get_logger, setup_logging
from reelforge.models.schemas import (
    AnimationConfig,
    AnimationType,
    BatchTask,
    CompositorScene,
    Direction,
    FailurePolicy,
    ImageData,
    ProviderKind,
    Scenario,
    ScenarioAssets,
)
from reelforge.services.batch_orchestrator import BatchOrchestrator
from reelforge.services.job_poller import CancellationToken, JobPoller
from reelforge.services.media_consistency import MediaConsistencyPipeline
from reelforge.services.narration_service import NarrationService
from reelforge.services.providers.base import (
    ImageProvider,
    SpeechProvider,
    VideoProvider,
    resolve_provider_kind,
    resolve_tts_provider_kind,
)
from reelforge.services.providers.eachlabs import EachLabsClient
from reelforge.services.providers.gemini import GeminiClient
from reelforge.services.providers.openai_speech import OpenAISpeechClient
from reelforge.services.storage import BlobStorage
from reelforge.services.timeline_compositor import TimelineCompositor
from reelforge.services.video_renderer import FrameRenderer


class ScenarioPipeline:
    """Runs a scenario through image, narration and timeline generation."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        consistency: MediaConsistencyPipeline,
        narration: NarrationService,
        compositor: Optional[TimelineCompositor] = None,
        video_provider: Optional[VideoProvider] = None,
    ):
        """
        Initialize scenario pipeline.

        Args:
            settings: Application settings
            logger: Logger instance
            consistency: Scene image generation
            narration: Scene narration generation
            compositor: Timeline compositor (created if omitted)
            video_provider: Optional hook-video provider
        """
        self.settings = settings
        self.logger = logger
        self.consistency = consistency
        self.narration = narration
        self.compositor = compositor or TimelineCompositor(settings, logger)
        self.video_provider = video_provider

    async def generate_assets(
        self,
        scenario: Scenario,
        reference_images: Sequence[ImageData] = (),
        voice: Optional[str] = None,
        image_failure_policy: Optional[FailurePolicy] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ScenarioAssets:
        """
        Generate images and narration concurrently, then build the render plan.

        With reference images the anchor/variation pipeline is used, otherwise
        every scene is generated directly. An anchor failure is raised once the
        narration batch has settled.

        Args:
            scenario: Scenario to render
            reference_images: Optional 1-4 reference images
            voice: Narration voice override
            image_failure_policy: Policy for the image batch
            cancel_token: Optional cancellation token

        Returns:
            ScenarioAssets with compositor scenes and render plan
        """
        run_logger = get_logger(__name__, scenario_id=scenario.id)
        run_logger.info("=" * 60)
        run_logger.info(f"Scenario {scenario.id}: {len(scenario.scenes)} scenes")
        run_logger.info("=" * 60)

        if not scenario.scenes:
            raise InvalidRequestError(f"Scenario {scenario.id} has no scenes")

        if reference_images:
            run_logger.info("Step 1a: Generating anchor and variation images...")
            images = self.consistency.run(
                scenario.scenes,
                reference_images,
                aspect_ratio=scenario.aspect_ratio,
                image_style=scenario.image_style,
                failure_policy=image_failure_policy or FailurePolicy.COLLECT_ALL,
                cancel_token=cancel_token,
            )
        else:
            run_logger.info("Step 1a: Generating scene images...")
            images = self.consistency.generate_direct_batch(
                scenario.scenes,
                aspect_ratio=scenario.aspect_ratio,
                image_style=scenario.image_style,
                failure_policy=image_failure_policy or FailurePolicy.STOP_ON_FIRST_FAILURE,
                cancel_token=cancel_token,
            )

        narrated = [scene for scene in scenario.scenes if scene.narration.strip()]
        run_logger.info(f"Step 1b: Generating narration for {len(narrated)} scenes...")
        image_result, narration_result = await asyncio.gather(
            images, self.narration.generate_narrations(narrated, voice), return_exceptions=True
        )
        if isinstance(image_result, BaseException):
            raise image_result
        if isinstance(narration_result, BaseException):
            raise narration_result

        assets = ScenarioAssets(
            scenario_id=scenario.id,
            image_tasks=image_result,
            narration_tasks=narration_result,
        )

        run_logger.info("Step 2: Assembling timeline...")
        assets.scenes = self.assemble_scenes(scenario, image_result, narration_result)
        assets.failed_scene_numbers = [
            scene.scene_number for scene, task in zip(scenario.scenes, image_result) if not task.succeeded
        ]
        if assets.scenes:
            assets.render_plan = self.compositor.build_render_plan(assets.scenes)
        else:
            run_logger.warning("❌ No scene has an image; nothing to render")

        run_logger.info(
            f"✅ Scenario {scenario.id}: {len(assets.scenes)}/{len(scenario.scenes)} scenes ready"
        )
        return assets

    def assemble_scenes(
        self,
        scenario: Scenario,
        image_tasks: Sequence[BatchTask],
        narration_tasks: Sequence[BatchTask],
    ) -> list[CompositorScene]:
        """Compositor scenes for every scene that has an image, in scenario order."""
        audio_by_scene = {
            task.scene_number: task.outcome.payload for task in narration_tasks if task.succeeded
        }
        animation = AnimationConfig(
            type=AnimationType.KEN_BURNS,
            direction=Direction.IN,
            intensity=self.settings.ken_burns_intensity,
        )

        scenes = []
        for scene, image_task in zip(scenario.scenes, image_tasks):
            if not image_task.succeeded:
                self.logger.warning(f"Scene {scene.scene_number} has no image ({image_task.outcome.reason}), skipping")
                continue
            audio = audio_by_scene.get(scene.scene_number)
            scenes.append(
                CompositorScene(
                    id=scene.id,
                    order=len(scenes),
                    duration_seconds=self.compositor.scene_duration_seconds(
                        audio.duration_ms if audio else None, scene.duration_seconds
                    ),
                    image=image_task.outcome.payload,
                    narration_text=scene.narration,
                    narration_audio=audio,
                    mood=scene.mood,
                    camera_angle=scene.camera_angle,
                    story_beat=scene.story_beat,
                    animation=animation,
                )
            )
        return scenes

    async def generate_hook_video(
        self,
        assets: ScenarioAssets,
        motion_prompt: str,
        duration_seconds: int = 10,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Animate the first scene image into a short hook video.

        Raises:
            PipelineDependencyError: If no scene image exists yet
        """
        if self.video_provider is None:
            raise InvalidRequestError("No video provider configured")
        if not assets.scenes:
            raise PipelineDependencyError("Hook video needs at least one generated scene image")

        self.logger.info("Generating hook video from the first scene...")
        assets.hook_video_url = await self.video_provider.generate_video(
            assets.scenes[0].image, motion_prompt, duration_seconds, cancel_token=cancel_token
        )
        return assets.hook_video_url

    def render(self, assets: ScenarioAssets, output_path: Path) -> Path:
        """Encode the render plan to an mp4."""
        if assets.render_plan is None:
            raise PipelineDependencyError("Render requested before a render plan exists")
        renderer = FrameRenderer(self.settings, self.logger, assets.render_plan, assets.scenes, self.compositor)
        return renderer.render_video(output_path)

    def render_parts(self, assets: ScenarioAssets, output_dir: Path) -> list[Path]:
        """Encode a long video as two parts split at ceil(n/2) scenes."""
        if not assets.scenes:
            raise PipelineDependencyError("Render requested before any scene image exists")

        paths = []
        for number, part in enumerate(self.compositor.split_for_export(assets.scenes), start=1):
            if not part:
                continue
            plan = self.compositor.build_render_plan(part)
            renderer = FrameRenderer(self.settings, self.logger, plan, part, self.compositor)
            paths.append(renderer.render_video(output_dir / f"{assets.scenario_id}_part{number}.mp4"))
        return paths


def build_pipeline(settings: Settings, logger: Any, client: httpx.AsyncClient) -> ScenarioPipeline:
    """
    Wire providers from settings.

    Args:
        settings: Application settings
        logger: Logger instance
        client: Shared HTTP client

    Returns:
        Ready ScenarioPipeline
    """
    poller = JobPoller(settings, logger)
    orchestrator = BatchOrchestrator(settings, logger)
    storage = BlobStorage(settings, logger, client)
    eachlabs = EachLabsClient(settings, logger, client, poller, storage)
    gemini = GeminiClient(settings, logger, client)

    image_provider: ImageProvider
    if resolve_provider_kind(settings.image_model) == ProviderKind.GEMINI:
        image_provider = gemini
    else:
        image_provider = eachlabs

    speech_provider: SpeechProvider
    if resolve_tts_provider_kind(settings.tts_provider) == ProviderKind.GEMINI:
        speech_provider = gemini
    else:
        speech_provider = OpenAISpeechClient(settings, logger)

    consistency = MediaConsistencyPipeline(settings, logger, image_provider, eachlabs, orchestrator)
    narration = NarrationService(settings, logger, speech_provider, orchestrator)
    return ScenarioPipeline(settings, logger, consistency, narration, video_provider=eachlabs)


async def run_scenario(
    scenario: Scenario,
    output_path: Path,
    settings: Optional[Settings] = None,
    reference_images: Sequence[ImageData] = (),
) -> ScenarioAssets:
    """Generate assets for a scenario and render them to output_path."""
    settings = settings or Settings()
    setup_logging(log_level=settings.log_level)
    logger = get_logger(__name__)

    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds)) as client:
        pipeline = build_pipeline(settings, logger, client)
        assets = await pipeline.generate_assets(scenario, reference_images)

    if assets.render_plan is not None:
        await asyncio.to_thread(pipeline.render, assets, output_path)
    return assets
