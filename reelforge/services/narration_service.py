"""Narration Service - batched speech synthesis for scenario scenes."""

from typing import Any, Optional, Sequence

from reelforge.core.config import Settings
from reelforge.core.logging_config import get_logger
from reelforge.models.schemas import BatchTask, FailurePolicy, NarrationAudio, ProviderKind, ScenarioScene
from reelforge.services.batch_orchestrator import BatchOrchestrator
from reelforge.services.providers.base import SpeechProvider


class NarrationService:
    """Turns scene narration into audio, a window of scenes at a time."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        speech_provider: SpeechProvider,
        orchestrator: Optional[BatchOrchestrator] = None,
    ):
        """
        Initialize narration service.

        Args:
            settings: Application settings
            logger: Logger instance
            speech_provider: OpenAI or Gemini speech client
            orchestrator: Batch orchestrator (created if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.speech_provider = speech_provider
        self.orchestrator = orchestrator or BatchOrchestrator(settings, logger)

    def window_delay_ms(self) -> int:
        """Delay between windows; Gemini speech is throttled harder than OpenAI."""
        if self.speech_provider.provider_kind == ProviderKind.GEMINI:
            return self.settings.gemini_tts_window_delay_ms
        return self.settings.openai_tts_window_delay_ms

    async def synthesize_scene(self, scene: ScenarioScene, voice: Optional[str] = None) -> NarrationAudio:
        """Synthesize one scene's narration."""
        scene_logger = get_logger(__name__, scene_number=scene.scene_number)
        if not scene.narration.strip():
            raise ValueError(f"Scene {scene.scene_number} has no narration")

        audio = await self.speech_provider.synthesize(scene.narration, voice or self.settings.tts_voice)
        scene_logger.info(f"✅ Narration for scene {scene.scene_number}: {audio.duration_ms / 1000:.1f}s")
        return audio

    async def generate_narrations(
        self,
        scenes: Sequence[ScenarioScene],
        voice: Optional[str] = None,
        batch_size: Optional[int] = None,
    ) -> list[BatchTask]:
        """
        Synthesize narration for every scene; one failure never stops the rest.

        Args:
            scenes: Scenes with narration text
            voice: Voice override
            batch_size: Scenes per window (defaults to settings)

        Returns:
            One BatchTask per scene, payload NarrationAudio on success
        """
        self.logger.info(f"Generating narration for {len(scenes)} scenes")

        async def worker(scene: ScenarioScene) -> NarrationAudio:
            return await self.synthesize_scene(scene, voice)

        tasks = await self.orchestrator.run(
            list(scenes),
            worker,
            batch_size=batch_size or self.settings.narration_batch_size,
            inter_window_delay_ms=self.window_delay_ms(),
            failure_policy=FailurePolicy.COLLECT_ALL,
            labels=[f"Narration scene {scene.scene_number}" for scene in scenes],
            scene_numbers=[scene.scene_number for scene in scenes],
        )

        failed = [task.scene_number for task in tasks if task.failed]
        if failed:
            self.logger.warning(f"❌ Narration failed for scenes {failed}")
        return tasks
