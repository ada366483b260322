"""End-to-end tests for the scenario pipeline with fake providers."""

import asyncio
from unittest.mock import patch

import httpx
import pytest

from reelforge.core.errors import InvalidRequestError, PipelineDependencyError, TransientError
from reelforge.models.schemas import NarrationAudio, ProviderKind, Scenario, ScenarioAssets
from reelforge.pipelines import ScenarioPipeline, build_pipeline
from reelforge.services.batch_orchestrator import BatchOrchestrator
from reelforge.services.media_consistency import MediaConsistencyPipeline
from reelforge.services.narration_service import NarrationService
from reelforge.services.providers.base import ImageProvider, ImageToImageProvider, SpeechProvider, VideoProvider
from reelforge.services.providers.eachlabs import EachLabsClient
from reelforge.services.providers.gemini import GeminiClient
from reelforge.services.providers.openai_speech import OpenAISpeechClient
from tests.conftest import make_image


class FakeImages(ImageProvider):
    def __init__(self, anchor_error=None):
        self.anchor_error = anchor_error
        self.anchor_calls = 0
        self.direct_calls = 0

    async def generate_image(self, prompt, reference_images=(), aspect_ratio="16:9", cancel_token=None):
        self.direct_calls += 1
        return make_image((10, 200, 10))

    async def generate_anchor(self, prompt, reference_images, aspect_ratio="16:9", cancel_token=None):
        self.anchor_calls += 1
        if self.anchor_error:
            raise self.anchor_error
        return make_image((200, 10, 10))


class FakeVariations(ImageToImageProvider):
    def __init__(self, fail_scene=None):
        self.fail_scene = fail_scene
        self.calls = 0

    async def generate_variation(self, prompt, source_image, strength, cancel_token=None):
        self.calls += 1
        if self.fail_scene and f"number {self.fail_scene}" in prompt:
            raise TransientError("variation failed", "eachlabs")
        return make_image((10, 10, 200))


class FakeSpeech(SpeechProvider):
    provider_kind = ProviderKind.OPENAI

    def __init__(self):
        self.calls = 0

    async def synthesize(self, text, voice=None):
        self.calls += 1
        await asyncio.sleep(0)
        return NarrationAudio(mime_type="audio/mpeg", data="bXAz", duration_ms=9500)


class FakeVideo(VideoProvider):
    def __init__(self):
        self.sources = []

    async def generate_video(self, source_image, motion_prompt, duration_seconds=10, cancel_token=None):
        self.sources.append(source_image)
        return "https://cdn.test/hook.mp4"


@pytest.fixture
def scenario(sample_scenes):
    return Scenario(id="ad-1", title="Blender launch", scenes=sample_scenes)


@pytest.fixture
def make_pipeline(settings, logger, fake_clock):
    def factory(images=None, variations=None, speech=None, video=None):
        orchestrator = BatchOrchestrator(settings, logger, sleep=fake_clock.sleep)
        consistency = MediaConsistencyPipeline(
            settings, logger, images or FakeImages(), variations or FakeVariations(), orchestrator
        )
        narration = NarrationService(settings, logger, speech or FakeSpeech(), orchestrator)
        return ScenarioPipeline(settings, logger, consistency, narration, video_provider=video)

    return factory


def test_reference_images_use_anchor_and_variations(make_pipeline, scenario, sample_image):
    images, variations, speech = FakeImages(), FakeVariations(), FakeSpeech()
    pipeline = make_pipeline(images, variations, speech)

    assets = asyncio.run(pipeline.generate_assets(scenario, [sample_image]))

    assert images.anchor_calls == 1
    assert images.direct_calls == 0
    assert variations.calls == 4
    assert speech.calls == 5
    assert [scene.id for scene in assets.scenes] == [scene.id for scene in scenario.scenes]
    assert assets.failed_scene_numbers == []


def test_scene_durations_follow_narration_audio(make_pipeline, scenario, sample_image):
    pipeline = make_pipeline()

    assets = asyncio.run(pipeline.generate_assets(scenario, [sample_image]))

    # ceil(9.5s + 1s buffer) = 11s per scene
    assert all(scene.duration_seconds == 11 for scene in assets.scenes)
    assert assets.render_plan.total_frames == 5 * 11 * 30
    assert assets.render_plan.entries[3].start_frame == 3 * 330


def test_without_references_scenes_are_generated_directly(make_pipeline, scenario):
    images, variations = FakeImages(), FakeVariations()
    pipeline = make_pipeline(images, variations)

    assets = asyncio.run(pipeline.generate_assets(scenario))

    assert images.direct_calls == 5
    assert images.anchor_calls == 0
    assert variations.calls == 0
    assert len(assets.scenes) == 5


def test_anchor_failure_raises_after_narration_settles(make_pipeline, scenario, sample_image):
    speech, variations = FakeSpeech(), FakeVariations()
    pipeline = make_pipeline(FakeImages(anchor_error=TransientError("anchor down")), variations, speech)

    with pytest.raises(TransientError):
        asyncio.run(pipeline.generate_assets(scenario, [sample_image]))

    assert variations.calls == 0
    assert speech.calls == 5


def test_failed_scene_is_dropped_from_timeline(make_pipeline, scenario, sample_image):
    pipeline = make_pipeline(variations=FakeVariations(fail_scene=4))

    assets = asyncio.run(pipeline.generate_assets(scenario, [sample_image]))

    assert assets.failed_scene_numbers == [4]
    assert [scene.order for scene in assets.scenes] == [0, 1, 2, 3]
    assert "scene-4" not in [entry.scene_id for entry in assets.render_plan.entries]


def test_empty_scenario_is_rejected(make_pipeline):
    with pytest.raises(InvalidRequestError):
        asyncio.run(make_pipeline().generate_assets(Scenario(id="empty", scenes=[])))


def test_hook_video_animates_first_scene(make_pipeline, scenario, sample_image):
    video = FakeVideo()
    pipeline = make_pipeline(video=video)

    async def scenario_run():
        assets = await pipeline.generate_assets(scenario, [sample_image])
        return assets, await pipeline.generate_hook_video(assets, "slow push in")

    assets, url = asyncio.run(scenario_run())

    assert url == "https://cdn.test/hook.mp4"
    assert assets.hook_video_url == url
    assert video.sources == [assets.scenes[0].image]


def test_hook_video_needs_a_scene_image(make_pipeline):
    pipeline = make_pipeline(video=FakeVideo())

    with pytest.raises(PipelineDependencyError):
        asyncio.run(pipeline.generate_hook_video(ScenarioAssets(scenario_id="x"), "push in"))


def test_render_and_render_parts(make_pipeline, scenario, sample_image, tmp_path):
    pipeline = make_pipeline()
    assets = asyncio.run(pipeline.generate_assets(scenario, [sample_image]))

    with patch("reelforge.pipelines.run_scenario_pipeline.FrameRenderer") as renderer_class:
        renderer_class.return_value.render_video.side_effect = lambda path: path
        single = pipeline.render(assets, tmp_path / "ad.mp4")
        parts = pipeline.render_parts(assets, tmp_path)

    assert single == tmp_path / "ad.mp4"
    assert parts == [tmp_path / "ad-1_part1.mp4", tmp_path / "ad-1_part2.mp4"]
    part_scene_counts = [len(call.args[3]) for call in renderer_class.call_args_list[1:]]
    assert part_scene_counts == [3, 2]


def test_build_pipeline_selects_providers(settings, logger):
    settings.tts_provider = "gemini"
    client = httpx.AsyncClient()

    pipeline = build_pipeline(settings, logger, client)

    assert isinstance(pipeline.consistency.image_provider, EachLabsClient)
    assert isinstance(pipeline.narration.speech_provider, GeminiClient)
    assert pipeline.narration.window_delay_ms() == 5000
    asyncio.run(client.aclose())


def test_build_pipeline_defaults_to_openai_speech(settings, logger):
    settings.image_model = "gemini-2.5-flash-image"
    client = httpx.AsyncClient()

    pipeline = build_pipeline(settings, logger, client)

    assert isinstance(pipeline.consistency.image_provider, GeminiClient)
    assert isinstance(pipeline.narration.speech_provider, OpenAISpeechClient)
    asyncio.run(client.aclose())


def test_unknown_image_model_is_rejected(settings, logger):
    settings.image_model = "not-a-model"

    with pytest.raises(InvalidRequestError):
        build_pipeline(settings, logger, httpx.AsyncClient())
