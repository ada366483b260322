"""Shared pytest fixtures and configuration."""

import base64
import io

import pytest
from PIL import Image

from reelforge.core.config import Settings
from reelforge.core.logging_config import get_logger
from reelforge.models.schemas import ImageData, ScenarioScene, StoryBeat


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_image(color: tuple[int, int, int] = (200, 30, 30), size: tuple[int, int] = (64, 36)) -> ImageData:
    """Small solid-colour PNG as ImageData."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return ImageData(mime_type="image/png", data=base64.b64encode(buffer.getvalue()).decode("ascii"))


@pytest.fixture
def settings():
    """Create test settings instance."""
    return Settings(
        eachlabs_api_key="test-eachlabs-key",
        gemini_api_key="test-gemini-key",
        openai_api_key="test-openai-key",
        blob_api_url="https://blob.test",
        blob_token="test-blob-token",
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def fake_clock():
    """Deterministic clock and sleep."""
    return FakeClock()


@pytest.fixture
def sample_image():
    return make_image()


@pytest.fixture
def sample_scenes():
    """Five ad scenes covering every story beat."""
    beats = [StoryBeat.HOOK, StoryBeat.DISCOVERY, StoryBeat.STORY, StoryBeat.EXPERIENCE, StoryBeat.REASON]
    return [
        ScenarioScene(
            id=f"scene-{i}",
            scene_number=i,
            narration=f"Narration for scene {i}. It talks about the product.",
            image_prompt=f"A product shot number {i}",
            mood="warm",
            camera_angle="Close-up",
            story_beat=beat,
            duration_seconds=8,
        )
        for i, beat in enumerate(beats, start=1)
    ]
