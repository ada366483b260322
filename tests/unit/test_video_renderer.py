"""Tests for Video Renderer service."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from PIL import Image

from reelforge.models.schemas import (
    AnimationConfig,
    AnimationType,
    CompositorScene,
    NarrationAudio,
    TransitionConfig,
    TransitionType,
)
from reelforge.services.timeline_compositor import TimelineCompositor
from reelforge.services.video_renderer import FrameRenderer, audio_fadein, audio_fadeout, cover_fit
from reelforge.utils.audio import pcm_to_wav, to_base64
from tests.conftest import make_image

STILL = AnimationConfig(type=AnimationType.NONE)


@pytest.fixture
def small_settings(settings):
    settings.video_width = 320
    settings.video_height = 180
    return settings


@pytest.fixture
def scenes():
    wav_bytes, duration_ms = pcm_to_wav(b"\x00\x00" * 24000)
    return [
        CompositorScene(
            id="red",
            order=0,
            duration_seconds=1,
            image=make_image((255, 0, 0)),
            narration_text="Red first.",
            narration_audio=NarrationAudio(mime_type="audio/wav", data=to_base64(wav_bytes), duration_ms=duration_ms),
            animation=STILL,
        ),
        CompositorScene(id="blue", order=1, duration_seconds=1, image=make_image((0, 0, 255)), animation=STILL),
    ]


@pytest.fixture
def renderer(small_settings, logger, scenes):
    compositor = TimelineCompositor(small_settings, logger)
    plan = compositor.build_render_plan(
        scenes, fps=10, transition=TransitionConfig(type=TransitionType.FADE, duration_in_frames=4)
    )
    return FrameRenderer(small_settings, logger, plan, scenes, compositor)


def test_cover_fit_fills_target():
    image = Image.new("RGBA", (100, 20), (0, 255, 0, 255))

    fitted = cover_fit(image, 64, 36)

    assert fitted.size == (64, 36)


def test_render_frame_shape_and_dtype(renderer):
    pixels = renderer.render_frame(0)

    assert pixels.shape == (180, 320, 3)
    assert pixels.dtype == np.uint8


def test_render_frame_draws_scene_image(renderer):
    # Frame 19 is the last frame of the blue scene, outside any transition
    pixels = renderer.render_frame(19)

    assert tuple(pixels[2, 2]) == (0, 0, 255)


def test_transition_blends_both_images(renderer):
    # Fade window covers frames 6-9 of the first scene; frame 8 is halfway
    pixels = renderer.render_frame(8)
    red, _, blue = (int(value) for value in pixels[2, 2])

    # Both layers are half transparent over the black canvas
    assert 50 < red < 80
    assert 115 < blue < 140


def test_subtitle_changes_pixels(renderer, small_settings, logger, scenes):
    silent_scenes = [scene.model_copy(update={"narration_text": ""}) for scene in scenes]
    silent = FrameRenderer(small_settings, logger, renderer.plan, silent_scenes)

    assert not np.array_equal(renderer.render_frame(3), silent.render_frame(3))


def test_render_frame_is_deterministic(renderer):
    assert np.array_equal(renderer.render_frame(7), renderer.render_frame(7))


def test_render_video_encodes_with_scene_audio(renderer, tmp_path):
    with patch("reelforge.services.video_renderer.VideoClip") as video_clip, patch(
        "reelforge.services.video_renderer.AudioFileClip"
    ) as audio_file_clip, patch("reelforge.services.video_renderer.CompositeAudioClip") as composite:
        audio = MagicMock()
        audio.duration = 1.0
        audio.fx.return_value = audio
        audio_file_clip.return_value = audio
        video = video_clip.return_value
        with_audio = video.set_audio.return_value

        output = renderer.render_video(tmp_path / "out" / "ad.mp4")

    assert output == tmp_path / "out" / "ad.mp4"
    assert video_clip.call_args.kwargs["duration"] == pytest.approx(2.0)
    audio.set_start.assert_called_once_with(0.0)
    assert [call.args for call in audio.fx.call_args_list] == [(audio_fadein, 0.3), (audio_fadeout, 0.3)]
    composite.assert_called_once()
    kwargs = with_audio.write_videofile.call_args.kwargs
    assert kwargs["codec"] == "libx264"
    assert kwargs["audio_codec"] == "aac"
    assert kwargs["fps"] == 10
    assert (tmp_path / "out").is_dir()


def test_render_video_rejects_empty_plan(small_settings, logger):
    compositor = TimelineCompositor(small_settings, logger)
    plan = compositor.build_render_plan([], fps=10)

    with pytest.raises(ValueError):
        FrameRenderer(small_settings, logger, plan, []).render_video(Path("unused.mp4"))
