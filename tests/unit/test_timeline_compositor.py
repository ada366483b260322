"""Tests for Timeline Compositor service."""

import pytest

from reelforge.models.schemas import (
    AnimationConfig,
    AnimationType,
    CompositorScene,
    NarrationAudio,
    TransitionConfig,
    TransitionType,
)
from reelforge.services.timeline_compositor import TimelineCompositor


@pytest.fixture
def compositor(settings, logger):
    return TimelineCompositor(settings, logger)


@pytest.fixture
def scenes(sample_image):
    """Three scenes of 8s, 5.5s and 10s; the second one narrated."""
    return [
        CompositorScene(id="a", order=0, duration_seconds=8, image=sample_image),
        CompositorScene(
            id="b",
            order=1,
            duration_seconds=5.5,
            image=sample_image,
            narration_text="A short line.",
            narration_audio=NarrationAudio(data="", duration_ms=4000),
        ),
        CompositorScene(
            id="c",
            order=2,
            duration_seconds=10,
            image=sample_image,
            animation=AnimationConfig(type=AnimationType.ZOOM, intensity=1.0),
        ),
    ]


def test_entries_are_contiguous(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    assert [entry.duration_in_frames for entry in plan.entries] == [240, 165, 300]
    assert [entry.start_frame for entry in plan.entries] == [0, 240, 405]
    for previous, current in zip(plan.entries, plan.entries[1:]):
        assert current.start_frame == previous.end_frame


@pytest.mark.parametrize(
    "transition",
    [
        TransitionConfig(type=TransitionType.NONE, duration_in_frames=0),
        TransitionConfig(type=TransitionType.FADE, duration_in_frames=15),
        TransitionConfig(type=TransitionType.SLIDE, duration_in_frames=45),
    ],
)
def test_total_frames_do_not_depend_on_transitions(compositor, scenes, transition):
    plan = compositor.build_render_plan(scenes, fps=30, transition=transition)

    assert plan.total_frames == 705
    assert plan.duration_seconds == pytest.approx(23.5)


def test_half_frames_round_up(compositor, sample_image):
    scene = CompositorScene(id="x", order=0, duration_seconds=2.5, image=sample_image)

    plan = compositor.build_render_plan([scene], fps=25)

    # 62.5 frames
    assert plan.total_frames == 63


def test_default_transition_comes_from_settings(compositor, scenes):
    plan = compositor.build_render_plan(scenes)

    assert plan.fps == 30
    assert plan.transition.type == TransitionType.FADE
    assert plan.transition.duration_in_frames == 15


def test_locate_frame(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    assert compositor.locate_frame(plan, 0) == (0, 0)
    assert compositor.locate_frame(plan, 239) == (0, 239)
    assert compositor.locate_frame(plan, 240) == (1, 0)
    assert compositor.locate_frame(plan, 704) == (2, 299)
    assert compositor.locate_frame(plan, 5000) == (2, 299)


def test_locate_frame_on_empty_plan_raises(compositor):
    plan = compositor.build_render_plan([], fps=30)

    with pytest.raises(ValueError):
        compositor.locate_frame(plan, 0)


def test_single_layer_outside_transition(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    composition = compositor.compose_frame(plan, scenes, 224)

    assert [layer.scene_id for layer in composition.layers] == ["a"]
    assert composition.layers[0].opacity == 1.0


def test_transition_blends_next_scene_over_tail(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    start = compositor.compose_frame(plan, scenes, 225)
    late = compositor.compose_frame(plan, scenes, 239)

    assert [layer.scene_id for layer in start.layers] == ["a", "b"]
    assert start.layers[0].opacity == 1.0
    assert start.layers[1].opacity == 0.0
    assert late.layers[1].opacity == pytest.approx(14 / 15)
    assert late.scene_index == 0


def test_last_scene_has_no_outgoing_transition(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    composition = compositor.compose_frame(plan, scenes, 704)

    assert [layer.scene_id for layer in composition.layers] == ["c"]


def test_incoming_layer_starts_at_its_first_motion_frame(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    composition = compositor.compose_frame(plan, scenes, 400)

    assert composition.layers[1].scene_id == "c"
    assert composition.layers[1].transform.scale == pytest.approx(1.0)


def test_subtitle_follows_narration(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    during = compositor.compose_frame(plan, scenes, 240 + 60)
    after_audio = compositor.compose_frame(plan, scenes, 240 + 130)
    silent = compositor.compose_frame(plan, scenes, 100)

    assert during.subtitle.text == "A short line."
    assert after_audio.subtitle is None
    assert silent.subtitle is None


def test_compose_frame_is_deterministic(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    assert compositor.compose_frame(plan, scenes, 230) == compositor.compose_frame(plan, scenes, 230)


def test_compose_frame_rejects_mismatched_scenes(compositor, scenes):
    plan = compositor.build_render_plan(scenes, fps=30)

    with pytest.raises(ValueError):
        compositor.compose_frame(plan, scenes[:2], 0)


@pytest.mark.parametrize(
    "audio_ms,nominal,expected",
    [
        (4200, 6, 8.0),
        (9500, 6, 11.0),
        (7000, 6, 8.0),
        (None, 6.5, 6.5),
        (0, 12, 12),
    ],
)
def test_scene_duration_seconds(compositor, audio_ms, nominal, expected):
    assert compositor.scene_duration_seconds(audio_ms, nominal) == expected


@pytest.mark.parametrize("count,first,second", [(5, 3, 2), (6, 3, 3), (1, 1, 0)])
def test_split_for_export(compositor, count, first, second):
    part1, part2 = compositor.split_for_export(list(range(count)))

    assert (len(part1), len(part2)) == (first, second)
    assert part1 + part2 == list(range(count))
