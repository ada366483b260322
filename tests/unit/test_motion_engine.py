"""Tests for Motion Engine."""

import pytest

from reelforge.models.schemas import AnimationConfig, AnimationType, Direction, Transform, TransitionType
from reelforge.services.motion_engine import combine, compute_transform, compute_transition_frame, progress


def test_progress_is_clamped():
    assert progress(-5, 100) == 0.0
    assert progress(50, 100) == 0.5
    assert progress(150, 100) == 1.0
    assert progress(3, 0) == 1.0


def test_ken_burns_in_scales_from_one_to_max():
    animation = AnimationConfig(type=AnimationType.KEN_BURNS, direction=Direction.IN, intensity=0.5)

    assert compute_transform(0, 240, animation).scale == pytest.approx(1.0)
    assert compute_transform(240, 240, animation).scale == pytest.approx(1.15)


def test_ken_burns_in_is_monotonic_and_clamped():
    animation = AnimationConfig(type=AnimationType.KEN_BURNS, direction=Direction.IN, intensity=0.5)

    scales = [compute_transform(frame, 240, animation).scale for frame in range(0, 300)]

    assert scales == sorted(scales)
    assert max(scales) == pytest.approx(1.15)
    assert compute_transform(1000, 240, animation).scale == pytest.approx(1.15)
    assert compute_transform(-10, 240, animation).scale == pytest.approx(1.0)


def test_ken_burns_out_reverses_in():
    zoom_in = AnimationConfig(type=AnimationType.KEN_BURNS, direction=Direction.IN, intensity=1.0)
    zoom_out = AnimationConfig(type=AnimationType.KEN_BURNS, direction=Direction.OUT, intensity=1.0)

    for frame in (0, 60, 120, 240):
        forward = compute_transform(frame, 240, zoom_in)
        backward = compute_transform(240 - frame, 240, zoom_out)
        assert forward.scale == pytest.approx(backward.scale)
        assert forward.translate_x_percent == pytest.approx(backward.translate_x_percent)


def test_ken_burns_drifts_while_zooming():
    animation = AnimationConfig(type=AnimationType.KEN_BURNS, direction=Direction.IN, intensity=1.0)

    end = compute_transform(240, 240, animation)

    assert end.translate_x_percent == pytest.approx(5.0)
    assert end.translate_y_percent == pytest.approx(-2.5)


def test_zoom_has_no_translation():
    animation = AnimationConfig(type=AnimationType.ZOOM, direction=Direction.OUT, intensity=1.0)

    start = compute_transform(0, 100, animation)
    end = compute_transform(100, 100, animation)

    assert start.scale == pytest.approx(1.3)
    assert end.scale == pytest.approx(1.0)
    assert start.translate_x_percent == 0.0
    assert end.translate_y_percent == 0.0


@pytest.mark.parametrize(
    "direction,axis,start,end",
    [
        (Direction.LEFT, "translate_x_percent", 2.5, -2.5),
        (Direction.RIGHT, "translate_x_percent", -2.5, 2.5),
        (Direction.UP, "translate_y_percent", 2.5, -2.5),
        (Direction.DOWN, "translate_y_percent", -2.5, 2.5),
    ],
)
def test_pan_directions(direction, axis, start, end):
    animation = AnimationConfig(type=AnimationType.PAN, direction=direction, intensity=0.5)

    first = compute_transform(0, 90, animation)
    last = compute_transform(90, 90, animation)

    assert getattr(first, axis) == pytest.approx(start)
    assert getattr(last, axis) == pytest.approx(end)
    # Panned images are enlarged so the edges never show
    assert first.scale == pytest.approx(1.1)


def test_none_animation_is_identity():
    animation = AnimationConfig(type=AnimationType.NONE)

    assert compute_transform(42, 90, animation) == Transform()


def test_fade_transition_endpoints():
    start = compute_transition_frame(0, 15, TransitionType.FADE)
    end = compute_transition_frame(15, 15, TransitionType.FADE)

    assert (start.from_layer.opacity, start.to_layer.opacity) == (1.0, 0.0)
    assert (end.from_layer.opacity, end.to_layer.opacity) == (0.0, 1.0)


def test_dissolve_keeps_outgoing_half_visible():
    middle = compute_transition_frame(7.5, 15, TransitionType.DISSOLVE)
    end = compute_transition_frame(15, 15, TransitionType.DISSOLVE)

    assert middle.from_layer.opacity == pytest.approx(0.75)
    assert middle.to_layer.opacity == pytest.approx(0.5)
    assert end.from_layer.opacity == pytest.approx(0.5)


def test_slide_left_moves_both_layers():
    start = compute_transition_frame(0, 20, TransitionType.SLIDE, Direction.LEFT)
    end = compute_transition_frame(20, 20, TransitionType.SLIDE, Direction.LEFT)

    assert start.from_layer.transform.translate_x_percent == 0.0
    assert start.to_layer.transform.translate_x_percent == pytest.approx(100.0)
    assert end.from_layer.transform.translate_x_percent == pytest.approx(-100.0)
    assert end.to_layer.transform.translate_x_percent == pytest.approx(0.0)


def test_slide_up_is_vertical():
    middle = compute_transition_frame(10, 20, TransitionType.SLIDE, Direction.UP)

    assert middle.from_layer.transform.translate_y_percent == pytest.approx(-50.0)
    assert middle.to_layer.transform.translate_y_percent == pytest.approx(50.0)
    assert middle.from_layer.transform.translate_x_percent == 0.0


def test_zoom_transition_crossfades_at_midpoint():
    middle = compute_transition_frame(10, 20, TransitionType.ZOOM)

    assert middle.from_layer.opacity == pytest.approx(0.5)
    assert middle.to_layer.opacity == pytest.approx(0.5)
    assert middle.from_layer.transform.scale == pytest.approx(1.25)
    assert middle.to_layer.transform.scale == pytest.approx(0.75)


def test_none_transition_is_a_hard_cut():
    before = compute_transition_frame(9, 20, TransitionType.NONE)
    after = compute_transition_frame(10, 20, TransitionType.NONE)

    assert (before.from_layer.opacity, before.to_layer.opacity) == (1.0, 0.0)
    assert (after.from_layer.opacity, after.to_layer.opacity) == (0.0, 1.0)


def test_combine_multiplies_scale_and_adds_offsets():
    combined = combine(
        Transform(scale=1.1, translate_x_percent=2.0),
        Transform(scale=1.5, translate_x_percent=-50.0, translate_y_percent=3.0),
    )

    assert combined.scale == pytest.approx(1.65)
    assert combined.translate_x_percent == pytest.approx(-48.0)
    assert combined.translate_y_percent == pytest.approx(3.0)


@pytest.mark.parametrize("animation_type", [AnimationType.KEN_BURNS, AnimationType.ZOOM])
def test_non_zoom_direction_zooms_out(animation_type):
    animation = AnimationConfig(type=animation_type, direction=Direction.LEFT, intensity=1.0)

    assert compute_transform(0, 100, animation).scale == pytest.approx(1.3)
    assert compute_transform(100, 100, animation).scale == pytest.approx(1.0)
