"""Motion Engine - per-frame image motion and scene transitions.

Every function here is a pure function of its arguments, so any frame can be
evaluated in any order (seeking, re-rendering, parallel rendering).
"""

from reelforge.models.schemas import (
    AnimationConfig,
    AnimationType,
    Direction,
    LayerState,
    Transform,
    TransitionFrame,
    TransitionType,
)
from reelforge.utils.frames import clamp, interpolate

# Ken Burns limits at intensity 1.0
MAX_EXTRA_SCALE = 0.3
MAX_TRANSLATE_PERCENT = 5.0
PAN_SCALE = 1.1

ZOOM_TRANSITION_FROM_SCALE = (1.0, 1.5)
ZOOM_TRANSITION_TO_SCALE = (0.5, 1.0)


def progress(frame: float, duration_frames: float) -> float:
    """Fraction of [0, duration_frames] covered at frame, clamped to [0, 1]."""
    if duration_frames <= 0:
        return 1.0
    return clamp(frame / duration_frames)


def _lerp(p: float, start: float, end: float) -> float:
    return interpolate(p, (0.0, 1.0), (start, end))


def compute_transform(frame: float, scene_duration_frames: float, animation: AnimationConfig) -> Transform:
    """
    Image transform of a scene at a frame.

    Args:
        frame: Frame offset inside the scene
        scene_duration_frames: Scene length in frames
        animation: Animation variant, direction and intensity

    Returns:
        Scale and translation (percent) of the scene image
    """
    p = progress(frame, scene_duration_frames)
    intensity = clamp(animation.intensity)
    max_scale = 1 + intensity * MAX_EXTRA_SCALE
    max_translate = intensity * MAX_TRANSLATE_PERCENT
    zoom_in = animation.direction == Direction.IN

    if animation.type == AnimationType.KEN_BURNS:
        if zoom_in:
            return Transform(
                scale=_lerp(p, 1.0, max_scale),
                translate_x_percent=_lerp(p, 0.0, max_translate),
                translate_y_percent=_lerp(p, 0.0, -max_translate * 0.5),
            )
        return Transform(
            scale=_lerp(p, max_scale, 1.0),
            translate_x_percent=_lerp(p, max_translate, 0.0),
            translate_y_percent=_lerp(p, -max_translate * 0.5, 0.0),
        )

    if animation.type == AnimationType.ZOOM:
        if zoom_in:
            return Transform(scale=_lerp(p, 1.0, max_scale))
        return Transform(scale=_lerp(p, max_scale, 1.0))

    if animation.type == AnimationType.PAN:
        if animation.direction == Direction.LEFT:
            return Transform(scale=PAN_SCALE, translate_x_percent=_lerp(p, max_translate, -max_translate))
        if animation.direction == Direction.RIGHT:
            return Transform(scale=PAN_SCALE, translate_x_percent=_lerp(p, -max_translate, max_translate))
        if animation.direction == Direction.DOWN:
            return Transform(scale=PAN_SCALE, translate_y_percent=_lerp(p, -max_translate, max_translate))
        return Transform(scale=PAN_SCALE, translate_y_percent=_lerp(p, max_translate, -max_translate))

    return Transform()


def compute_transition_frame(
    frame: float,
    transition_duration_frames: float,
    transition_type: TransitionType,
    direction: Direction = Direction.LEFT,
) -> TransitionFrame:
    """
    Outgoing and incoming layer state at a frame of a transition.

    Args:
        frame: Frame offset inside the transition
        transition_duration_frames: Transition length in frames
        transition_type: fade, dissolve, slide, zoom or none
        direction: Slide direction (left, right, up, down)

    Returns:
        Opacity and transform of both layers
    """
    p = progress(frame, transition_duration_frames)

    if transition_type == TransitionType.FADE:
        return TransitionFrame(from_layer=LayerState(opacity=1 - p), to_layer=LayerState(opacity=p))

    if transition_type == TransitionType.DISSOLVE:
        return TransitionFrame(from_layer=LayerState(opacity=1 - p * 0.5), to_layer=LayerState(opacity=p))

    if transition_type == TransitionType.SLIDE:
        return _slide(p, direction)

    if transition_type == TransitionType.ZOOM:
        return TransitionFrame(
            from_layer=LayerState(
                opacity=interpolate(p, (0.0, 0.5, 1.0), (1.0, 0.5, 0.0)),
                transform=Transform(scale=_lerp(p, *ZOOM_TRANSITION_FROM_SCALE)),
            ),
            to_layer=LayerState(
                opacity=interpolate(p, (0.0, 0.5, 1.0), (0.0, 0.5, 1.0)),
                transform=Transform(scale=_lerp(p, *ZOOM_TRANSITION_TO_SCALE)),
            ),
        )

    # Hard cut at the midpoint
    swapped = p >= 0.5
    return TransitionFrame(
        from_layer=LayerState(opacity=0.0 if swapped else 1.0),
        to_layer=LayerState(opacity=1.0 if swapped else 0.0),
    )


def _slide(p: float, direction: Direction) -> TransitionFrame:
    amount = _lerp(p, 0.0, 100.0)

    if direction == Direction.RIGHT:
        from_offset, to_offset, vertical = amount, -100 + amount, False
    elif direction == Direction.UP:
        from_offset, to_offset, vertical = -amount, 100 - amount, True
    elif direction == Direction.DOWN:
        from_offset, to_offset, vertical = amount, -100 + amount, True
    else:
        from_offset, to_offset, vertical = -amount, 100 - amount, False

    def layer(offset: float) -> LayerState:
        if vertical:
            return LayerState(transform=Transform(translate_y_percent=offset))
        return LayerState(transform=Transform(translate_x_percent=offset))

    return TransitionFrame(from_layer=layer(from_offset), to_layer=layer(to_offset))


def combine(motion: Transform, overlay: Transform) -> Transform:
    """Apply a transition transform on top of a motion transform."""
    return Transform(
        scale=motion.scale * overlay.scale,
        translate_x_percent=motion.translate_x_percent + overlay.translate_x_percent,
        translate_y_percent=motion.translate_y_percent + overlay.translate_y_percent,
    )
