"""Timeline Compositor - frame-indexed render plan and per-frame composition."""

import math
from typing import Any, Optional, Sequence, TypeVar

from reelforge.core.config import Settings
from reelforge.models.schemas import (
    CompositorScene,
    FrameComposition,
    FrameLayer,
    RenderPlan,
    RenderPlanEntry,
    TransitionConfig,
    TransitionType,
)
from reelforge.services.motion_engine import combine, compute_transform, compute_transition_frame
from reelforge.services.subtitle_segmenter import SubtitleSegmenter
from reelforge.utils.frames import seconds_to_frames

T = TypeVar("T")


class TimelineCompositor:
    """Builds render plans and resolves what is drawn on each frame."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize timeline compositor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.subtitles = SubtitleSegmenter(settings, logger)

    def default_transition(self) -> TransitionConfig:
        """Transition configured in settings."""
        return TransitionConfig(
            type=TransitionType(self.settings.transition_type),
            duration_in_frames=self.settings.transition_frames,
        )

    def scene_duration_seconds(self, audio_duration_ms: Optional[float], nominal_seconds: float) -> float:
        """
        Scene length derived from its narration.

        With audio: max(min_scene_seconds, ceil(audio seconds + buffer)).
        Without audio: the nominal duration.
        """
        if audio_duration_ms and audio_duration_ms > 0:
            return float(
                max(
                    self.settings.min_scene_seconds,
                    math.ceil(audio_duration_ms / 1000 + self.settings.scene_buffer_seconds),
                )
            )
        return nominal_seconds

    def build_render_plan(
        self,
        scenes: Sequence[CompositorScene],
        fps: Optional[int] = None,
        transition: Optional[TransitionConfig] = None,
    ) -> RenderPlan:
        """
        Lay scenes end to end on a frame timeline.

        Transitions overlay the tail of each outgoing scene, so they never
        change the total length.

        Args:
            scenes: Scenes in playback order
            fps: Frames per second (defaults to settings.fps)
            transition: Boundary transition (defaults to settings)

        Returns:
            RenderPlan with contiguous entries
        """
        fps = fps or self.settings.fps
        transition = transition or self.default_transition()

        entries = []
        start_frame = 0
        for scene in scenes:
            duration_in_frames = seconds_to_frames(scene.duration_seconds, fps)
            entries.append(
                RenderPlanEntry(scene_id=scene.id, start_frame=start_frame, duration_in_frames=duration_in_frames)
            )
            start_frame += duration_in_frames

        plan = RenderPlan(fps=fps, entries=entries, transition=transition)
        self.logger.info(
            f"Render plan: {len(entries)} scenes, {plan.total_frames} frames "
            f"({plan.duration_seconds:.2f}s at {fps}fps, {transition.type.value} transitions)"
        )
        return plan

    def locate_frame(self, plan: RenderPlan, frame: int) -> tuple[int, int]:
        """
        Scene index and frame-in-scene of a global frame.

        Frames past the end map to the last frame of the last scene.

        Raises:
            ValueError: If the plan is empty
        """
        if not plan.entries:
            raise ValueError("Render plan has no scenes")

        frame = max(0, frame)
        for index, entry in enumerate(plan.entries):
            if frame < entry.end_frame:
                return index, frame - entry.start_frame

        last = plan.entries[-1]
        return len(plan.entries) - 1, max(0, last.duration_in_frames - 1)

    def compose_frame(self, plan: RenderPlan, scenes: Sequence[CompositorScene], frame: int) -> FrameComposition:
        """
        Resolve layers and subtitle for one frame.

        Inside the last transition.duration_in_frames frames of every scene but
        the final one, the next scene's image is blended in on top.

        Args:
            plan: Plan from build_render_plan()
            scenes: The scenes the plan was built from, same order
            frame: Global frame number

        Returns:
            FrameComposition (bottom layer first)
        """
        if len(scenes) != len(plan.entries):
            raise ValueError(f"Plan has {len(plan.entries)} entries but {len(scenes)} scenes were given")

        index, frame_in_scene = self.locate_frame(plan, frame)
        entry = plan.entries[index]
        scene = scenes[index]
        if scene.id != entry.scene_id:
            raise ValueError(f"Scene {scene.id} does not match plan entry {entry.scene_id}")

        duration = entry.duration_in_frames
        motion = compute_transform(frame_in_scene, duration, scene.animation)
        layers = [FrameLayer(scene_id=scene.id, transform=motion)]

        transition = plan.transition
        window = min(transition.duration_in_frames, duration)
        is_last = index >= len(plan.entries) - 1
        if not is_last and window > 0 and frame_in_scene >= duration - window:
            next_scene = scenes[index + 1]
            next_entry = plan.entries[index + 1]
            state = compute_transition_frame(
                frame_in_scene - (duration - window), window, transition.type, transition.direction
            )
            incoming_motion = compute_transform(0, next_entry.duration_in_frames, next_scene.animation)
            layers = [
                FrameLayer(
                    scene_id=scene.id,
                    transform=combine(motion, state.from_layer.transform),
                    opacity=state.from_layer.opacity,
                ),
                FrameLayer(
                    scene_id=next_scene.id,
                    transform=combine(incoming_motion, state.to_layer.transform),
                    opacity=state.to_layer.opacity,
                ),
            ]

        audio_ms = scene.narration_audio.duration_ms if scene.narration_audio else None
        subtitle = self.subtitles.subtitle_at(scene.narration_text, audio_ms, frame_in_scene, duration, plan.fps)

        return FrameComposition(
            frame=frame,
            scene_index=index,
            frame_in_scene=frame_in_scene,
            layers=layers,
            subtitle=subtitle,
        )

    @staticmethod
    def split_point(scene_count: int) -> int:
        """Index where a long video is split into two export parts."""
        return math.ceil(scene_count / 2)

    def split_for_export(self, scenes: Sequence[T]) -> tuple[list[T], list[T]]:
        """Split scenes into two parts at ceil(n/2)."""
        point = self.split_point(len(scenes))
        return list(scenes[:point]), list(scenes[point:])
