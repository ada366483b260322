"""Pydantic models and schemas for the scenario-to-video pipeline."""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================


class ProviderKind(str, Enum):
    """Closed set of provider families; resolved once from a model identifier."""

    EACHLABS_FLUX = "eachlabs_flux"
    EACHLABS_HAILUO = "eachlabs_hailuo"
    GEMINI = "gemini"
    OPENAI = "openai"


class JobStatus(str, Enum):
    """Lifecycle of one outstanding external request."""

    SUBMITTED = "submitted"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class FailurePolicy(str, Enum):
    """How a batch reacts to a failing item."""

    COLLECT_ALL = "collect_all"
    STOP_ON_FIRST_FAILURE = "stop_on_first_failure"


class OutcomeState(str, Enum):
    """State of a single batch item."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class StoryBeat(str, Enum):
    """Narrative position of a scene (Hook, Discovery, Story, Experience, Reason)."""

    HOOK = "hook"
    DISCOVERY = "discovery"
    STORY = "story"
    EXPERIENCE = "experience"
    REASON = "reason"


class AnimationType(str, Enum):
    """Still-image motion applied over a scene."""

    KEN_BURNS = "ken_burns"
    ZOOM = "zoom"
    PAN = "pan"
    NONE = "none"


class TransitionType(str, Enum):
    """Scene-to-scene transition."""

    FADE = "fade"
    DISSOLVE = "dissolve"
    SLIDE = "slide"
    ZOOM = "zoom"
    NONE = "none"


class Direction(str, Enum):
    """Direction for animations and slide transitions."""

    IN = "in"
    OUT = "out"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


# Forward-only ordering of job statuses; terminal statuses share the top rank.
_JOB_STATUS_RANK = {
    JobStatus.SUBMITTED: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.SUCCEEDED: 2,
    JobStatus.FAILED: 2,
    JobStatus.TIMED_OUT: 2,
    JobStatus.CANCELLED: 2,
}

TERMINAL_JOB_STATUSES = frozenset(
    {JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.TIMED_OUT, JobStatus.CANCELLED}
)


# ============================================================================
# Media Payloads
# ============================================================================


class ImageData(BaseModel):
    """An image carried as base64 text."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = Field(default="image/png", description="MIME type (image/png, image/jpeg, image/webp)")
    data: str = Field(..., description="Base64-encoded image bytes")


class NarrationAudio(BaseModel):
    """Synthesised narration for one scene."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = Field(default="audio/wav", description="MIME type (audio/wav, audio/mpeg)")
    data: str = Field(..., description="Base64-encoded audio bytes")
    duration_ms: int = Field(..., ge=0, description="Measured playback duration in milliseconds")


# ============================================================================
# Job Poller Models
# ============================================================================


class Job(BaseModel):
    """One tracked request/response cycle against a slow generation backend."""

    id: str = Field(..., description="Provider-side job identifier")
    provider_kind: ProviderKind = Field(..., description="Provider family that owns the job")
    status: JobStatus = Field(default=JobStatus.SUBMITTED, description="Current lifecycle status")
    submitted_at: float = Field(default_factory=time.monotonic, description="Monotonic submission time")
    last_polled_at: Optional[float] = Field(default=None, description="Monotonic time of the last status query")
    attempts: int = Field(default=0, description="Number of status queries issued")
    result: Optional[Any] = Field(default=None, description="Payload of a succeeded job")
    error_kind: Optional[str] = Field(default=None, description="Error kind of a failed job")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def advance(self, status: JobStatus) -> None:
        """
        Move the job forward.

        Args:
            status: New status

        Raises:
            ValueError: If the job is already terminal or the move does not go forward
        """
        if self.is_terminal:
            raise ValueError(f"Job {self.id} is already {self.status.value}")
        if _JOB_STATUS_RANK[status] <= _JOB_STATUS_RANK[self.status]:
            raise ValueError(f"Job {self.id} cannot move from {self.status.value} to {status.value}")
        self.status = status


class PollResponse(BaseModel):
    """Interpretation of one status query."""

    state: JobStatus = Field(..., description="processing, succeeded or failed")
    payload: Optional[Any] = Field(default=None, description="Result payload when succeeded")
    message: Optional[str] = Field(default=None, description="Provider message when failed")


# ============================================================================
# Batch Orchestrator Models
# ============================================================================


class BatchOutcome(BaseModel):
    """Outcome of one batch item."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: OutcomeState = Field(default=OutcomeState.PENDING, description="pending, success or failure")
    payload: Optional[Any] = Field(default=None, description="Worker result on success")
    reason: Optional[str] = Field(default=None, description="User-facing failure reason")
    error: Optional[Exception] = Field(default=None, exclude=True, description="Original exception")


class BatchTask(BaseModel):
    """A single item of a batch run; its index equals the input position."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int = Field(..., description="Position in the input list")
    scene_number: Optional[int] = Field(default=None, description="Scene number, when the item is a scene")
    input: Any = Field(..., description="The item handed to the worker")
    outcome: BatchOutcome = Field(default_factory=BatchOutcome, description="Outcome of the item")

    @property
    def succeeded(self) -> bool:
        return self.outcome.state == OutcomeState.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome.state == OutcomeState.FAILURE

    def settle(self, outcome: BatchOutcome) -> None:
        """
        Record the final outcome.

        Raises:
            ValueError: If the task already settled
        """
        if self.outcome.state != OutcomeState.PENDING:
            raise ValueError(f"Batch task {self.index} already settled as {self.outcome.state.value}")
        self.outcome = outcome


# ============================================================================
# Scenario Models
# ============================================================================


class ScenarioScene(BaseModel):
    """An input scene of a scenario."""

    id: str = Field(..., description="Stable scene identifier")
    scene_number: int = Field(..., ge=1, description="1-indexed scene number")
    narration: str = Field(default="", description="Narration text")
    image_prompt: str = Field(..., description="Image description")
    mood: str = Field(default="", description="Mood tag")
    camera_angle: str = Field(default="", description="Camera angle (close-up, wide, etc.)")
    story_beat: Optional[StoryBeat] = Field(default=None, description="Narrative position")
    duration_seconds: float = Field(default=8.0, gt=0, description="Nominal scene duration")


class Scenario(BaseModel):
    """An ordered list of scenes to render."""

    id: str = Field(..., description="Scenario identifier")
    title: str = Field(default="", description="Scenario title")
    aspect_ratio: str = Field(default="16:9", description="16:9, 9:16 or 1:1")
    image_style: str = Field(default="photorealistic", description="Image style key")
    scenes: list[ScenarioScene] = Field(..., description="Scenes in playback order")


# ============================================================================
# Timeline Models
# ============================================================================


class AnimationConfig(BaseModel):
    """Motion applied to a scene image."""

    model_config = ConfigDict(frozen=True)

    type: AnimationType = Field(default=AnimationType.KEN_BURNS, description="Animation variant")
    direction: Direction = Field(default=Direction.IN, description="in/out for zoom, left/right/up/down for pan")
    intensity: float = Field(default=0.5, ge=0.0, le=1.0, description="Animation strength (0.0-1.0)")


class CompositorScene(BaseModel):
    """A scene as the compositor sees it; immutable once scheduled."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Scene identifier")
    order: int = Field(..., description="Playback position")
    duration_seconds: float = Field(..., gt=0, description="Sole authority for frame accounting")
    image: ImageData = Field(..., description="Resolved scene image")
    narration_text: str = Field(default="", description="Narration shown as subtitles")
    narration_audio: Optional[NarrationAudio] = Field(default=None, description="Measured narration audio")
    mood: str = Field(default="", description="Mood tag")
    camera_angle: str = Field(default="", description="Camera angle")
    story_beat: Optional[StoryBeat] = Field(default=None, description="Narrative position")
    animation: AnimationConfig = Field(default_factory=AnimationConfig, description="Image motion")


class RenderPlanEntry(BaseModel):
    """Frame span of one scene."""

    model_config = ConfigDict(frozen=True)

    scene_id: str = Field(..., description="Scene identifier")
    start_frame: int = Field(..., ge=0, description="First frame of the scene")
    duration_in_frames: int = Field(..., ge=0, description="Number of frames")

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.duration_in_frames


class TransitionConfig(BaseModel):
    """Transition overlaid on every scene boundary."""

    model_config = ConfigDict(frozen=True)

    type: TransitionType = Field(default=TransitionType.FADE, description="Transition variant")
    duration_in_frames: int = Field(default=15, ge=0, description="Frames taken from the end of the outgoing scene")
    direction: Direction = Field(default=Direction.LEFT, description="Slide direction")


class RenderPlan(BaseModel):
    """Frame-indexed schedule of a whole video."""

    model_config = ConfigDict(frozen=True)

    fps: int = Field(..., gt=0, description="Frames per second")
    entries: list[RenderPlanEntry] = Field(default_factory=list, description="Contiguous scene spans")
    transition: TransitionConfig = Field(default_factory=TransitionConfig, description="Boundary transition")

    @property
    def total_frames(self) -> int:
        return sum(entry.duration_in_frames for entry in self.entries)

    @property
    def duration_seconds(self) -> float:
        return self.total_frames / self.fps


class SubtitleSegment(BaseModel):
    """One time-boxed piece of narration."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Segment text")
    segment_index: int = Field(..., ge=0, description="Position within the narration")
    segment_duration_ms: float = Field(..., ge=0, description="Display slot length in milliseconds")
    segment_duration_frames: float = Field(..., ge=0, description="Display slot length in frames")


class Transform(BaseModel):
    """Scale and translation of an image layer."""

    model_config = ConfigDict(frozen=True)

    scale: float = Field(default=1.0, description="Uniform scale factor")
    translate_x_percent: float = Field(default=0.0, description="Horizontal offset in percent of the frame")
    translate_y_percent: float = Field(default=0.0, description="Vertical offset in percent of the frame")


class LayerState(BaseModel):
    """Opacity and transform of one transition layer."""

    model_config = ConfigDict(frozen=True)

    opacity: float = Field(default=1.0, ge=0.0, le=1.0, description="Layer opacity")
    transform: Transform = Field(default_factory=Transform, description="Layer transform")


class TransitionFrame(BaseModel):
    """State of both layers at one frame of a transition."""

    model_config = ConfigDict(frozen=True)

    from_layer: LayerState = Field(..., description="Outgoing scene layer")
    to_layer: LayerState = Field(..., description="Incoming scene layer")


class FrameLayer(BaseModel):
    """An image layer to draw for one frame, bottom to top."""

    model_config = ConfigDict(frozen=True)

    scene_id: str = Field(..., description="Scene whose image is drawn")
    transform: Transform = Field(..., description="Combined motion and transition transform")
    opacity: float = Field(default=1.0, ge=0.0, le=1.0, description="Layer opacity")


class SubtitleCue(BaseModel):
    """Subtitle text visible on one frame."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Visible text")
    opacity: float = Field(..., ge=0.0, le=1.0, description="Fade-adjusted opacity")


class FrameComposition(BaseModel):
    """Everything needed to draw one frame."""

    model_config = ConfigDict(frozen=True)

    frame: int = Field(..., description="Global frame number")
    scene_index: int = Field(..., description="Index of the scene owning the frame")
    frame_in_scene: int = Field(..., description="Frame offset inside that scene")
    layers: list[FrameLayer] = Field(default_factory=list, description="Image layers, bottom first")
    subtitle: Optional[SubtitleCue] = Field(default=None, description="Subtitle, if any")


# ============================================================================
# Pipeline Results
# ============================================================================


class ScenarioAssets(BaseModel):
    """Everything a scenario run produced."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    scenario_id: str = Field(..., description="Scenario identifier")
    image_tasks: list[BatchTask] = Field(default_factory=list, description="Per-scene image outcomes")
    narration_tasks: list[BatchTask] = Field(default_factory=list, description="Per-scene narration outcomes")
    scenes: list[CompositorScene] = Field(default_factory=list, description="Scenes ready for the compositor")
    render_plan: Optional[RenderPlan] = Field(default=None, description="Frame schedule")
    hook_video_url: Optional[str] = Field(default=None, description="Generated hook video URL")
    failed_scene_numbers: list[int] = Field(default_factory=list, description="Scenes missing an image")
