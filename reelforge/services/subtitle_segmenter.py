"""Subtitle Segmenter - splits narration into time-boxed subtitle segments."""

import math
from typing import Optional

from reelforge.core.config import Settings
from reelforge.models.schemas import SubtitleCue, SubtitleSegment
from reelforge.utils.frames import clamp, ms_to_frames, round_half_up

SENTENCE_TERMINATORS = ".!?。！？"
SOFT_BREAKS = ",، \t\n"

# Terminators this close to the start of the remaining text are ignored
MIN_SEGMENT_CHARS = 10
TERMINATOR_WINDOW = 15
SOFT_BREAK_LOOKBACK = 20


def split_narration(text: str, audio_duration_seconds: float, segment_seconds: int = 10) -> list[str]:
    """
    Split narration into segments, preferring sentence boundaries.

    Args:
        text: Narration text
        audio_duration_seconds: Spoken length of the narration
        segment_seconds: Audio seconds covered by one segment

    Returns:
        Stripped segment texts; empty list for empty text
    """
    segment_count = max(1, math.floor(audio_duration_seconds / segment_seconds))
    target_len = math.ceil(len(text) / segment_count)

    segments: list[str] = []
    remaining = text

    for _ in range(segment_count - 1):
        if not remaining:
            break

        cut = min(target_len, len(remaining))
        best_cut = -1

        for j in range(max(0, cut - TERMINATOR_WINDOW), min(len(remaining) - 1, cut + TERMINATOR_WINDOW) + 1):
            if remaining[j] in SENTENCE_TERMINATORS and j > MIN_SEGMENT_CHARS:
                best_cut = j + 1
                break

        if best_cut == -1:
            for j in range(min(cut, len(remaining) - 1), max(0, cut - SOFT_BREAK_LOOKBACK) - 1, -1):
                if remaining[j] in SOFT_BREAKS:
                    best_cut = j + 1
                    break

        if best_cut > 0:
            cut = best_cut
        segments.append(remaining[:cut].strip())
        remaining = remaining[cut:].strip()

    if remaining:
        segments.append(remaining.strip())
    return segments


class SubtitleSegmenter:
    """Pure subtitle timing: segment texts, slots and fade opacity."""

    def __init__(self, settings: Settings, logger: Optional[object] = None):
        self.settings = settings
        self.logger = logger
        self.segment_seconds = settings.subtitle_segment_seconds
        self.fade_seconds = settings.subtitle_fade_seconds

    def segment(self, text: str, total_audio_duration_ms: float, fps: int) -> list[SubtitleSegment]:
        """
        Split narration into equal time slots of the audio duration.

        Args:
            text: Narration text
            total_audio_duration_ms: Measured audio duration
            fps: Frames per second

        Returns:
            Segments in display order
        """
        texts = split_narration(text, total_audio_duration_ms / 1000, self.segment_seconds)
        if not texts:
            return []

        slot_ms = total_audio_duration_ms / len(texts)
        slot_frames = ms_to_frames(total_audio_duration_ms, fps) / len(texts)
        return [
            SubtitleSegment(
                text=segment_text,
                segment_index=i,
                segment_duration_ms=slot_ms,
                segment_duration_frames=slot_frames,
            )
            for i, segment_text in enumerate(texts)
        ]

    def subtitle_at(
        self,
        text: str,
        audio_duration_ms: Optional[float],
        frame_in_scene: int,
        scene_duration_frames: int,
        fps: int,
    ) -> Optional[SubtitleCue]:
        """
        Subtitle visible at a frame of a scene.

        Without audio the scene duration stands in for the audio duration.
        Nothing is shown once the frame passes the end of the audio.

        Args:
            text: Narration text
            audio_duration_ms: Measured narration duration, or None
            frame_in_scene: Frame offset inside the scene
            scene_duration_frames: Scene length in frames
            fps: Frames per second

        Returns:
            Visible text and opacity, or None
        """
        if not text or frame_in_scene < 0:
            return None

        if audio_duration_ms:
            audio_frames = ms_to_frames(audio_duration_ms, fps)
            audio_ms = audio_duration_ms
        else:
            audio_frames = scene_duration_frames
            audio_ms = scene_duration_frames / fps * 1000

        if frame_in_scene >= audio_frames:
            return None

        segments = self.segment(text, audio_ms, fps)
        if not segments:
            return None

        slot_frames = audio_frames / len(segments)
        index = min(math.floor(frame_in_scene / slot_frames), len(segments) - 1)
        current = segments[index]
        if not current.text:
            return None

        return SubtitleCue(text=current.text, opacity=self.fade_opacity(frame_in_scene - index * slot_frames, slot_frames, fps))

    def fade_opacity(self, local_frame: float, slot_frames: float, fps: int) -> float:
        """Opacity inside one slot: fade in, hold, fade out."""
        fade_frames = round_half_up(fps * self.fade_seconds)
        if fade_frames <= 0:
            return 1.0

        opacity = 1.0
        if local_frame < fade_frames:
            opacity = local_frame / fade_frames
        elif local_frame > slot_frames - fade_frames:
            opacity = (slot_frames - local_frame) / fade_frames
        return clamp(opacity)
