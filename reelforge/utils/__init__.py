"""Utility functions for ReelForge."""

from reelforge.utils.error_handler import (
    classify_http_error,
    classify_safety_feedback,
    format_error_message,
    retry_async,
    user_message,
)
from reelforge.utils.frames import clamp, interpolate, ms_to_frames, round_half_up, seconds_to_frames

__all__ = [
    "classify_http_error",
    "classify_safety_feedback",
    "format_error_message",
    "retry_async",
    "user_message",
    "clamp",
    "interpolate",
    "ms_to_frames",
    "round_half_up",
    "seconds_to_frames",
]
