"""Frame arithmetic helpers shared by the timeline components."""

import math
from typing import Sequence


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from negative infinity.

    Python's round() uses banker's rounding, which would make 2.5s at 30fps
    and 3.5s at 30fps round in different directions.

    Args:
        value: Value to round.

    Returns:
        Rounded integer.
    """
    return math.floor(value + 0.5)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def seconds_to_frames(seconds: float, fps: int) -> int:
    """Convert seconds to a whole frame count."""
    return round_half_up(seconds * fps)


def ms_to_frames(milliseconds: float, fps: int) -> int:
    """Convert milliseconds to a whole frame count."""
    return round_half_up(milliseconds / 1000 * fps)


def interpolate(x: float, input_range: Sequence[float], output_range: Sequence[float]) -> float:
    """
    Piecewise-linear interpolation, clamped at both ends.

    Args:
        x: Input value.
        input_range: Increasing breakpoints.
        output_range: Output value at each breakpoint.

    Returns:
        Interpolated value; the boundary value outside input_range.
    """
    if len(input_range) != len(output_range) or len(input_range) < 2:
        raise ValueError("input_range and output_range must have the same length (at least 2)")

    if x <= input_range[0]:
        return float(output_range[0])
    if x >= input_range[-1]:
        return float(output_range[-1])

    for i in range(1, len(input_range)):
        if x <= input_range[i]:
            x0, x1 = input_range[i - 1], input_range[i]
            y0, y1 = output_range[i - 1], output_range[i]
            if x1 == x0:
                return float(y1)
            return y0 + (y1 - y0) * (x - x0) / (x1 - x0)
    return float(output_range[-1])
