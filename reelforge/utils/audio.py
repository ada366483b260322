"""Audio helpers: container repair and duration measurement."""

import base64
import io
import wave

from pydub import AudioSegment

GEMINI_PCM_SAMPLE_RATE = 24000


def pcm_to_wav(pcm: bytes, sample_rate: int = GEMINI_PCM_SAMPLE_RATE, channels: int = 1) -> tuple[bytes, int]:
    """
    Wrap raw 16-bit little-endian PCM in a WAV container.

    Args:
        pcm: Raw sample bytes
        sample_rate: Samples per second
        channels: Channel count

    Returns:
        Tuple of (WAV bytes, duration in milliseconds)
    """
    if len(pcm) % 2:
        pcm = pcm[:-1]

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)  # 16-bit
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)

    samples = len(pcm) // (2 * channels)
    duration_ms = round(samples / sample_rate * 1000)
    return buffer.getvalue(), duration_ms


def wav_duration_ms(data: bytes) -> int:
    """Duration of a WAV file in milliseconds."""
    with wave.open(io.BytesIO(data), "rb") as wav_file:
        return round(wav_file.getnframes() / wav_file.getframerate() * 1000)


def measure_duration_ms(data: bytes, mime_type: str) -> int:
    """
    Measure playback duration of encoded audio.

    WAV is read with the wave module; everything else is decoded with pydub
    (needs ffmpeg for mp3).

    Args:
        data: Encoded audio bytes
        mime_type: audio/wav, audio/mpeg, ...

    Returns:
        Duration in milliseconds
    """
    if mime_type in ("audio/wav", "audio/x-wav", "audio/wave"):
        return wav_duration_ms(data)

    audio_format = "mp3" if mime_type in ("audio/mpeg", "audio/mp3") else mime_type.split("/")[-1]
    segment = AudioSegment.from_file(io.BytesIO(data), format=audio_format)
    return len(segment)


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
