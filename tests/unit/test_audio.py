"""Tests for audio helpers."""

import io
import wave
from unittest.mock import MagicMock, patch

from reelforge.utils.audio import measure_duration_ms, pcm_to_wav, wav_duration_ms


def test_pcm_to_wav_duration():
    wav_bytes, duration_ms = pcm_to_wav(b"\x01\x00" * 12000)

    assert duration_ms == 500
    assert wav_duration_ms(wav_bytes) == 500


def test_pcm_to_wav_drops_odd_trailing_byte():
    wav_bytes, _ = pcm_to_wav(b"\x01\x00\x02")

    with wave.open(io.BytesIO(wav_bytes)) as wav_file:
        assert wav_file.getnframes() == 1
        assert wav_file.getsampwidth() == 2


def test_measure_wav_without_decoder():
    wav_bytes, _ = pcm_to_wav(b"\x00\x00" * 48000, sample_rate=24000)

    assert measure_duration_ms(wav_bytes, "audio/wav") == 2000


def test_measure_mp3_decodes_with_pydub():
    segment = MagicMock()
    segment.__len__.return_value = 3210

    with patch("reelforge.utils.audio.AudioSegment.from_file", return_value=segment) as from_file:
        assert measure_duration_ms(b"mp3", "audio/mpeg") == 3210

    assert from_file.call_args.kwargs["format"] == "mp3"
