import io
import logging
import wave
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

# Gemini TTS returns raw 16-bit little-endian PCM, 24 kHz mono
SAMPLE_RATE = 24000
CHANNELS = 1
SAMPLE_WIDTH = 2


def decode_pcm16(data: bytes, channels: int = CHANNELS) -> List[List[float]]:
    """Split interleaved PCM16 into per-channel float samples in [-1.0, 1.0)."""
    usable = len(data) - (len(data) % (SAMPLE_WIDTH * channels))
    frame_count = usable // (SAMPLE_WIDTH * channels)
    out: List[List[float]] = [[0.0] * frame_count for _ in range(channels)]
    for i in range(frame_count):
        for channel in range(channels):
            offset = (i * channels + channel) * SAMPLE_WIDTH
            value = int.from_bytes(data[offset:offset + SAMPLE_WIDTH], "little", signed=True)
            out[channel][i] = value / 32768.0
    return out


def duration_seconds(data: bytes, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> float:
    return (len(data) // (SAMPLE_WIDTH * channels)) / float(sample_rate)


def pcm_to_wav(data: bytes, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> bytes:
    usable = len(data) - (len(data) % (SAMPLE_WIDTH * channels))
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(SAMPLE_WIDTH)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(data[:usable])
    return buffer.getvalue()


def write_wav(data: bytes, path: Path, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> Path:
    path.write_bytes(pcm_to_wav(data, sample_rate, channels))
    logger.info(f"Wrote {duration_seconds(data, sample_rate, channels):.1f}s of speech to {path}")
    return path
