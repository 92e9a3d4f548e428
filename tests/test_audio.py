import io
import struct
import wave

from notes_annotator.backends.audio import SAMPLE_RATE, decode_pcm16, duration_seconds, pcm_to_wav, write_wav


def pcm(*samples):
    return struct.pack(f"<{len(samples)}h", *samples)


def test_decode_mono():
    assert decode_pcm16(pcm(0, 16384, -32768)) == [[0.0, 0.5, -1.0]]


def test_decode_stereo_deinterleaves():
    left, right = decode_pcm16(pcm(16384, -16384, 0, 8192), channels=2)
    assert left == [0.5, 0.0]
    assert right == [-0.5, 0.25]


def test_trailing_partial_frame_is_ignored():
    assert decode_pcm16(pcm(16384) + b"\x01") == [[0.5]]
    assert decode_pcm16(b"") == [[]]


def test_duration():
    assert duration_seconds(pcm(*([0] * SAMPLE_RATE))) == 1.0
    assert duration_seconds(pcm(0, 0), channels=2) == 1 / SAMPLE_RATE


def test_wav_header():
    data = pcm(*range(100))
    with wave.open(io.BytesIO(pcm_to_wav(data)), "rb") as wav_file:
        assert wav_file.getnchannels() == 1
        assert wav_file.getsampwidth() == 2
        assert wav_file.getframerate() == 24000
        assert wav_file.getnframes() == 100
        assert wav_file.readframes(100) == data


def test_write_wav(tmp_path):
    path = write_wav(pcm(1, 2, 3) + b"\x00", tmp_path / "answer.wav")
    with wave.open(str(path), "rb") as wav_file:
        assert wav_file.getnframes() == 3
