from __future__ import annotations

import io
import logging
import math
import mimetypes
import struct
from pathlib import Path

import numpy as np
import librosa
import soundfile as sf
from scipy.signal import resample_poly

from .audio_signal import AudioSignal
from .errors import DecodeError, InputError

LOG = logging.getLogger("query_separator.codec")

HEADER_SIZE = 44
PCM_SCALE = 32767
AUDIO_EXTENSIONS = {".wav", ".flac", ".ogg", ".oga", ".mp3", ".m4a", ".aac", ".aiff", ".aif", ".opus"}

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


def encode_wav(signal: AudioSignal, mono: bool = True) -> bytes:
    """Serialize ``signal`` as a 16-bit linear PCM RIFF/WAVE byte stream.

    With ``mono=True`` only the first channel is written.
    """
    data = signal.channels[:1] if mono else signal.channels
    n_channels = int(data.shape[0])
    n_samples = int(data.shape[1])
    clipped = np.clip(np.nan_to_num(data.astype(np.float64)), -1.0, 1.0)
    pcm = np.rint(clipped * PCM_SCALE).astype("<i2")
    # Interleave frames: (channels, samples) -> samples-major.
    payload = pcm.T.tobytes()
    data_bytes = n_samples * n_channels * 2
    header = _HEADER.pack(
        b"RIFF",
        36 + data_bytes,
        b"WAVE",
        b"fmt ",
        16,
        1,
        n_channels,
        int(signal.sample_rate),
        int(signal.sample_rate) * 2 * n_channels,
        2 * n_channels,
        16,
        b"data",
        data_bytes,
    )
    return header + payload


def write_wav(path: str | Path, signal: AudioSignal, mono: bool = True) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_wav(signal, mono=mono))
    return path


def read_wav_header(data: bytes) -> dict:
    if len(data) < HEADER_SIZE:
        raise DecodeError(f"WAV stream too short for a header ({len(data)} bytes)")
    fields = _HEADER.unpack_from(data, 0)
    riff, riff_size, wave, fmt, fmt_size, audio_format, channels, sr, byte_rate, block_align, bits, tag, data_bytes = fields
    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or tag != b"data":
        raise DecodeError("Not a canonical PCM WAV header")
    return {
        "riff_size": riff_size,
        "fmt_size": fmt_size,
        "audio_format": audio_format,
        "channels": channels,
        "sample_rate": sr,
        "byte_rate": byte_rate,
        "block_align": block_align,
        "bits_per_sample": bits,
        "data_bytes": data_bytes,
    }


def _resample(y: np.ndarray, orig_sr: int, target_sr: int) -> np.ndarray:
    gcd = math.gcd(orig_sr, target_sr)
    return resample_poly(y, target_sr // gcd, orig_sr // gcd, axis=1).astype(np.float32)


def decode_audio(data: bytes, target_sr: int | None = None) -> AudioSignal:
    """Decode a container byte stream: soundfile first, librosa as the fallback."""
    if not data:
        raise DecodeError("Audio stream is empty")
    try:
        y, sr = sf.read(io.BytesIO(data), always_2d=True, dtype="float32")  # (samples, channels)
        y = y.T
        source = "soundfile"
    except Exception as e:
        LOG.debug("SoundFile decode failed: %s. Trying librosa.", e)
        try:
            y, sr = librosa.load(io.BytesIO(data), sr=None, mono=False)
        except Exception as exc:
            raise DecodeError(f"Could not decode audio stream: {exc}") from exc
        y = np.atleast_2d(y)
        source = "librosa"

    if target_sr and sr != target_sr:
        y = _resample(y, int(sr), int(target_sr))
        LOG.info("Resampled decoded audio from %d Hz to %d Hz", sr, target_sr)
        sr = target_sr
    LOG.debug("Decoded %d channel(s) x %d samples at %d Hz via %s", y.shape[0], y.shape[1], sr, source)
    return AudioSignal(int(sr), np.ascontiguousarray(y, dtype=np.float32))


def is_audio_path(path: Path) -> bool:
    mime, _ = mimetypes.guess_type(path.name)
    if mime is not None and mime.startswith("audio/"):
        return True
    return path.suffix.lower() in AUDIO_EXTENSIONS


def load_audio(path: str | Path, target_sr: int | None = None) -> AudioSignal:
    path = Path(path)
    if not path.exists():
        raise InputError(f"File not found: {path}")
    if not is_audio_path(path):
        raise InputError(f"Not an audio file: {path}")
    return decode_audio(path.read_bytes(), target_sr=target_sr)
