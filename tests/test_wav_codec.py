import struct

import numpy as np
import pytest

pytest.importorskip("soundfile")

from query_separator.audio_signal import AudioSignal
from query_separator.errors import DecodeError, InputError
from query_separator.wav_codec import (
    decode_audio,
    encode_wav,
    load_audio,
    read_wav_header,
    write_wav,
)


def _u32(data: bytes, offset: int) -> int:
    return struct.unpack_from("<I", data, offset)[0]


def _u16(data: bytes, offset: int) -> int:
    return struct.unpack_from("<H", data, offset)[0]


def test_header_layout_is_exact():
    signal = AudioSignal.from_array(np.zeros(10, dtype=np.float32), 44100)
    data = encode_wav(signal)

    assert len(data) == 44 + 20
    assert data[0:4] == b"RIFF"
    assert _u32(data, 4) == 36 + 20
    assert data[8:12] == b"WAVE"
    assert data[12:16] == b"fmt "
    assert _u32(data, 16) == 16
    assert _u16(data, 20) == 1
    assert _u16(data, 22) == 1
    assert _u32(data, 24) == 44100
    assert _u32(data, 28) == 44100 * 2
    assert _u16(data, 32) == 2
    assert _u16(data, 34) == 16
    assert data[36:40] == b"data"
    assert _u32(data, 40) == 20


def test_samples_are_clamped_scaled_and_rounded():
    x = np.array([0.0, 1.0, -1.0, 0.25, 2.0, -3.0], dtype=np.float32)
    data = encode_wav(AudioSignal.from_array(x, 8000))
    pcm = np.frombuffer(data[44:], dtype="<i2")
    assert pcm.tolist() == [0, 32767, -32767, 8192, 32767, -32767]


def test_mono_encoder_writes_first_channel_only():
    stereo = np.stack([np.full(4, 0.5), np.full(4, -0.5)]).astype(np.float32)
    data = encode_wav(AudioSignal.from_array(stereo, 8000), mono=True)
    header = read_wav_header(data)
    assert header["channels"] == 1
    assert header["data_bytes"] == 4 * 2
    assert np.all(np.frombuffer(data[44:], dtype="<i2") > 0)


def test_multichannel_encoder_interleaves_frames():
    stereo = np.stack([np.full(3, 0.5), np.full(3, -0.5)]).astype(np.float32)
    data = encode_wav(AudioSignal.from_array(stereo, 8000), mono=False)
    header = read_wav_header(data)
    assert header["channels"] == 2
    assert header["block_align"] == 4
    assert header["byte_rate"] == 8000 * 4
    assert header["data_bytes"] == 3 * 2 * 2
    pcm = np.frombuffer(data[44:], dtype="<i2")
    assert pcm[0::2].tolist() == [16384] * 3
    assert pcm[1::2].tolist() == [-16384] * 3


def test_round_trip_within_one_lsb():
    rng = np.random.RandomState(3)
    x = rng.uniform(-0.9, 0.9, size=1000).astype(np.float32)
    data = encode_wav(AudioSignal.from_array(x, 16000))

    assert read_wav_header(data)["data_bytes"] == 1000 * 2
    decoded = decode_audio(data)
    assert decoded.sample_rate == 16000
    assert decoded.n_channels == 1
    assert decoded.n_samples == 1000
    assert np.max(np.abs(decoded.channels[0] - x)) <= 2.0 / 32767


def test_decode_resamples_to_target_rate():
    x = np.zeros(800, dtype=np.float32)
    decoded = decode_audio(encode_wav(AudioSignal.from_array(x, 8000)), target_sr=16000)
    assert decoded.sample_rate == 16000
    assert decoded.n_samples == 1600


@pytest.mark.parametrize("payload", [b"", b"definitely not audio" * 8])
def test_undecodable_stream_raises(payload):
    with pytest.raises(DecodeError):
        decode_audio(payload)


def test_read_header_rejects_foreign_bytes():
    with pytest.raises(DecodeError):
        read_wav_header(b"\x00" * 44)
    with pytest.raises(DecodeError):
        read_wav_header(b"RIFF")


def test_load_audio_checks_path_and_type(tmp_path):
    with pytest.raises(InputError):
        load_audio(tmp_path / "missing.wav")

    notes = tmp_path / "notes.txt"
    notes.write_text("speech, music", encoding="utf-8")
    with pytest.raises(InputError):
        load_audio(notes)

    path = write_wav(tmp_path / "clip.wav", AudioSignal.from_array(np.zeros(50, dtype=np.float32), 8000))
    signal = load_audio(path)
    assert signal.n_samples == 50
