import numpy as np
import pytest

pytest.importorskip("librosa")

from query_separator.audio_signal import AudioSignal
from query_separator.sound_catalog import DRUMS, SPEECH, SeparationProfile
from query_separator.spectral_processor import (
    BandEnergyEstimator,
    EmphasisCurve,
    FFTHandler,
    HarmonicEstimator,
    SpectralSeparator,
)
from query_separator.system_utils import TestSuite

SR = 22050


def _tone(freq: float, seconds: float = 1.0, amp: float = 0.1) -> np.ndarray:
    t = np.arange(int(SR * seconds)) / SR
    tone = amp * np.sin(2.0 * np.pi * freq * t)
    # 20 ms raised-cosine fades keep edge leakage out of the measurements.
    fade = int(0.02 * SR)
    ramp = 0.5 - 0.5 * np.cos(np.pi * np.arange(fade) / fade)
    tone[:fade] *= ramp
    tone[-fade:] *= ramp[::-1]
    return tone.astype(np.float32)


def _rms(x: np.ndarray) -> float:
    return float(np.sqrt(np.mean(np.square(x, dtype=np.float64))))


@pytest.mark.parametrize("length", [0, 1, 100, 2048, SR + 7])
def test_output_length_matches_input(length):
    separator = SpectralSeparator()
    samples = np.random.RandomState(0).randn(length).astype(np.float32) * 0.1
    for profile in (SPEECH, DRUMS):
        out, quality = separator.separate_channel(samples, profile, SR)
        assert out.shape == samples.shape
        assert 0.0 <= quality <= 1.0


def test_silence_stays_silent():
    separator = SpectralSeparator()
    out, quality = separator.separate_channel(np.zeros(SR, dtype=np.float32), SPEECH, SR)
    assert np.allclose(out, 0.0)
    assert quality == 0.0


def test_in_band_tone_is_boosted_and_out_of_band_tone_suppressed():
    separator = SpectralSeparator()
    inside = _tone(1000.0)
    outside = _tone(7000.0)

    out_in, quality_in = separator.separate_channel(inside, SPEECH, SR)
    out_out, quality_out = separator.separate_channel(outside, SPEECH, SR)

    assert _rms(out_in) / _rms(inside) > 2.0
    assert _rms(out_out) / _rms(outside) < 0.2
    assert quality_in > 0.9
    assert quality_out < 0.1


def test_spectral_algorithm_boosts_band():
    profile = SeparationProfile((200.0, 3000.0), (500.0,), "spectral", 4.0, 0.1)
    separator = SpectralSeparator()
    x = _tone(1500.0)
    out, _ = separator.separate_channel(x, profile, SR)
    assert _rms(out) / _rms(x) > 1.5


def test_multiband_scales_sequential_segments():
    separator = SpectralSeparator(num_segments=16)
    x = TestSuite.generate_example(sr=SR, seconds=0.5)[0]
    out, quality = separator.separate_channel(x, DRUMS, SR)
    assert np.allclose(out, x * DRUMS.gain, atol=1e-6)
    assert quality > 0.5


def test_mask_respects_ceiling_and_attenuation():
    separator = SpectralSeparator(gain_ceiling=3.0)
    fft = separator.fft
    spectrum = fft.stft(_tone(300.0, seconds=0.25))
    freqs = fft.freqs(SR)
    mask = separator.frame_mask(np.abs(spectrum), freqs, SPEECH)
    in_band = (freqs >= SPEECH.low_hz) & (freqs <= SPEECH.high_hz)

    assert mask.shape == spectrum.shape
    assert mask.max() <= 3.0 + 1e-9
    assert np.allclose(mask[~in_band], SPEECH.noise_floor_attenuation)
    assert mask[in_band].min() >= SPEECH.noise_floor_attenuation


def test_emphasis_curve_falls_off_linearly():
    curve = EmphasisCurve(radius_hz=100.0, boost=1.5)
    freqs = np.array([1000.0, 1050.0, 1100.0, 1500.0])
    out = curve.compute(freqs, (1000.0,))
    assert out[0] == pytest.approx(2.5)
    assert out[1] == pytest.approx(1.75)
    assert out[2] == pytest.approx(1.0)
    assert out[3] == pytest.approx(1.0)


def test_channels_are_processed_independently():
    data = np.stack([np.zeros(SR // 2, dtype=np.float32), _tone(1000.0, seconds=0.5)])
    signal = AudioSignal.from_array(data, SR)
    before = signal.channels.copy()

    out, quality = SpectralSeparator().separate(signal, SPEECH)

    assert out.channels.shape == signal.channels.shape
    assert np.allclose(out.channels[0], 0.0)
    assert _rms(out.channels[1]) > 0.0
    assert 0.0 <= quality <= 1.0
    assert np.array_equal(signal.channels, before)


def test_hamming_window_and_short_hop_preserve_length():
    separator = SpectralSeparator(FFTHandler(n_fft=4096, hop_length=512, window="hamming"))
    x = TestSuite.generate_example(sr=SR, seconds=0.3)[0]
    out, _ = separator.separate_channel(x, SPEECH, SR)
    assert out.shape == x.shape
    assert np.isfinite(out).all()


def _single_bin_frames(freqs: np.ndarray, *peaks: float) -> np.ndarray:
    mag = np.zeros((freqs.size, len(peaks)))
    for frame, peak in enumerate(peaks):
        mag[int(np.argmin(np.abs(freqs - peak))), frame] = 1.0
    return mag


def test_harmonic_estimator_weights_overtones_below_fundamental():
    freqs = np.arange(0.0, 4001.0, 100.0)
    profile = SeparationProfile((100.0, 4000.0), (500.0,), "harmonic", 3.0, 0.1)
    mag = _single_bin_frames(freqs, 500.0, 1000.0, 1500.0, 2000.0)

    strength = HarmonicEstimator().strength(mag, freqs, profile)

    assert strength[0] > strength[1] > strength[2] > 0.0
    assert strength[3] == 0.0


def test_harmonic_and_band_baselines_differ_for_the_same_frames():
    freqs = np.arange(0.0, 4001.0, 100.0)
    profile = SeparationProfile((100.0, 4000.0), (500.0,), "harmonic", 3.0, 0.1)
    in_band = (freqs >= profile.low_hz) & (freqs <= profile.high_hz)
    # 700 Hz sits in band but off the 500 Hz harmonic series.
    mag = _single_bin_frames(freqs, 500.0, 700.0)

    harmonic = HarmonicEstimator().strength(mag, freqs, profile)
    band = BandEnergyEstimator().strength(mag, in_band)

    assert harmonic[1] == 0.0
    assert band[1] > 0.0
    assert band[0] == pytest.approx(band[1])
    assert not np.allclose(harmonic, band)
