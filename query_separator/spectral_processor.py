from __future__ import annotations

import logging

import numpy as np
import librosa
from scipy.signal import get_window

from .audio_signal import AudioSignal
from .sound_catalog import SeparationProfile

LOG = logging.getLogger("query_separator.spectral")

_EPS = 1e-9


class FFTHandler:
    """STFT/I-STFT wrapper to keep FFT settings centralized."""

    def __init__(self, n_fft: int = 2048, hop_length: int = 512, window: str = "hann"):
        self.n_fft = int(n_fft)
        self.hop_length = int(hop_length)
        self.window_name = window
        self.window = get_window(window, self.n_fft, fftbins=True)

    def stft(self, signal: np.ndarray) -> np.ndarray:
        return librosa.stft(
            signal,
            n_fft=self.n_fft,
            hop_length=self.hop_length,
            win_length=self.n_fft,
            window=self.window,
            center=True,
        )

    def istft(self, spectrum: np.ndarray, length: int) -> np.ndarray:
        # Overlap-add with window-energy normalisation.
        return librosa.istft(
            spectrum,
            hop_length=self.hop_length,
            win_length=self.n_fft,
            window=self.window,
            length=length,
        )

    def freqs(self, sr: int) -> np.ndarray:
        return librosa.fft_frequencies(sr=sr, n_fft=self.n_fft)


class EmphasisCurve:
    """Per-bin boost that falls off linearly around each emphasis frequency."""

    def __init__(self, radius_hz: float = 100.0, boost: float = 1.5):
        self.radius_hz = float(radius_hz)
        self.boost = float(boost)

    def compute(self, freqs: np.ndarray, emphasis: tuple[float, ...]) -> np.ndarray:
        curve = np.ones_like(freqs, dtype=np.float64)
        if self.radius_hz <= 0.0:
            return curve
        for center in emphasis:
            distance = np.abs(freqs - center)
            near = distance < self.radius_hz
            curve[near] *= 1.0 + (self.radius_hz - distance[near]) / self.radius_hz * self.boost
        return curve


class HarmonicEstimator:
    """Frame strength from energy at the emphasis frequencies and their 2nd/3rd harmonics."""

    def __init__(self, weights: tuple[float, ...] = (1.0, 0.5, 0.33)):
        self.weights = tuple(float(w) for w in weights)

    def strength(self, mag: np.ndarray, freqs: np.ndarray, profile: SeparationProfile) -> np.ndarray:
        n_frames = mag.shape[1]
        nyquist = float(freqs[-1])
        energy = np.zeros(n_frames, dtype=np.float64)
        total_weight = 0.0
        for fundamental in profile.emphasis_frequencies:
            for order, weight in enumerate(self.weights, start=1):
                target = fundamental * order
                if target > nyquist:
                    break
                idx = int(np.argmin(np.abs(freqs - target)))
                energy += weight * mag[idx]
                total_weight += weight
        if total_weight == 0.0:
            return np.zeros(n_frames, dtype=np.float64)
        harmonic = energy / total_weight
        frame_mean = np.mean(mag, axis=0)
        return harmonic / (harmonic + frame_mean + _EPS)


class BandEnergyEstimator:
    """Frame strength from the mean (blended with peak) magnitude across the target band."""

    def __init__(self, peak_weight: float = 0.25):
        self.peak_weight = float(np.clip(peak_weight, 0.0, 1.0))

    def strength(self, mag: np.ndarray, in_band: np.ndarray) -> np.ndarray:
        n_frames = mag.shape[1]
        if not in_band.any():
            return np.zeros(n_frames, dtype=np.float64)
        band = mag[in_band]
        level = (1.0 - self.peak_weight) * band.mean(axis=0) + self.peak_weight * band.max(axis=0)
        frame_mean = np.mean(mag, axis=0)
        return level / (level + frame_mean + _EPS)


class SpectralSeparator:
    """Frequency-mask separation of one target from a mixed signal.

    The separation is a fixed-rule heuristic: energy inside the profile's
    frequency range is boosted, everything else is pushed down to the
    profile's noise floor. It approximates source separation, it does not
    model sources.
    """

    def __init__(
        self,
        fft: FFTHandler | None = None,
        gain_ceiling: float = 8.0,
        emphasis_radius_hz: float = 100.0,
        emphasis_boost: float = 1.5,
        harmonic_weights: tuple[float, ...] = (1.0, 0.5, 0.33),
        baseline_floor: float = 0.5,
        spectral_peak_weight: float = 0.25,
        num_segments: int = 16,
    ):
        self.fft = fft or FFTHandler()
        self.gain_ceiling = float(gain_ceiling)
        self.emphasis = EmphasisCurve(emphasis_radius_hz, emphasis_boost)
        self.harmonic = HarmonicEstimator(harmonic_weights)
        self.band_energy = BandEnergyEstimator(spectral_peak_weight)
        self.baseline_floor = float(np.clip(baseline_floor, 0.0, 1.0))
        self.num_segments = max(int(num_segments), 1)

    def _band_mask(self, freqs: np.ndarray, profile: SeparationProfile) -> np.ndarray:
        return (freqs >= profile.low_hz) & (freqs <= profile.high_hz)

    def _quality(self, mag: np.ndarray, in_band: np.ndarray) -> float:
        power = mag * mag
        total = power.sum(axis=0)
        active = total > 1e-12
        if not active.any():
            return 0.0
        share = power[in_band].sum(axis=0)[active] / total[active]
        # Running mean over the frames that carry any energy.
        mean = 0.0
        for i, value in enumerate(share, start=1):
            mean += (float(value) - mean) / i
        return float(np.clip(mean, 0.0, 1.0))

    def frame_mask(self, mag: np.ndarray, freqs: np.ndarray, profile: SeparationProfile) -> np.ndarray:
        """Gain for every (bin, frame) cell of ``mag``."""
        in_band = self._band_mask(freqs, profile)
        if profile.algorithm == "harmonic":
            strength = self.harmonic.strength(mag, freqs, profile)
        else:
            strength = self.band_energy.strength(mag, in_band)

        baseline = self.baseline_floor + (1.0 - self.baseline_floor) * strength
        boost = self.emphasis.compute(freqs, profile.emphasis_frequencies)
        target_gain = np.clip(boost[:, None] * baseline[None, :] * profile.gain, 0.0, self.gain_ceiling)
        return np.where(in_band[:, None], target_gain, profile.noise_floor_attenuation)

    def _separate_segments(self, samples: np.ndarray, profile: SeparationProfile) -> np.ndarray:
        gain = min(profile.gain, self.gain_ceiling)
        segments = np.array_split(samples, self.num_segments)
        return np.concatenate([segment * gain for segment in segments])

    def separate_channel(
        self,
        samples: np.ndarray,
        profile: SeparationProfile,
        sr: int,
    ) -> tuple[np.ndarray, float]:
        samples = np.asarray(samples, dtype=np.float32)
        length = samples.shape[0]
        if length == 0:
            return np.zeros(0, dtype=np.float32), 0.0

        spectrum = self.fft.stft(samples)
        mag = np.abs(spectrum)
        freqs = self.fft.freqs(sr)
        in_band = self._band_mask(freqs, profile)
        quality = self._quality(mag, in_band)

        if profile.algorithm == "multiband":
            out = self._separate_segments(samples, profile)
        else:
            mask = self.frame_mask(mag, freqs, profile)
            out = self.fft.istft(spectrum * mask, length=length)
        return out.astype(np.float32), quality

    def separate(self, signal: AudioSignal, profile: SeparationProfile) -> tuple[AudioSignal, float]:
        """Process every channel independently; quality is averaged over channels."""
        if signal.n_samples == 0:
            return signal.empty_like(), 0.0
        outputs = []
        qualities = []
        for index in range(signal.n_channels):
            out, quality = self.separate_channel(signal.channel(index), profile, signal.sample_rate)
            outputs.append(out)
            qualities.append(quality)
        LOG.debug(
            "Separated %d channel(s) with %s algorithm, quality=%.3f",
            signal.n_channels,
            profile.algorithm,
            float(np.mean(qualities)) if qualities else 0.0,
        )
        return signal.with_channels(outputs), float(np.mean(qualities))
