from __future__ import annotations

import logging

import numpy as np

from .audio_signal import AudioSignal
from .dsp_utils import sanitize

LOG = logging.getLogger("query_separator.conditioner")

CONDITIONING_MODES = ("limit", "normalize")


class SignalConditioner:
    """Output safety stage: soft knee, optional make-up gain, hard clamp.

    ``mode="normalize"`` swaps the chain for a single peak normalisation.
    Either way no returned sample exceeds unit magnitude.
    """

    def __init__(
        self,
        mode: str = "limit",
        soft_knee: float = 0.8,
        noise_floor: float = 0.001,
        clamp_limit: float = 0.95,
        normalize_peak: float = 0.8,
        gain_applied_upstream: bool = True,
    ):
        if mode not in CONDITIONING_MODES:
            raise ValueError(f"mode must be one of {CONDITIONING_MODES}, got {mode!r}")
        self.mode = mode
        self.soft_knee = float(np.clip(soft_knee, 0.0, 0.99))
        self.noise_floor = float(max(noise_floor, 0.0))
        self.clamp_limit = float(np.clip(clamp_limit, 0.0, 1.0))
        self.normalize_peak = float(np.clip(normalize_peak, 0.0, 1.0))
        self.gain_applied_upstream = bool(gain_applied_upstream)

    def soft_limit(self, x: np.ndarray) -> np.ndarray:
        knee = self.soft_knee
        mag = np.abs(x)
        over = mag > knee
        if not over.any():
            return x
        out = x.copy()
        span = 1.0 - knee
        # tanh keeps the compressed part at or below 1.0.
        out[over] = np.sign(x[over]) * (knee + span * np.tanh((mag[over] - knee) / span))
        return out

    def amplify(self, x: np.ndarray, gain: float) -> np.ndarray:
        out = x.copy()
        audible = np.abs(out) > self.noise_floor
        out[audible] *= gain
        return out

    def normalize(self, x: np.ndarray) -> np.ndarray:
        peak = float(np.max(np.abs(x))) if x.size else 0.0
        if peak <= 0.0:
            return x.copy()
        return x * (self.normalize_peak / peak)

    def condition(self, samples: np.ndarray, gain: float = 1.0) -> np.ndarray:
        x = sanitize(np.asarray(samples, dtype=np.float64), name="engine output")
        if x.size == 0:
            return x.astype(np.float32)
        if self.mode == "normalize":
            x = self.normalize(x)
        else:
            x = self.soft_limit(x)
            if not self.gain_applied_upstream and gain != 1.0:
                x = self.amplify(x, gain)
            x = np.clip(x, -self.clamp_limit, self.clamp_limit)
        return np.clip(x, -1.0, 1.0).astype(np.float32)

    def condition_signal(self, signal: AudioSignal, gain: float = 1.0) -> AudioSignal:
        if signal.n_samples == 0:
            return signal.empty_like()
        channels = [self.condition(signal.channel(i), gain) for i in range(signal.n_channels)]
        return signal.with_channels(channels)
