from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .dsp_utils import ensure_channels_first
from .errors import InputError


@dataclass(frozen=True)
class AudioSignal:
    """Multichannel float32 audio shaped (n_channels, n_samples).

    Every stage returns a new AudioSignal; buffers are never shared across
    stage boundaries.
    """

    sample_rate: int
    channels: np.ndarray

    @classmethod
    def from_array(cls, data: np.ndarray, sample_rate: int, channels_last: bool = False) -> "AudioSignal":
        """Copy 1-D or channels-first ``data`` into a new signal."""
        try:
            buf = np.array(data, dtype=np.float32, copy=True)
        except ValueError as e:
            raise InputError("channels must have equal length") from e
        try:
            buf = ensure_channels_first(buf, channels_last=channels_last)
        except ValueError as e:
            raise InputError(str(e)) from e
        return cls(sample_rate=int(sample_rate), channels=np.ascontiguousarray(buf))

    @property
    def n_channels(self) -> int:
        return int(self.channels.shape[0])

    @property
    def n_samples(self) -> int:
        return int(self.channels.shape[1]) if self.channels.ndim == 2 else 0

    @property
    def duration(self) -> float:
        return self.n_samples / float(self.sample_rate) if self.sample_rate > 0 else 0.0

    def channel(self, index: int) -> np.ndarray:
        return self.channels[index]

    def empty_like(self) -> "AudioSignal":
        return AudioSignal(self.sample_rate, np.zeros_like(self.channels, dtype=np.float32))

    def with_channels(self, channels: list[np.ndarray] | np.ndarray) -> "AudioSignal":
        data = np.stack([np.asarray(c, dtype=np.float32) for c in channels], axis=0)
        if data.shape != self.channels.shape:
            raise ValueError(f"Channel shape changed: {self.channels.shape} -> {data.shape}")
        return AudioSignal(self.sample_rate, data)

    def validate(self) -> "AudioSignal":
        if self.sample_rate <= 0:
            raise InputError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.channels.ndim != 2 or self.n_channels < 1:
            raise InputError("Audio must contain at least one channel")
        if self.n_samples < 1:
            raise InputError("Audio must contain at least one sample")
        return self
