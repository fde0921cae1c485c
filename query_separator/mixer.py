from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import numpy as np

from .audio_signal import AudioSignal
from .errors import InputError
from .signal_conditioner import SignalConditioner
from .wav_codec import load_audio, write_wav

LOG = logging.getLogger("query_separator.mixer")

MIXED_FILENAME = "mixed_audio.wav"


@dataclass(frozen=True)
class MixResult:
    signal: AudioSignal
    sources: tuple[Path, ...]
    skipped: tuple[Path, ...]
    output_path: Path | None = None


class AudioMixer:
    """Sum several recordings into one peak-normalised mixture.

    Sources shorter than ``min_duration`` seconds are skipped. Shorter sources
    are zero-padded to the longest one; mono sources are spread over every
    output channel.
    """

    def __init__(
        self,
        min_duration: float = 3.0,
        target_sample_rate: int | None = None,
        normalize_peak: float = 0.8,
    ):
        if min_duration < 0:
            raise ValueError(f"min_duration must be >= 0, got {min_duration}")
        self.min_duration = float(min_duration)
        self.target_sample_rate = target_sample_rate
        self.conditioner = SignalConditioner(mode="normalize", normalize_peak=normalize_peak)

    def load_sources(self, paths: Iterable[str | Path]) -> tuple[list[AudioSignal], list[Path], list[Path]]:
        signals: list[AudioSignal] = []
        used: list[Path] = []
        skipped: list[Path] = []
        sr = self.target_sample_rate
        for path in map(Path, paths):
            signal = load_audio(path, target_sr=sr)
            if signal.duration < self.min_duration:
                LOG.info("Skipping %s - too short (%.2fs < %.2fs)", path.name, signal.duration, self.min_duration)
                skipped.append(path)
                continue
            # Later sources follow the first accepted source's rate.
            sr = signal.sample_rate
            signals.append(signal)
            used.append(path)
        LOG.info("Loaded %d source(s), skipped %d", len(signals), len(skipped))
        return signals, used, skipped

    def mix(self, signals: list[AudioSignal]) -> AudioSignal:
        if len(signals) < 2:
            raise InputError(f"Need at least 2 audio sources to mix, got {len(signals)}")
        for signal in signals:
            signal.validate()
        rates = {s.sample_rate for s in signals}
        if len(rates) != 1:
            raise InputError(f"Sources must share one sample rate, got {sorted(rates)}")

        n_channels = max(s.n_channels for s in signals)
        n_samples = max(s.n_samples for s in signals)
        mixed = np.zeros((n_channels, n_samples), dtype=np.float64)
        for signal in signals:
            data = signal.channels
            if data.shape[0] == 1:
                data = np.repeat(data, n_channels, axis=0)
            elif data.shape[0] != n_channels:
                raise InputError(f"Cannot mix {data.shape[0]}-channel source into {n_channels} channels")
            mixed[:, : signal.n_samples] += data

        out = AudioSignal(rates.pop(), mixed.astype(np.float32))
        return self.conditioner.condition_signal(out)

    def mix_files(self, paths: Iterable[str | Path], out_dir: str | Path, mono: bool = False) -> MixResult:
        signals, used, skipped = self.load_sources(paths)
        if len(signals) < 2:
            raise InputError(
                f"Need at least 2 audio files of {self.min_duration:g}s or longer to mix "
                f"({len(skipped)} skipped for being too short)"
            )
        mixed = self.mix(signals)
        output_path = write_wav(Path(out_dir) / MIXED_FILENAME, mixed, mono=mono)
        LOG.info("Mixed %d files -> %s (%.2fs)", len(used), output_path, mixed.duration)
        return MixResult(mixed, tuple(used), tuple(skipped), output_path)
