from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .analyzer import Analyzer
from .audio_signal import AudioSignal
from .dsp_utils import sanitize, slugify
from .errors import InputError, ProcessingError, SeparationError
from .query_parser import match_detected_sounds, matches_for_target, parse_query
from .signal_conditioner import SignalConditioner
from .sound_catalog import lookup_profile
from .spectral_processor import FFTHandler, SpectralSeparator
from .wav_codec import encode_wav, load_audio

LOG = logging.getLogger("query_separator.engine")

ProgressCallback = Callable[[int], None]

MIN_N_FFT = 2048
MAX_N_FFT = 4096


@dataclass
class SeparationConfig:
    n_fft: int = 2048
    hop_length: int = 512
    window: str = "hann"

    gain_ceiling: float = 8.0
    emphasis_radius_hz: float = 100.0
    emphasis_boost: float = 1.5
    harmonic_weights: tuple[float, ...] = (1.0, 0.5, 0.33)
    baseline_floor: float = 0.5
    spectral_peak_weight: float = 0.25
    num_segments: int = 16

    conditioning: str = "limit"
    soft_knee: float = 0.8
    noise_floor: float = 0.001
    clamp_limit: float = 0.95
    normalize_peak: float = 0.8
    gain_applied_upstream: bool = True

    target_sample_rate: int | None = None
    mono_output: bool = True
    log_path: str | None = None


@dataclass(frozen=True)
class SeparationResult:
    target: str
    signal: AudioSignal
    wav_bytes: bytes
    confidence: float
    description: str
    matched_labels: tuple[str, ...] = ()
    algorithm: str = "spectral"
    signal_strength: float = 0.0
    separation_quality: float = 0.0

    @property
    def filename(self) -> str:
        return f"extracted_{slugify(self.target)}.wav"

    def to_metadata(self) -> dict:
        return {
            "term": self.target,
            "filename": self.filename,
            "confidence": round(self.confidence, 4),
            "description": self.description,
            "matched_labels": list(self.matched_labels),
            "algorithm": self.algorithm,
            "signal_strength": round(self.signal_strength, 4),
            "separation_quality": round(self.separation_quality, 4),
        }


class SeparationEngine:
    """Query-driven extraction: text query in, one conditioned WAV per target out."""

    def __init__(self, config: SeparationConfig | None = None):
        self.config = config or SeparationConfig()
        cfg = self.config
        if not MIN_N_FFT <= cfg.n_fft <= MAX_N_FFT:
            raise ValueError(f"n_fft must be in [{MIN_N_FFT}, {MAX_N_FFT}], got {cfg.n_fft}")
        if not cfg.n_fft // 8 <= cfg.hop_length <= cfg.n_fft // 4:
            raise ValueError(f"hop_length must be in [n_fft/8, n_fft/4], got {cfg.hop_length} for n_fft={cfg.n_fft}")

        self.fft = FFTHandler(cfg.n_fft, cfg.hop_length, cfg.window)
        self.separator = SpectralSeparator(
            self.fft,
            gain_ceiling=cfg.gain_ceiling,
            emphasis_radius_hz=cfg.emphasis_radius_hz,
            emphasis_boost=cfg.emphasis_boost,
            harmonic_weights=tuple(cfg.harmonic_weights),
            baseline_floor=cfg.baseline_floor,
            spectral_peak_weight=cfg.spectral_peak_weight,
            num_segments=cfg.num_segments,
        )
        self.conditioner = SignalConditioner(
            mode=cfg.conditioning,
            soft_knee=cfg.soft_knee,
            noise_floor=cfg.noise_floor,
            clamp_limit=cfg.clamp_limit,
            normalize_peak=cfg.normalize_peak,
            gain_applied_upstream=cfg.gain_applied_upstream,
        )
        self.analyzer = Analyzer(log_path=cfg.log_path)

    def _residual_gain(self, gain: float) -> float:
        # Gain the upstream ceiling cut off, re-applied by the conditioner.
        return max(gain / self.config.gain_ceiling, 1.0)

    def extract_target(
        self,
        signal: AudioSignal,
        target: str,
        matched: list[str],
    ) -> SeparationResult:
        profile = lookup_profile(target)
        LOG.info(
            "Extracting %r: %s %.0f-%.0f Hz, gain %.1fx",
            target, profile.algorithm, profile.low_hz, profile.high_hz, profile.gain,
        )
        separated, quality = self.separator.separate(signal, profile)
        conditioned = self.conditioner.condition_signal(separated, gain=self._residual_gain(profile.gain))
        wav_bytes = encode_wav(conditioned, mono=self.config.mono_output)

        target_matches = matches_for_target(target, matched)
        analysis = self.analyzer.analyze(target, target_matches, conditioned, quality, profile.algorithm)
        self.analyzer.log_metrics(target, profile.algorithm, analysis, conditioned, name=f"extracted_{slugify(target)}")
        return SeparationResult(
            target=target,
            signal=conditioned,
            wav_bytes=wav_bytes,
            confidence=analysis.confidence,
            description=analysis.description,
            matched_labels=tuple(target_matches),
            algorithm=profile.algorithm,
            signal_strength=analysis.signal_strength,
            separation_quality=analysis.separation_quality,
        )

    def separate(
        self,
        signal: AudioSignal,
        query: str,
        detected_labels: Iterable[str] = (),
        progress: ProgressCallback | None = None,
    ) -> list[SeparationResult]:
        """Run the full pipeline; any failure aborts the batch with no partial results."""
        if signal is None:
            raise InputError("No audio supplied")
        if query is None or not str(query).strip():
            raise InputError("Query must contain at least one non-whitespace character")
        signal.validate()
        signal = AudioSignal(signal.sample_rate, sanitize(signal.channels, name="input audio"))

        report = progress or (lambda pct: None)
        report(0)
        targets = parse_query(query)
        report(20)
        matched = match_detected_sounds(targets, list(detected_labels))
        report(40)
        LOG.info("Query %r -> targets %s (matched labels: %s)", query, targets, matched)

        results: list[SeparationResult] = []
        span = 55.0 / len(targets)
        for index, target in enumerate(targets):
            try:
                results.append(self.extract_target(signal, target, matched))
            except SeparationError:
                raise
            except Exception as exc:
                LOG.error("Separation failed for %r: %s", target, exc, exc_info=True)
                raise ProcessingError(target, str(exc)) from exc
            report(int(40 + span * (index + 1)))
        report(100)
        return results

    def separate_file(
        self,
        input_path: str | Path,
        query: str,
        out_dir: str | Path,
        detected_labels: Iterable[str] = (),
        progress: ProgressCallback | None = None,
    ) -> list[SeparationResult]:
        if query is None or not str(query).strip():
            raise InputError("Query must contain at least one non-whitespace character")
        signal = load_audio(input_path, target_sr=self.config.target_sample_rate)
        results = self.separate(signal, query, detected_labels, progress=progress)

        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        for result in results:
            (out_dir / result.filename).write_bytes(result.wav_bytes)
            LOG.info("Wrote: %s", out_dir / result.filename)

        report = {
            "input": str(input_path),
            "query": query,
            "sample_rate": signal.sample_rate,
            "duration_sec": round(signal.duration, 3),
            "results": [r.to_metadata() for r in results],
        }
        report_path = out_dir / "separation_report.json"
        report_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        LOG.info("Report: %s", report_path)
        return results

