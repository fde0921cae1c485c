from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .audio_signal import AudioSignal
from .dsp_utils import lin_to_db, peak_dbfs, rms
from .metrics_logger import SeparationMetricsLogger

MAX_CONFIDENCE = 0.95
WELL_DEFINED_CLASSES = ("speech", "voice", "music", "dog", "bark", "bird", "chirp")


@dataclass
class AnalysisResult:
    confidence: float
    description: str
    signal_strength: float
    separation_quality: float
    peak_dbfs: float
    rms_db: float


class ConfidenceScorer:
    """Bounded confidence for one extracted target.

    The score is descriptive metadata built from label overlap and the
    engine's in-band energy share; it is not a measure of acoustic accuracy.
    """

    def __init__(
        self,
        base: float = 0.45,
        match_bonus: float = 0.3,
        quality_weight: float = 0.2,
        class_bonus: float = 0.15,
    ):
        self.base = base
        self.match_bonus = match_bonus
        self.quality_weight = quality_weight
        self.class_bonus = class_bonus

    def score(self, target: str, matched: Iterable[str], quality: float | None = None) -> float:
        term = target.lower()
        confidence = self.base
        if any(label.strip() and (label.lower() in term or term in label.lower()) for label in matched):
            confidence += self.match_bonus
        if quality is not None and np.isfinite(quality):
            confidence += self.quality_weight * float(np.clip(quality, 0.0, 1.0))
        if any(cls in term for cls in WELL_DEFINED_CLASSES):
            confidence += self.class_bonus
        return float(np.clip(confidence, 0.0, MAX_CONFIDENCE))

    @staticmethod
    def describe(target: str, confidence: float, algorithm: str | None = None) -> str:
        if confidence > 0.8:
            quality = "high-quality"
        elif confidence > 0.6:
            quality = "good-quality"
        else:
            quality = "moderate-quality"
        method = f"{algorithm} frequency separation" if algorithm else "frequency-based separation"
        return f"{quality} extraction of {target} using {method}"


class StrengthMeter:
    """Normalised RMS of the conditioned output."""

    def __init__(self, full_scale_rms: float = 0.5):
        self.full_scale_rms = full_scale_rms

    def measure(self, signal: AudioSignal) -> float:
        if signal.n_samples == 0:
            return 0.0
        level = rms(signal.channels)
        if level < 1e-5:
            return 0.0
        return float(np.clip(level / self.full_scale_rms, 0.0, 1.0))


class Analyzer:
    """Scores extracted targets and forwards render metrics to the JSON log."""

    def __init__(self, log_path: str | None = None, scorer: ConfidenceScorer | None = None):
        self.scorer = scorer or ConfidenceScorer()
        self.strength = StrengthMeter()
        self.logger = SeparationMetricsLogger(log_path=log_path) if log_path else None

    def analyze(
        self,
        target: str,
        matched: list[str],
        output: AudioSignal,
        quality: float,
        algorithm: str,
    ) -> AnalysisResult:
        confidence = self.scorer.score(target, matched, quality)
        return AnalysisResult(
            confidence=confidence,
            description=self.scorer.describe(target, confidence, algorithm),
            signal_strength=self.strength.measure(output),
            separation_quality=float(quality),
            peak_dbfs=peak_dbfs(output.channels),
            rms_db=float(lin_to_db(np.asarray(rms(output.channels)))),
        )

    def log_metrics(self, target: str, algorithm: str, analysis: AnalysisResult, output: AudioSignal, name: str = "render") -> None:
        if self.logger:
            self.logger.record(target, algorithm, analysis, output, name=name)
