from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .analyzer import AnalysisResult
    from .audio_signal import AudioSignal

LOG = logging.getLogger("query_separator.metrics")


class SeparationMetricsLogger:
    """Collects and stores separation metrics after each extracted target."""

    def __init__(self, log_path: str | Path = "separation_log.json"):
        self.log_path = Path(log_path)
        self.logs = self._load()

    def _load(self) -> list[dict]:
        if self.log_path.exists():
            try:
                return json.loads(self.log_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                LOG.warning("Could not read metrics log %s: %s. Starting a new one.", self.log_path, e)
                return []
        return []

    def _write(self) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_path.write_text(json.dumps(self.logs, indent=2), encoding="utf-8")

    def record(
        self,
        target: str,
        algorithm: str,
        analysis: "AnalysisResult",
        output: "AudioSignal",
        name: str = "render",
    ) -> dict:
        entry = {
            "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
            "render_name": name,
            "target": target,
            "algorithm": algorithm,
            "metrics": {
                "confidence": analysis.confidence,
                "signal_strength": analysis.signal_strength,
                "separation_quality": analysis.separation_quality,
                "peak_dbfs": analysis.peak_dbfs,
                "rms_db": analysis.rms_db,
                "sample_count": output.n_samples,
                "sample_rate": output.sample_rate,
                "channels": output.n_channels,
            },
        }
        self.logs.append(entry)
        self._write()
        return entry
