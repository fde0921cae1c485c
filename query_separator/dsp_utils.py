from __future__ import annotations

import logging
import re

import numpy as np

LOG = logging.getLogger("query_separator.dsp")


def ensure_channels_first(audio: np.ndarray, channels_last: bool = False) -> np.ndarray:
    """Return audio as shape (n_channels, n_samples).

    2-D input is taken as channels-first unless ``channels_last`` is set,
    which is the (n_samples, n_channels) layout soundfile hands back.
    """
    audio = np.asarray(audio)
    if audio.ndim == 1:
        return audio[np.newaxis, :]
    if audio.ndim != 2:
        raise ValueError(f"Unexpected audio shape: {audio.shape}")
    return audio.T if channels_last else audio


def sanitize(x: np.ndarray, name: str = "signal") -> np.ndarray:
    if np.isfinite(x).all():
        return x
    LOG.warning("Non-finite values detected in %s; replacing with 0.", name)
    return np.nan_to_num(x, nan=0.0, posinf=0.0, neginf=0.0)


def lin_to_db(x: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    return 20.0 * np.log10(np.maximum(x, eps))


def rms(x: np.ndarray, eps: float = 1e-12) -> float:
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(x * x) + eps))


def peak_dbfs(x: np.ndarray, eps: float = 1e-12) -> float:
    peak = float(np.max(np.abs(x)) + eps) if x.size else eps
    return float(20.0 * np.log10(peak))


def slugify(term: str) -> str:
    """Replace runs of non-alphanumeric characters with a single underscore."""
    slug = re.sub(r"[^A-Za-z0-9]+", "_", term.strip())
    return slug or "target"
