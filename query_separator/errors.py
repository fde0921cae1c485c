from __future__ import annotations


class SeparationError(RuntimeError):
    """Base class for every failure scoped to a single separation request."""


class InputError(SeparationError, ValueError):
    """Missing file, non-audio input, empty query or an unusable signal."""


class DecodeError(SeparationError):
    """The uploaded byte stream could not be decoded into audio."""


class ProcessingError(SeparationError):
    """Unexpected failure while extracting one target; aborts the whole batch."""

    def __init__(self, target: str, message: str):
        super().__init__(f"Separation failed for {target!r}: {message}")
        self.target = target
