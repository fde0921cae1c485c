from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

ALGORITHMS = ("harmonic", "spectral", "multiband")


@dataclass(frozen=True)
class SeparationProfile:
    """Frequency/gain parameters governing how one target term is isolated."""

    frequency_range: tuple[float, float]
    emphasis_frequencies: tuple[float, ...]
    algorithm: str
    gain: float
    noise_floor_attenuation: float

    def __post_init__(self):
        low, high = self.frequency_range
        if not low < high:
            raise ValueError(f"frequency_range must satisfy low < high, got {self.frequency_range}")
        if self.algorithm not in ALGORITHMS:
            raise ValueError(f"algorithm must be one of {ALGORITHMS}, got {self.algorithm!r}")
        if self.gain < 1.0:
            raise ValueError(f"gain must be >= 1, got {self.gain}")
        if not 0.0 < self.noise_floor_attenuation <= 1.0:
            raise ValueError(f"noise_floor_attenuation must be in (0, 1], got {self.noise_floor_attenuation}")

    @property
    def low_hz(self) -> float:
        return float(self.frequency_range[0])

    @property
    def high_hz(self) -> float:
        return float(self.frequency_range[1])


SPEECH = SeparationProfile((85.0, 4000.0), (300.0, 1000.0, 2000.0), "harmonic", 4.0, 0.1)
MUSIC = SeparationProfile((20.0, 20000.0), (440.0, 880.0, 1760.0), "harmonic", 3.0, 0.2)
GUITAR = SeparationProfile((80.0, 5000.0), (330.0, 660.0, 990.0), "harmonic", 3.5, 0.15)
PIANO = SeparationProfile((27.0, 4200.0), (523.0, 1046.0), "harmonic", 3.5, 0.15)
DRUMS = SeparationProfile((20.0, 15000.0), (100.0, 200.0, 5000.0), "multiband", 3.0, 0.3)
ANIMAL_BARK = SeparationProfile((200.0, 3000.0), (500.0, 1000.0, 1500.0), "spectral", 5.0, 0.1)
BIRD = SeparationProfile((1000.0, 8000.0), (2000.0, 4000.0, 6000.0), "harmonic", 6.0, 0.1)
VEHICLE = SeparationProfile((20.0, 600.0), (50.0, 100.0, 200.0), "spectral", 4.5, 0.1)
TRAFFIC = SeparationProfile((20.0, 2000.0), (80.0, 200.0), "spectral", 3.5, 0.2)
WATER = SeparationProfile((100.0, 15000.0), (1000.0, 4000.0, 8000.0), "spectral", 3.5, 0.2)
RAIN = SeparationProfile((500.0, 15000.0), (2000.0, 6000.0), "spectral", 3.0, 0.2)
WIND = SeparationProfile((20.0, 2000.0), (50.0, 200.0, 1000.0), "spectral", 3.0, 0.2)
APPLAUSE = SeparationProfile((1000.0, 8000.0), (2000.0,), "multiband", 3.5, 0.2)
FOOTSTEPS = SeparationProfile((20.0, 2000.0), (200.0,), "multiband", 3.0, 0.2)
DOOR = SeparationProfile((100.0, 4000.0), (500.0,), "multiband", 3.0, 0.2)
PHONE = SeparationProfile((300.0, 3400.0), (1000.0, 2000.0), "harmonic", 4.0, 0.1)
NOISE = SeparationProfile((20.0, 20000.0), (1000.0,), "spectral", 2.0, 0.5)
AMBIENT = SeparationProfile((20.0, 1000.0), (200.0,), "spectral", 2.5, 0.3)

DEFAULT_PROFILE = SeparationProfile((100.0, 8000.0), (1000.0,), "spectral", 3.0, 0.1)

# Matching order: the first key found inside the term wins.
_CATALOG: tuple[tuple[str, SeparationProfile], ...] = (
    ("speech", SPEECH),
    ("voice", SPEECH),
    ("talking", SPEECH),
    ("speaking", SPEECH),
    ("conversation", SPEECH),
    ("music", MUSIC),
    ("song", MUSIC),
    ("melody", MUSIC),
    ("instrument", MUSIC),
    ("guitar", GUITAR),
    ("piano", PIANO),
    ("drums", DRUMS),
    ("dog", ANIMAL_BARK),
    ("barking", ANIMAL_BARK),
    ("animal", ANIMAL_BARK),
    ("bird", BIRD),
    ("chirping", BIRD),
    ("car", VEHICLE),
    ("vehicle", VEHICLE),
    ("engine", VEHICLE),
    ("traffic", TRAFFIC),
    ("water", WATER),
    ("flowing", WATER),
    ("rain", RAIN),
    ("wind", WIND),
    ("clapping", APPLAUSE),
    ("applause", APPLAUSE),
    ("footsteps", FOOTSTEPS),
    ("walking", FOOTSTEPS),
    ("door", DOOR),
    ("knock", DOOR),
    ("closing", DOOR),
    ("opening", DOOR),
    ("phone", PHONE),
    ("ringing", PHONE),
    ("notification", PHONE),
    ("noise", NOISE),
    ("background", AMBIENT),
    ("ambient", AMBIENT),
)

CATALOG = MappingProxyType(dict(_CATALOG))


def catalog_keys() -> tuple[str, ...]:
    return tuple(key for key, _ in _CATALOG)


def lookup_profile(term: str) -> SeparationProfile:
    """Return the profile of the first catalog key contained in ``term``."""
    needle = term.lower()
    for key, profile in _CATALOG:
        if key in needle:
            return profile
    return DEFAULT_PROFILE
