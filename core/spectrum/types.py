"""
core/spectrum/types.py — Value objects flowing through the analysis pipeline.

All types are frozen: a Spectrum or Scores snapshot can be handed to another
thread (or fanned out to several displays) without copying.

Design principles:
    - Frequency is the scalar (value, intensity) pair; comparisons order by
      intensity so components can be sorted and skip-filtered.
    - Spectrum stores its components as two float32 numpy arrays and only
      materialises Frequency objects on indexing/iteration.
    - Arrays held by Spectrum and Scores are marked read-only at construction.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import numpy as np

from core.spectrum.notes import NOTE_COUNT


def _frozen_array(values: object) -> np.ndarray:
    """Copy ``values`` into a read-only 1-D float32 array."""
    array = np.array(values, dtype=np.float32, copy=True).reshape(-1)
    array.flags.writeable = False
    return array


# ---------------------------------------------------------------------------
# Frequency
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=True)
class Frequency:
    """A single spectral component.

    Invariants:
        value >= 0      (Hz)
        intensity >= 0  (unitless power, |bin|²)
    """

    value: float
    intensity: float

    @property
    def amplitude(self) -> float:
        return math.sqrt(self.intensity)

    def __lt__(self, other: Frequency) -> bool:
        return self.intensity < other.intensity

    def __le__(self, other: Frequency) -> bool:
        return self.intensity <= other.intensity

    def __gt__(self, other: Frequency) -> bool:
        return self.intensity > other.intensity

    def __ge__(self, other: Frequency) -> bool:
        return self.intensity >= other.intensity


# ---------------------------------------------------------------------------
# Spectrum
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Spectrum(Sequence[Frequency]):
    """An ordered sequence of Frequency components, ascending in frequency.

    Attributes:
        frequencies: Component frequencies in Hz.
        intensities: Component powers, same length as ``frequencies``.
    """

    frequencies: np.ndarray
    intensities: np.ndarray

    def __post_init__(self) -> None:
        frequencies = _frozen_array(self.frequencies)
        intensities = _frozen_array(self.intensities)
        if frequencies.shape != intensities.shape:
            raise ValueError(
                f"Spectrum arrays differ in length: {frequencies.size} frequencies, "
                f"{intensities.size} intensities"
            )
        object.__setattr__(self, "frequencies", frequencies)
        object.__setattr__(self, "intensities", intensities)

    @classmethod
    def from_components(cls, components: Sequence[Frequency]) -> Spectrum:
        """Build a Spectrum from Frequency objects (kept in the given order)."""
        return cls(
            frequencies=[c.value for c in components],
            intensities=[c.intensity for c in components],
        )

    def __len__(self) -> int:
        return int(self.frequencies.size)

    def __getitem__(self, index):  # type: ignore[override]
        if isinstance(index, slice):
            return Spectrum(self.frequencies[index], self.intensities[index])
        return Frequency(float(self.frequencies[index]), float(self.intensities[index]))

    def __iter__(self) -> Iterator[Frequency]:
        for value, intensity in zip(self.frequencies.tolist(), self.intensities.tolist()):
            yield Frequency(value, intensity)

    @property
    def total_intensity(self) -> float:
        return float(np.sum(self.intensities, dtype=np.float64))

    def with_intensities(self, intensities: np.ndarray) -> Spectrum:
        """Same bin layout, new intensities."""
        return Spectrum(self.frequencies, intensities)


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Scores:
    """One analysis frame, ready for display.

    Attributes:
        note_scores: NOTE_COUNT dissonance scores, each in [0, 1].
        note_values: NOTE_COUNT smoothed loudness estimates (sum of amplitudes
            of the heard components nearest to each note).
        fourier:     The spectrum the frame was computed from.
    """

    note_scores: np.ndarray
    note_values: np.ndarray
    fourier: Spectrum

    def __post_init__(self) -> None:
        note_scores = _frozen_array(self.note_scores)
        note_values = _frozen_array(self.note_values)
        for name, array in (("note_scores", note_scores), ("note_values", note_values)):
            if array.size != NOTE_COUNT:
                raise ValueError(f"{name} must have {NOTE_COUNT} entries, got {array.size}")
        object.__setattr__(self, "note_scores", note_scores)
        object.__setattr__(self, "note_values", note_values)
