"""
core/spectrum/notes.py — The fixed semitone range every score is computed for.

89 equal-tempered pitches from C1 (≈32.7 Hz) to E8 (≈5274 Hz). A note's
ordinal is its index into every per-note array of the pipeline
(``Scores.note_scores``, ``DissonanceTable`` rows, ...).

Tuning: A4 = 440 Hz, ``freq(note) = 440 * 2 ** ((index - 45) / 12)``.

"Nearest note" is measured in log frequency (cents), not in Hz: the boundary
between two neighbouring semitones sits at their geometric mean, 50 cents
from each.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from enum import IntEnum

import numpy as np


class Note(IntEnum):
    """Any note one might reasonably play, ordered by pitch."""

    C1 = 0
    CSharp1 = 1
    D1 = 2
    DSharp1 = 3
    E1 = 4
    F1 = 5
    FSharp1 = 6
    G1 = 7
    GSharp1 = 8
    A1 = 9
    ASharp1 = 10
    B1 = 11
    C2 = 12
    CSharp2 = 13
    D2 = 14
    DSharp2 = 15
    E2 = 16
    F2 = 17
    FSharp2 = 18
    G2 = 19
    GSharp2 = 20
    A2 = 21
    ASharp2 = 22
    B2 = 23
    C3 = 24
    CSharp3 = 25
    D3 = 26
    DSharp3 = 27
    E3 = 28
    F3 = 29
    FSharp3 = 30
    G3 = 31
    GSharp3 = 32
    A3 = 33
    ASharp3 = 34
    B3 = 35
    C4 = 36
    CSharp4 = 37
    D4 = 38
    DSharp4 = 39
    E4 = 40
    F4 = 41
    FSharp4 = 42
    G4 = 43
    GSharp4 = 44
    A4 = 45
    ASharp4 = 46
    B4 = 47
    C5 = 48
    CSharp5 = 49
    D5 = 50
    DSharp5 = 51
    E5 = 52
    F5 = 53
    FSharp5 = 54
    G5 = 55
    GSharp5 = 56
    A5 = 57
    ASharp5 = 58
    B5 = 59
    C6 = 60
    CSharp6 = 61
    D6 = 62
    DSharp6 = 63
    E6 = 64
    F6 = 65
    FSharp6 = 66
    G6 = 67
    GSharp6 = 68
    A6 = 69
    ASharp6 = 70
    B6 = 71
    C7 = 72
    CSharp7 = 73
    D7 = 74
    DSharp7 = 75
    E7 = 76
    F7 = 77
    FSharp7 = 78
    G7 = 79
    GSharp7 = 80
    A7 = 81
    ASharp7 = 82
    B7 = 83
    C8 = 84
    CSharp8 = 85
    D8 = 86
    DSharp8 = 87
    E8 = 88

    @property
    def freq(self) -> float:
        """Equal-tempered frequency in Hz."""
        half_tones = int(self) - int(BASE_NOTE)
        return BASE_FREQUENCY * 2.0 ** (half_tones / 12.0)

    @property
    def octave_index(self) -> int:
        """Position inside the octave, 0 = C … 11 = B. Selects a display name."""
        return int(self) % 12

    @property
    def octave(self) -> int:
        """Scientific octave number (C4 is middle C)."""
        return int(self) // 12 + 1

    def iter_from(self) -> Iterator[Note]:
        """All notes starting at this one, ascending."""
        return (note for note in Note if note >= self)


NOTE_COUNT = len(Note)
BASE_NOTE = Note.A4
BASE_FREQUENCY = 440.0


def note_frequencies() -> np.ndarray:
    """Frequencies of all NOTE_COUNT notes, indexed by ordinal."""
    half_tones = np.arange(NOTE_COUNT, dtype=np.float64) - int(BASE_NOTE)
    return (BASE_FREQUENCY * 2.0 ** (half_tones / 12.0)).astype(np.float32)


def nearest_note_index(hz: float) -> int | None:
    """Index of the semitone closest to ``hz`` on a log scale.

    Rounds ``12 * log2(hz / 440)``, so the split between two semitones is their
    geometric mean (e.g. ~452.9 Hz between A4 and A#4, not the arithmetic
    ~453.1 Hz).

    Returns None for non-positive frequencies, or when the closest semitone
    falls outside the 89-note range (the frequency is not clamped onto C1/E8).
    """
    if not hz > 0.0 or not math.isfinite(hz):
        return None
    index = int(round(12.0 * math.log2(hz / BASE_FREQUENCY))) + int(BASE_NOTE)
    if 0 <= index < NOTE_COUNT:
        return index
    return None


def nearest_note_indices(frequencies: np.ndarray) -> np.ndarray:
    """Vectorised nearest_note_index(), same log-scale rounding.

    Non-positive, non-finite and out-of-range entries are -1.
    """
    freqs = np.asarray(frequencies, dtype=np.float64)
    out = np.full(freqs.shape, -1, dtype=np.int64)
    valid = np.isfinite(freqs) & (freqs > 0.0)
    if not valid.any():
        return out
    idx = np.rint(12.0 * np.log2(freqs[valid] / BASE_FREQUENCY)).astype(np.int64) + int(BASE_NOTE)
    idx[(idx < 0) | (idx >= NOTE_COUNT)] = -1
    out[valid] = idx
    return out
