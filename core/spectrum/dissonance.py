"""
core/spectrum/dissonance.py — Perceived roughness between heard audio and a
synthetic, harmonically rich instrument.

Plomp–Levelt curve for two pure tones f1, f2:

    s        = Ds / (S1 * min(f1, f2) + S2)
    exponent = |f1 - f2| * s
    d(f1,f2) = e^(-A * exponent) - e^(-B * exponent)

The curve is 0 at unison, peaks at a small separation (exponent ≈ 0.22,
d ≈ 0.18) and decays back towards 0 for wide intervals.

A playable note is modelled as 2H+1 components: the fundamental at intensity
1, H sub-harmonics f/k and H harmonics f*k at intensity 1/k (k = 2 .. H+1).
The dissonance of a spectrum against a note sums d() over every
(heard, instrument) pair, weighted by both intensities.

Approximations that keep this tractable in real time:
    - ``s`` is computed once per component and the value of the lower of the
      two frequencies is reused for the pair.
    - ``e^(-A x) - e^(-B x)`` is read from a lookup table sampled at bin
      midpoints instead of being evaluated.
    - Pairs whose exponent exceeds ``max_exponent`` contribute exactly 0.
    - For a fixed FFT bin layout, the per-note sums are precomputed once into
      a DissonanceTable; scoring a frame is then a matrix-vector product.

All caches live on a DissonanceModel instance; nothing here is module-global
state, so independent models with different settings can coexist.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np

from core.config import DEFAULT_MODEL, ModelOptions
from core.spectrum.notes import NOTE_COUNT, Note, note_frequencies
from core.spectrum.types import Spectrum
from infrastructure import metrics

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Plomp–Levelt constants
# ---------------------------------------------------------------------------

A = 3.5
B = 5.75
D_S = 0.24
S1 = 0.021
S2 = 19.0

PEAK_EXPONENT = float(np.log(B / A) / (B - A))
"""Exponent at which the curve reaches its maximum."""

MIN_HEARD_INTENSITY = 1e-4
"""Heard components quieter than this are ignored by dissonance_complex()."""

# Upper bound on (heard x played) pairs evaluated in one numpy block
_MAX_BLOCK_PAIRS = 1 << 20


# ---------------------------------------------------------------------------
# Pure formula
# ---------------------------------------------------------------------------


def plomp_levelt_s(freq: float | np.ndarray) -> float | np.ndarray:
    """The ``s`` scaling factor of the curve for the lower frequency of a pair."""
    return D_S / (S1 * np.asarray(freq, dtype=np.float64) + S2)


def curve(exponent: float | np.ndarray) -> float | np.ndarray:
    """``e^(-A x) - e^(-B x)``; the shape shared by every pair."""
    x = np.asarray(exponent, dtype=np.float64)
    return np.exp(-A * x) - np.exp(-B * x)


def dissonance(f_1: float | np.ndarray, f_2: float | np.ndarray) -> float | np.ndarray:
    """Perceived dissonance between two pure frequencies.

    Symmetric in its arguments. Accepts scalars or broadcastable arrays;
    returns a float for scalar input.
    """
    f_1 = np.asarray(f_1, dtype=np.float64)
    f_2 = np.asarray(f_2, dtype=np.float64)
    s = plomp_levelt_s(np.minimum(f_1, f_2))
    result = curve(np.abs(f_2 - f_1) * s)
    if np.ndim(result) == 0:
        return float(result)
    return result


# ---------------------------------------------------------------------------
# DissonanceTable
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class DissonanceTable:
    """Precomputed ``[note][bin] → score`` for one FFT bin layout.

    ``scores[n, b]`` is the dissonance between a unit-intensity component at
    ``bin_frequencies[b]`` and the synthetic instrument playing note ``n``.
    Both arrays are read-only once built.
    """

    bin_frequencies: np.ndarray
    scores: np.ndarray

    def __post_init__(self) -> None:
        freqs = np.array(self.bin_frequencies, dtype=np.float32, copy=True).reshape(-1)
        scores = np.array(self.scores, dtype=np.float32, copy=True)
        if scores.shape != (NOTE_COUNT, freqs.size):
            raise ValueError(
                f"Table shape {scores.shape} does not match ({NOTE_COUNT}, {freqs.size})"
            )
        freqs.flags.writeable = False
        scores.flags.writeable = False
        object.__setattr__(self, "bin_frequencies", freqs)
        object.__setattr__(self, "scores", scores)

    @property
    def bin_count(self) -> int:
        return int(self.bin_frequencies.size)

    def matches(self, spectrum: Spectrum) -> bool:
        """True if ``spectrum`` was produced with the bin layout of this table."""
        return len(spectrum) == self.bin_count

    def score(self, intensities: np.ndarray) -> np.ndarray:
        """Raw dissonance of every note against heard ``intensities``.

        Args:
            intensities: One intensity per bin, same layout as the table.

        Returns:
            float64 array of NOTE_COUNT raw scores.
        """
        weights = np.asarray(intensities, dtype=np.float64).reshape(-1)
        if weights.size != self.bin_count:
            raise ValueError(f"Expected {self.bin_count} intensities, got {weights.size}")
        return (self.scores @ weights.astype(np.float32)).astype(np.float64)


# ---------------------------------------------------------------------------
# DissonanceModel
# ---------------------------------------------------------------------------


def _build_lookup(options: ModelOptions) -> np.ndarray:
    """Curve values at the midpoint of each lookup bin up to max_exponent."""
    size = max(1, int(np.ceil(options.lookup_resolution * options.max_exponent)))
    midpoints = (np.arange(size, dtype=np.float64) + 0.5) / options.lookup_resolution
    return np.asarray(curve(midpoints), dtype=np.float64)


def _build_harmonics(harmonic_count: int) -> tuple[np.ndarray, np.ndarray]:
    """Frequencies and intensities of every note's synthetic components.

    Returns:
        Two (NOTE_COUNT, 2H+1) arrays, each row ascending in frequency:
        H sub-harmonics, the fundamental, H harmonics.
    """
    factors = np.arange(2, harmonic_count + 2, dtype=np.float64)
    sub = factors[::-1]
    fundamentals = note_frequencies().astype(np.float64)[:, None]

    freqs = np.concatenate(
        [fundamentals / sub, fundamentals, fundamentals * factors], axis=1
    )
    row = np.concatenate([1.0 / sub, [1.0], 1.0 / factors])
    intensities = np.broadcast_to(row, freqs.shape).copy()
    return freqs, intensities


class DissonanceModel:
    """Owns the lookup table and synthetic instrument used for scoring.

    Args:
        options: Harmonic count, lookup resolution and exponent cutoff.

    Example:
        model = DissonanceModel()
        model.dissonance_note(spectrum, Note.A4)
        table = model.build_table(spectrum.frequencies)
        raw = table.score(spectrum.intensities)
    """

    def __init__(self, options: ModelOptions = DEFAULT_MODEL) -> None:
        self.options = options
        self._lookup = _build_lookup(options)
        self._harmonic_freqs, self._harmonic_intensities = _build_harmonics(
            options.harmonic_count
        )
        self._harmonic_freqs.flags.writeable = False
        self._harmonic_intensities.flags.writeable = False

    @property
    def lookup(self) -> np.ndarray:
        return self._lookup

    @property
    def component_count(self) -> int:
        """Components per synthetic note (2H+1)."""
        return int(self._harmonic_freqs.shape[1])

    def harmonics(self, note: Note | int) -> Spectrum:
        """The synthetic instrument's components for ``note``."""
        index = int(note)
        return Spectrum(self._harmonic_freqs[index], self._harmonic_intensities[index])

    def approximate(self, exponent: float | np.ndarray) -> np.ndarray:
        """Lookup-table version of curve(); 0 beyond the exponent cutoff."""
        x = np.asarray(exponent, dtype=np.float64)
        index = (x * self.options.lookup_resolution).astype(np.int64)
        index = np.minimum(index, self._lookup.size - 1)
        index = np.maximum(index, 0)
        return np.where(x > self.options.max_exponent, 0.0, self._lookup[index])

    def _pair_sums(
        self,
        heard_freqs: np.ndarray,
        played_freqs: np.ndarray,
        played_intensities: np.ndarray,
    ) -> np.ndarray:
        """For each heard frequency, sum over played components of d() * intensity.

        Heard intensities are not applied here; callers weight the result.
        """
        heard_freqs = np.asarray(heard_freqs, dtype=np.float64)
        out = np.zeros(heard_freqs.size, dtype=np.float64)
        if heard_freqs.size == 0:
            return out

        played_s = plomp_levelt_s(played_freqs)[None, :]
        rows = max(1, _MAX_BLOCK_PAIRS // max(1, played_freqs.size))

        for start in range(0, heard_freqs.size, rows):
            block = heard_freqs[start : start + rows, None]
            heard_s = plomp_levelt_s(block)
            # Cached s of whichever frequency is lower
            s = np.where(block > played_freqs[None, :], played_s, heard_s)
            exponent = np.abs(block - played_freqs[None, :]) * s
            out[start : start + rows] = self.approximate(exponent) @ played_intensities
        return out

    def _reach(self, played_freqs: np.ndarray) -> tuple[float, float]:
        """Heard-frequency interval outside which no pair passes the cutoff."""
        cutoff = self.options.max_exponent
        lowest = float(played_freqs.min())
        highest = float(played_freqs.max())
        low = (lowest - cutoff * S2 / D_S) / (1.0 + cutoff * S1 / D_S)
        high = highest + cutoff / float(plomp_levelt_s(highest))
        # One hertz of slack absorbs rounding at the cutoff boundary
        return low - 1.0, high + 1.0

    def dissonance_complex(self, heard: Spectrum, played: Spectrum) -> float:
        """Dissonance between a heard spectrum and an arbitrary played spectrum.

        Heard components below MIN_HEARD_INTENSITY are skipped.
        """
        keep = heard.intensities >= MIN_HEARD_INTENSITY
        if not keep.any() or len(played) == 0:
            return 0.0
        sums = self._pair_sums(
            heard.frequencies[keep],
            played.frequencies.astype(np.float64),
            played.intensities.astype(np.float64),
        )
        return float(sums @ heard.intensities[keep].astype(np.float64))

    def dissonance_note(self, heard: Spectrum, note: Note | int) -> float:
        """Dissonance between a heard spectrum and the synthetic ``note``."""
        return self.dissonance_complex(heard, self.harmonics(note))

    def build_table(self, bin_frequencies: np.ndarray) -> DissonanceTable:
        """Precompute every note's score for a fixed set of heard frequencies.

        Args:
            bin_frequencies: Heard component frequencies (an FFT bin layout).

        Returns:
            DissonanceTable of shape (NOTE_COUNT, len(bin_frequencies)).
        """
        started = time.perf_counter()
        freqs = np.asarray(bin_frequencies, dtype=np.float64).reshape(-1)
        table = np.zeros((NOTE_COUNT, freqs.size), dtype=np.float64)
        ascending = bool(np.all(np.diff(freqs) >= 0)) if freqs.size > 1 else True

        for index in range(NOTE_COUNT):
            played = self._harmonic_freqs[index]
            weights = self._harmonic_intensities[index]
            if ascending:
                low, high = self._reach(played)
                lo = int(np.searchsorted(freqs, low, side="left"))
                hi = int(np.searchsorted(freqs, high, side="right"))
            else:
                lo, hi = 0, freqs.size
            if hi > lo:
                table[index, lo:hi] = self._pair_sums(freqs[lo:hi], played, weights)

        metrics.record_table_build()
        logger.info(
            "Built dissonance table: %d notes x %d bins in %.3fs",
            NOTE_COUNT,
            freqs.size,
            time.perf_counter() - started,
        )
        return DissonanceTable(bin_frequencies=freqs, scores=table)
