"""
core/spectrum/scores.py — Spectrum → stable, normalized per-note scores.

Per call to ScoreCalculator.calculate():

    1. pre-filter     keep only the loudest ``keep_fraction`` of components
    2. raw scores     DissonanceTable.score(intensities), one value per note
    3. smoothing      score = raw * (1 - decay) + previous * decay,
                      decay = 0.5 ** (elapsed_seconds / halflife)
    4. display scale  blend each note towards its octave neighbours, then
                      min/max rescale per 12-note band (or globally)
    5. note values    sqrt(intensity) summed onto the nearest note, smoothed
                      with its own (shorter) halflife

Smoothing is keyed to the clock, not to the call count, so the display
behaves the same at any analysis rate. Smoothed state is kept *before*
normalization; every snapshot is rescaled from that state.

Normalization policy (tunable, see ScoringOptions):
    Blending and per-octave rescaling trade absolute comparability across
    octaves for a readable display: low octaves with little energy would
    otherwise look flat next to loud ones.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

import numpy as np

from core.config import DEFAULT_SCORING, NormalizationMode, ScoringOptions
from core.mapping import normalize
from core.spectrum.dissonance import DissonanceModel, DissonanceTable
from core.spectrum.notes import NOTE_COUNT, nearest_note_indices
from core.spectrum.types import Scores, Spectrum
from infrastructure import metrics

logger = logging.getLogger(__name__)

OCTAVE = 12


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def decay_factor(elapsed_seconds: float, halflife: float) -> float:
    """Weight kept by the previous value after ``elapsed_seconds``.

    1.0 for no elapsed time, 0.5 after one halflife. Negative elapsed time
    (a clock going backwards) counts as zero.
    """
    return 0.5 ** (max(elapsed_seconds, 0.0) / halflife)


def keep_loudest(intensities: np.ndarray, fraction: float) -> np.ndarray:
    """Zero every component except the loudest ``fraction`` of them.

    Ties are broken by position (stable sort), so the result is deterministic.
    """
    values = np.array(intensities, dtype=np.float64, copy=True)
    if fraction >= 1.0 or values.size == 0:
        return values
    keep = max(1, math.ceil(values.size * fraction))
    order = np.argsort(values, kind="stable")
    values[order[: values.size - keep]] = 0.0
    return values


def blend_octaves(scores: np.ndarray, weight: float) -> np.ndarray:
    """Pull every note towards the mean of the same note one octave away.

    ``blended[i] = (1 - w) * s[i] + w * mean(s[i - 12], s[i + 12])`` over
    whichever neighbours exist.
    """
    values = np.asarray(scores, dtype=np.float64)
    if weight <= 0.0:
        return values.copy()
    neighbour_sum = np.zeros_like(values)
    neighbour_count = np.zeros_like(values)
    neighbour_sum[OCTAVE:] += values[:-OCTAVE]
    neighbour_count[OCTAVE:] += 1.0
    neighbour_sum[:-OCTAVE] += values[OCTAVE:]
    neighbour_count[:-OCTAVE] += 1.0
    has_neighbour = neighbour_count > 0
    neighbour_mean = np.where(
        has_neighbour, neighbour_sum / np.maximum(neighbour_count, 1.0), values
    )
    return (1.0 - weight) * values + weight * neighbour_mean


def normalize_scores(
    scores: np.ndarray,
    *,
    blend: float,
    mode: NormalizationMode,
) -> np.ndarray:
    """Blend, then rescale into [0, 1] per octave band or globally."""
    blended = blend_octaves(scores, blend)
    if mode is NormalizationMode.GLOBAL:
        result = normalize(blended)
    else:
        result = np.empty_like(blended)
        for start in range(0, blended.size, OCTAVE):
            result[start : start + OCTAVE] = normalize(blended[start : start + OCTAVE])
    return np.clip(result, 0.0, 1.0)


def accumulate_note_values(spectrum: Spectrum, intensities: np.ndarray | None = None) -> np.ndarray:
    """Sum of component amplitudes on each component's nearest note.

    Components nearer to a semitone outside the note range are ignored.
    """
    weights = spectrum.intensities if intensities is None else intensities
    indices = nearest_note_indices(spectrum.frequencies)
    valid = indices >= 0
    amplitudes = np.sqrt(np.maximum(np.asarray(weights, dtype=np.float64)[valid], 0.0))
    return np.bincount(indices[valid], weights=amplitudes, minlength=NOTE_COUNT).astype(np.float64)


def _guard(values: np.ndarray, label: str) -> np.ndarray:
    """Replace NaN/inf by 0, logging and counting any replacement."""
    bad = ~np.isfinite(values)
    count = int(np.count_nonzero(bad))
    if count:
        logger.warning("Replaced %d non-finite %s value(s)", count, label)
        metrics.record_nonfinite(count)
        values = np.where(bad, 0.0, values)
    return values


# ---------------------------------------------------------------------------
# ScoreCalculator
# ---------------------------------------------------------------------------


class ScoreCalculator:
    """Turns each incoming spectrum into a Scores snapshot.

    Single writer: one analysis thread owns an instance and calls
    calculate() once per spectrum. calculate() never raises on numeric
    input; degenerate values are replaced and logged.

    Args:
        model:     Dissonance model used to build (and rebuild) the table.
        reference: A spectrum with the bin layout of the frames to come.
        options:   Smoothing, pre-filter and normalization settings.
        clock:     Monotonic seconds source; injectable for tests.
    """

    def __init__(
        self,
        model: DissonanceModel,
        reference: Spectrum,
        options: ScoringOptions = DEFAULT_SCORING,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.model = model
        self.options = options
        self._clock = clock
        self._table = model.build_table(reference.frequencies)
        self._scores = np.zeros(NOTE_COUNT, dtype=np.float64)
        self._values = np.zeros(NOTE_COUNT, dtype=np.float64)
        self._last = clock()

    @property
    def table(self) -> DissonanceTable:
        return self._table

    @property
    def previous_scores(self) -> np.ndarray:
        """Smoothed raw scores of the last frame (before normalization)."""
        view = self._scores.view()
        view.flags.writeable = False
        return view

    @property
    def previous_values(self) -> np.ndarray:
        view = self._values.view()
        view.flags.writeable = False
        return view

    def reset(self) -> None:
        """Forget all smoothing state and restart the clock."""
        self._scores = np.zeros(NOTE_COUNT, dtype=np.float64)
        self._values = np.zeros(NOTE_COUNT, dtype=np.float64)
        self._last = self._clock()

    def _ensure_table(self, spectrum: Spectrum) -> None:
        if self._table.matches(spectrum):
            return
        logger.info(
            "Bin count changed from %d to %d; rebuilding dissonance table",
            self._table.bin_count,
            len(spectrum),
        )
        self._table = self.model.build_table(spectrum.frequencies)

    def calculate(self, spectrum: Spectrum) -> Scores:
        """Score every note against ``spectrum`` and update smoothing state.

        Args:
            spectrum: Weighted spectrum of the newest window.

        Returns:
            Scores snapshot; ``fourier`` is ``spectrum`` itself.
        """
        self._ensure_table(spectrum)

        now = self._clock()
        elapsed = now - self._last
        self._last = now

        intensities = _guard(spectrum.intensities.astype(np.float64), "intensity")
        intensities = keep_loudest(intensities, self.options.keep_fraction)

        raw = _guard(self._table.score(intensities), "raw score")
        decay = decay_factor(elapsed, self.options.halflife)
        self._scores = _guard(raw * (1.0 - decay) + self._scores * decay, "smoothed score")

        values = accumulate_note_values(spectrum, intensities)
        value_decay = decay_factor(elapsed, self.options.effective_values_halflife)
        self._values = _guard(values * (1.0 - value_decay) + self._values * value_decay, "note value")

        note_scores = normalize_scores(
            self._scores,
            blend=self.options.octave_blend,
            mode=self.options.normalization,
        )
        return Scores(
            note_scores=_guard(note_scores, "normalized score"),
            note_values=self._values,
            fourier=spectrum,
        )
