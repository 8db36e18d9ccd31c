"""
Tests for core/spectrum/dissonance.py — Plomp–Levelt curve, synthetic
instrument, lookup approximation and the precomputed DissonanceTable.
"""

from __future__ import annotations

import numpy as np
import pytest

from core.config import ModelOptions
from core.spectrum.dissonance import (
    PEAK_EXPONENT,
    DissonanceModel,
    DissonanceTable,
    curve,
    dissonance,
    plomp_levelt_s,
)
from core.spectrum.notes import NOTE_COUNT, Note
from core.spectrum.types import Spectrum
from infrastructure import metrics

# ---------------------------------------------------------------------------
# Pure curve
# ---------------------------------------------------------------------------


class TestDissonanceCurve:
    """Test the two-tone roughness formula."""

    @pytest.mark.parametrize("freq", [32.7, 110.0, 440.0, 1000.0, 5000.0])
    def test_unison_is_zero(self, freq: float) -> None:
        assert dissonance(freq, freq) == pytest.approx(0.0, abs=1e-12)

    def test_symmetric(self) -> None:
        assert dissonance(440.0, 466.16) == pytest.approx(dissonance(466.16, 440.0))

    @pytest.mark.parametrize("base", [110.0, 440.0, 2000.0])
    def test_rises_then_falls(self, base: float) -> None:
        offsets = np.linspace(0.0, base, 2000)
        values = dissonance(base, base + offsets)
        peak = int(np.argmax(values))
        assert 0 < peak < values.size - 1
        assert np.all(np.diff(values[: peak + 1]) >= 0.0)
        assert np.all(np.diff(values[peak:]) <= 0.0)

    def test_peak_value(self) -> None:
        assert curve(PEAK_EXPONENT) == pytest.approx(0.18, abs=0.005)
        assert curve(PEAK_EXPONENT) > curve(PEAK_EXPONENT * 0.9)
        assert curve(PEAK_EXPONENT) > curve(PEAK_EXPONENT * 1.1)

    def test_s_uses_lower_frequency(self) -> None:
        s = plomp_levelt_s(440.0)
        expected = float(curve((466.0 - 440.0) * s))
        assert dissonance(466.0, 440.0) == pytest.approx(expected)

    def test_scalar_returns_float(self) -> None:
        assert isinstance(dissonance(440.0, 450.0), float)

    def test_array_input(self) -> None:
        values = dissonance(np.array([440.0, 440.0]), np.array([440.0, 460.0]))
        assert values.shape == (2,)
        assert values[0] == pytest.approx(0.0)
        assert values[1] > 0.0


# ---------------------------------------------------------------------------
# Synthetic instrument and lookup
# ---------------------------------------------------------------------------


class TestDissonanceModel:
    """Test the instrument model and the lookup approximation."""

    def test_harmonics_layout(self, small_model: DissonanceModel) -> None:
        spectrum = small_model.harmonics(Note.A4)
        assert len(spectrum) == small_model.component_count == 9
        assert np.all(np.diff(spectrum.frequencies) > 0)
        middle = spectrum[4]
        assert middle.value == pytest.approx(440.0)
        assert middle.intensity == 1.0

    def test_harmonic_intensities(self, small_model: DissonanceModel) -> None:
        spectrum = small_model.harmonics(Note.A2)
        # k = 2 .. H+1 on both sides
        assert spectrum[5].value == pytest.approx(2 * Note.A2.freq, rel=1e-6)
        assert spectrum[5].intensity == pytest.approx(0.5)
        assert spectrum[3].value == pytest.approx(Note.A2.freq / 2, rel=1e-6)
        assert spectrum[0].intensity == pytest.approx(1 / 5)

    def test_default_component_count(self) -> None:
        assert DissonanceModel().component_count == 61

    def test_lookup_size(self) -> None:
        model = DissonanceModel(ModelOptions(harmonic_count=1, lookup_resolution=100))
        assert model.lookup.size == 100

    def test_approximate_close_to_curve(self, small_model: DissonanceModel) -> None:
        x = np.linspace(0.0, 0.99, 50)
        np.testing.assert_allclose(small_model.approximate(x), curve(x), atol=5e-3)

    def test_approximate_zero_beyond_cutoff(self, small_model: DissonanceModel) -> None:
        assert small_model.approximate(1.5) == 0.0
        assert small_model.approximate(np.array([2.0, 10.0])).tolist() == [0.0, 0.0]

    def test_fifth_less_dissonant_than_minor_second(self, small_model: DissonanceModel) -> None:
        root = Note.A4.freq
        fifth = Spectrum(frequencies=[root, root * 1.5], intensities=[1.0, 1.0])
        minor_second = Spectrum(
            frequencies=[root, root * 2 ** (1 / 12)], intensities=[1.0, 1.0]
        )
        assert small_model.dissonance_note(fifth, Note.A4) < small_model.dissonance_note(
            minor_second, Note.A4
        )

    def test_silence_scores_zero(self, small_model: DissonanceModel) -> None:
        heard = Spectrum(frequencies=[100.0, 440.0], intensities=[0.0, 0.0])
        assert small_model.dissonance_note(heard, Note.A4) == 0.0

    def test_quiet_components_ignored(self, small_model: DissonanceModel) -> None:
        loud = Spectrum(frequencies=[466.0], intensities=[1.0])
        with_whisper = Spectrum(frequencies=[450.0, 466.0], intensities=[1e-6, 1.0])
        assert small_model.dissonance_note(with_whisper, Note.A4) == pytest.approx(
            small_model.dissonance_note(loud, Note.A4)
        )

    def test_scales_with_heard_intensity(self, small_model: DissonanceModel) -> None:
        once = Spectrum(frequencies=[466.0], intensities=[1.0])
        twice = Spectrum(frequencies=[466.0], intensities=[2.0])
        assert small_model.dissonance_note(twice, Note.A4) == pytest.approx(
            2 * small_model.dissonance_note(once, Note.A4)
        )

    def test_empty_played_is_zero(self, small_model: DissonanceModel) -> None:
        heard = Spectrum(frequencies=[440.0], intensities=[1.0])
        played = Spectrum(frequencies=[], intensities=[])
        assert small_model.dissonance_complex(heard, played) == 0.0


# ---------------------------------------------------------------------------
# DissonanceTable
# ---------------------------------------------------------------------------


class TestDissonanceTable:
    """Test the precomputed per-bin table."""

    def _bins(self) -> np.ndarray:
        return np.arange(1, 400, dtype=np.float64) * 7.8125

    def test_shape(self, small_model: DissonanceModel) -> None:
        table = small_model.build_table(self._bins())
        assert table.scores.shape == (NOTE_COUNT, 399)
        assert table.bin_count == 399

    def test_read_only(self, small_model: DissonanceModel) -> None:
        table = small_model.build_table(self._bins())
        with pytest.raises(ValueError):
            table.scores[0, 0] = 1.0

    @pytest.mark.parametrize("note", [Note.C1, Note.E2, Note.A4, Note.C7, Note.E8])
    def test_matches_direct_computation(
        self, small_model: DissonanceModel, note: Note
    ) -> None:
        bins = self._bins()
        intensities = np.zeros(bins.size)
        intensities[[10, 56, 57, 120, 300]] = 1.0
        table = small_model.build_table(bins)
        heard = Spectrum(frequencies=bins, intensities=intensities)
        assert table.score(intensities)[note] == pytest.approx(
            small_model.dissonance_note(heard, note), rel=1e-3, abs=1e-6
        )

    def test_unsorted_bins_match_sorted(self, small_model: DissonanceModel) -> None:
        bins = self._bins()
        order = np.random.default_rng(1).permutation(bins.size)
        sorted_table = small_model.build_table(bins)
        shuffled_table = small_model.build_table(bins[order])
        np.testing.assert_allclose(shuffled_table.scores, sorted_table.scores[:, order], rtol=1e-5)

    def test_matches_spectrum_layout(self, small_model: DissonanceModel) -> None:
        table = small_model.build_table(self._bins())
        assert table.matches(Spectrum(frequencies=self._bins(), intensities=np.zeros(399)))
        assert not table.matches(Spectrum(frequencies=[1.0], intensities=[0.0]))

    def test_score_length_mismatch_raises(self, small_model: DissonanceModel) -> None:
        table = small_model.build_table(self._bins())
        with pytest.raises(ValueError, match="Expected 399 intensities"):
            table.score(np.zeros(10))

    def test_bad_shape_raises(self) -> None:
        with pytest.raises(ValueError, match="does not match"):
            DissonanceTable(bin_frequencies=np.zeros(3), scores=np.zeros((NOTE_COUNT, 4)))

    def test_build_records_metric(self, small_model: DissonanceModel) -> None:
        before = metrics.table_builds_total._value.get()
        small_model.build_table(self._bins())
        assert metrics.table_builds_total._value.get() == before + 1
