"""
core/spectrum/fourier.py — Audio window → perceptually weighted spectrum.

Pipeline for one window of N samples:

    zero-pad to L = N * zpadding
        → real FFT (scipy.fft)
        → keep bins 1 .. L/2 - 1 (positive frequencies, DC dropped)
        → frequency_i = i / L * sampling_rate, intensity_i = |X_i|²
        → subtract the noise mask, floored at 0
        → multiply by the A-weighting gain of frequency_i

A mask is a spectrum this analyzer produced earlier, so its intensities are
already weighted. They are subtracted from the raw power of each bin, and the
remainder is weighted once.

Design:
    - Pure computation: no I/O, no clocks. The analyzer only caches the bin
      layout and weighting gains for the window lengths it has seen.
    - Intensities stay in the energy domain (squared magnitude), matching the
      quadratic intensity products of the dissonance model.
    - No tapering window is applied; the transform sees the raw samples.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy import fft as scipy_fft

from core.config import ScoringOptions
from core.spectrum.types import Spectrum
from core.spectrum.weighting import a_weight

logger = logging.getLogger(__name__)


def bin_frequencies(window_length: int, zpadding: int, sampling_rate: int) -> np.ndarray:
    """Centre frequency of every retained bin for a window of ``window_length``.

    Args:
        window_length: N, samples in the unpadded window.
        zpadding:      Z, padding factor.
        sampling_rate: Hz.

    Returns:
        float32 array of length ``N*Z // 2 - 1``.
    """
    length = window_length * zpadding
    indices = np.arange(1, length // 2, dtype=np.float64)
    return (indices / length * sampling_rate).astype(np.float32)


class SpectralAnalyzer:
    """Turns audio windows into Spectrum objects.

    Args:
        options: Scoring options; only ``sampling_rate`` and ``zpadding`` are used.
        mask:    Optional noise profile subtracted from every analysed spectrum.

    Example:
        analyzer = SpectralAnalyzer(ScoringOptions(sampling_rate=44100))
        noise = analyzer.analyze(first_window)
        analyzer.mask = noise
        spectrum = analyzer.analyze(window)
    """

    def __init__(self, options: ScoringOptions, mask: Spectrum | None = None) -> None:
        self.options = options
        self.mask = mask
        self._layouts: dict[int, tuple[np.ndarray, np.ndarray]] = {}

    def _layout(self, window_length: int) -> tuple[np.ndarray, np.ndarray]:
        """(bin frequencies, A-weighting gains) for a window length, cached."""
        layout = self._layouts.get(window_length)
        if layout is None:
            freqs = bin_frequencies(window_length, self.options.zpadding, self.options.sampling_rate)
            gains = np.asarray(a_weight(freqs), dtype=np.float32)
            layout = (freqs, gains)
            self._layouts[window_length] = layout
            logger.debug(
                "Spectral layout for %d samples: %d bins, %.2f Hz/bin",
                window_length,
                freqs.size,
                self.options.sampling_rate / (window_length * self.options.zpadding),
            )
        return layout

    def analyze(self, window: np.ndarray, mask: Spectrum | None = None) -> Spectrum:
        """Compute the weighted spectrum of one window.

        Args:
            window: 1-D array of samples in [-1, 1].
            mask:   Noise profile overriding ``self.mask`` for this call.

        Returns:
            Spectrum with one component per retained bin, ascending frequency.

        Raises:
            ValueError: If the window is empty or the mask's bin count differs
                from the window's.
        """
        samples = np.asarray(window, dtype=np.float32).reshape(-1)
        if samples.size == 0:
            raise ValueError("Cannot analyse an empty window")

        freqs, gains = self._layout(samples.size)
        length = samples.size * self.options.zpadding

        # rfft zero-pads the input up to n
        bins = scipy_fft.rfft(samples, n=length)[1 : length // 2]
        intensities = np.square(np.abs(bins).astype(np.float64))

        mask = mask if mask is not None else self.mask
        if mask is not None:
            if len(mask) != intensities.size:
                raise ValueError(
                    f"Noise mask has {len(mask)} bins, window produces {intensities.size}"
                )
            intensities = np.maximum(intensities - mask.intensities, 0.0)

        weighted = intensities * gains
        return Spectrum(frequencies=freqs, intensities=weighted)
