"""
Configuration dataclasses for the analysis pipeline.

These immutable config objects are parsed once (by the CLI or a caller) and
passed down as plain values. Every invalid combination is rejected here, at
construction time, so the running pipeline never has to handle a
configuration bug (e.g. a zero-length analysis window).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class NormalizationMode(Enum):
    """How raw dissonance scores are rescaled into [0, 1] for display."""

    OCTAVE = "octave"
    """Min/max computed independently inside each 12-note band."""

    GLOBAL = "global"
    """A single min/max over the whole note range."""


@dataclass(frozen=True)
class BufferOptions:
    """
    Configuration for AudioBuffer windowing.

    Attributes:
        resolution: Number of samples per analysis window. Powers of two keep
            the FFT fast; other sizes are accepted with a warning.
        discard: Drop the oldest samples whenever more than one window is
            buffered. Bounds latency at the cost of skipped audio.
        overlap: Return windows without consuming them entirely, so that
            consecutive windows share samples when input arrives slowly.

    Example:
        >>> options = BufferOptions(resolution=2048, discard=True)
        >>> buffer = AudioBuffer(chunks, options)
    """

    resolution: int = 4096
    discard: bool = False
    overlap: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if isinstance(self.resolution, bool) or not isinstance(self.resolution, int):
            raise ValueError(f"resolution must be an integer, got {self.resolution!r}")
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")
        if self.resolution & (self.resolution - 1):
            logger.warning(
                "resolution %d is not a power of two; transforms will be slower",
                self.resolution,
            )


@dataclass(frozen=True)
class ScoringOptions:
    """
    Configuration for spectral analysis and score smoothing.

    Attributes:
        sampling_rate: Audio sampling rate in Hz.
        zpadding: Zero-padding factor applied before the transform (>= 1).
        halflife: Seconds for a dissonance score to lose half its weight.
        values_halflife: Halflife for the per-note loudness values. Defaults
            to a quarter of ``halflife`` when None.
        noise_mask: Use the first analysed window as a static noise profile.
        keep_fraction: Fraction of the loudest heard components kept for
            scoring; the rest is treated as noise. 1.0 keeps everything.
        octave_blend: Weight pulling each note towards its octave neighbours
            before normalization (0 disables blending).
        normalization: Per-octave or global rescaling of the scores.
    """

    sampling_rate: int = 48000
    zpadding: int = 1
    halflife: float = 0.5
    values_halflife: float | None = None
    noise_mask: bool = True
    keep_fraction: float = 0.5
    octave_blend: float = 0.5
    normalization: NormalizationMode = NormalizationMode.OCTAVE

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.sampling_rate <= 0:
            raise ValueError(f"sampling_rate must be positive, got {self.sampling_rate}")
        if self.zpadding < 1:
            raise ValueError(f"zpadding must be at least 1, got {self.zpadding}")
        if not self.halflife > 0:
            raise ValueError(f"halflife must be positive, got {self.halflife}")
        if self.values_halflife is not None and not self.values_halflife > 0:
            raise ValueError(f"values_halflife must be positive, got {self.values_halflife}")
        if not 0.0 < self.keep_fraction <= 1.0:
            raise ValueError(f"keep_fraction must be in (0, 1], got {self.keep_fraction}")
        if not 0.0 <= self.octave_blend <= 1.0:
            raise ValueError(f"octave_blend must be in [0, 1], got {self.octave_blend}")

    @property
    def effective_values_halflife(self) -> float:
        if self.values_halflife is None:
            return self.halflife / 4.0
        return self.values_halflife


@dataclass(frozen=True)
class ModelOptions:
    """
    Configuration for the dissonance model.

    Attributes:
        harmonic_count: Harmonics generated on each side of a fundamental;
            each synthetic note has ``2 * harmonic_count + 1`` components.
        lookup_resolution: Lookup table entries per unit of the exponent.
        max_exponent: Exponent cutoff above which dissonance counts as zero.
    """

    harmonic_count: int = 30
    lookup_resolution: int = 1000
    max_exponent: float = 1.0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.harmonic_count <= 0:
            raise ValueError(f"harmonic_count must be positive, got {self.harmonic_count}")
        if self.lookup_resolution <= 0:
            raise ValueError(
                f"lookup_resolution must be positive, got {self.lookup_resolution}"
            )
        if not self.max_exponent > 0:
            raise ValueError(f"max_exponent must be positive, got {self.max_exponent}")


# Pre-defined configurations for common use cases

DEFAULT_BUFFER = BufferOptions()
"""Strict partition: every sample analysed exactly once."""

LOW_LATENCY_BUFFER = BufferOptions(discard=True)
"""Drop stale audio when analysis falls behind the microphone."""

SMOOTH_BUFFER = BufferOptions(overlap=True)
"""Reuse buffered samples for smoother updates on slow input."""

DEFAULT_SCORING = ScoringOptions()
"""48 kHz, no padding, 0.5 s halflife, per-octave normalization."""

DEFAULT_MODEL = ModelOptions()
"""30 harmonics per side, 1000-entry-per-unit lookup, cutoff at 1.0."""
