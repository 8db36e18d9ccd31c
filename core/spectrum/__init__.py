"""
core/spectrum — Pure signal pipeline from audio windows to dissonance scores.

All modules are computation only: no queues, threads, devices or terminals.
Those live in ingestion/ and display/. numpy and scipy are used as pure
numeric libraries.

Public API:
    Types:       Frequency, Spectrum, Scores, Note
    Analysis:    SpectralAnalyzer, a_weight
    Dissonance:  DissonanceModel, DissonanceTable, dissonance
    Scoring:     ScoreCalculator
"""

from core.spectrum.dissonance import DissonanceModel, DissonanceTable, dissonance
from core.spectrum.fourier import SpectralAnalyzer
from core.spectrum.notes import NOTE_COUNT, Note
from core.spectrum.scores import ScoreCalculator
from core.spectrum.types import Frequency, Scores, Spectrum
from core.spectrum.weighting import a_weight

__all__ = [
    "NOTE_COUNT",
    "DissonanceModel",
    "DissonanceTable",
    "Frequency",
    "Note",
    "ScoreCalculator",
    "Scores",
    "SpectralAnalyzer",
    "Spectrum",
    "a_weight",
    "dissonance",
]
