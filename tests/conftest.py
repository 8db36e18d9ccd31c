"""
Shared fixtures for the test suite.

Centralizes reusable signal helpers so individual test files don't need to
repeat sine-wave or clock boilerplate. Nothing here touches an audio device.
"""

from __future__ import annotations

import numpy as np
import pytest

from core.config import ModelOptions, ScoringOptions
from core.spectrum.dissonance import DissonanceModel
from infrastructure import metrics

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SAMPLING_RATE = 8000
"""Low rate keeps bin counts (and table builds) small in tests."""

RESOLUTION = 1024
"""Window length used by the signal fixtures."""


# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------


def sine(freq: float, length: int = RESOLUTION, rate: int = SAMPLING_RATE, amp: float = 0.5) -> np.ndarray:
    """A float32 sine wave of ``length`` samples."""
    t = np.arange(length, dtype=np.float64) / rate
    return (amp * np.sin(2.0 * np.pi * freq * t)).astype(np.float32)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def small_model() -> DissonanceModel:
    """Dissonance model with few harmonics, shared across the session."""
    return DissonanceModel(ModelOptions(harmonic_count=4))


@pytest.fixture
def scoring() -> ScoringOptions:
    """Scoring options matching the signal helpers, no noise mask."""
    return ScoringOptions(sampling_rate=SAMPLING_RATE, noise_mask=False)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _metrics_enabled():
    """Tests that disable metrics must not leak that state."""
    yield
    metrics.set_enabled(True)
