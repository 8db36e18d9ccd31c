"""
core/spectrum/weighting.py — A-weighting curve (IEC 61672 analogue filter).

Closed-form magnitude response evaluated on frequency squared:

    R_A(f) = c1 * f^4 / ((f² + c2) * sqrt((f² + c3)(f² + c4)) * (f² + c1))

scaled by 1.2589 (= +2 dB) so that R_A(1 kHz) ≈ 1. Peaks around 2.5 kHz at
≈1.26 and falls to 0 at both ends of the hearing range.
"""

from __future__ import annotations

import numpy as np

_C1 = 12194.217**2
_C2 = 20.598997**2
_C3 = 107.65265**2
_C4 = 737.86223**2
_GAIN = 1.2589


def a_weight(freq: float | np.ndarray) -> float | np.ndarray:
    """Perceptual gain for ``freq`` Hz, a multiplicative factor in [0, ~1.26].

    Accepts a scalar or a numpy array; 0 Hz maps to 0.
    """
    f2 = np.square(np.asarray(freq, dtype=np.float64))
    num = _C1 * f2**2
    den = (f2 + _C2) * np.sqrt((f2 + _C3) * (f2 + _C4)) * (f2 + _C1)
    gain = _GAIN * num / den
    if np.ndim(gain) == 0:
        return float(gain)
    return gain
