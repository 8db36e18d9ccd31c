"""
core/mapping.py — Small numeric helpers shared by the scorer and displays.

    map_interval()  linear remap of a value between two ranges, with optional
                    clamping, inversion and a cast into the output type.
    normalize()     min/max rescale of an array into [0, 1].

Both are total: degenerate ranges are absorbed by an epsilon and failed casts
fall back to a bound, so a single bad value never stops the pipeline.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

import numpy as np

logger = logging.getLogger(__name__)

_EPS = 1e-12  # keeps zero-width ranges from dividing by zero


def map_interval(
    value: float,
    source: tuple[float, float],
    target: tuple[float, float],
    *,
    clamped: bool = False,
    inverted: bool = False,
    cast: Callable[[float], float | int] = float,
) -> float | int:
    """Map ``value`` from the ``source`` range onto the ``target`` range.

    Args:
        value:    Number to map.
        source:   (start, end) of the input range.
        target:   (start, end) of the output range.
        clamped:  Restrict the result to ``target``.
        inverted: Measure from ``target``'s end instead of its start.
        cast:     Conversion applied last (``int`` for colour channels, ...).

    Returns:
        The mapped value. If it cannot be cast (NaN, infinity), a warning is
        logged and ``cast(target[0])`` is returned.
    """
    start, end = float(source[0]), float(source[1])
    low, high = float(target[0]), float(target[1])

    ratio = (float(value) - start) / ((end - start) + _EPS)
    span = ratio * (high - low)
    mapped = high - span if inverted else low + span
    if clamped and not math.isnan(mapped):
        mapped = min(max(mapped, min(low, high)), max(low, high))

    try:
        if not math.isfinite(mapped):
            raise ValueError(f"non-finite result {mapped}")
        return cast(mapped)
    except (ValueError, OverflowError, TypeError) as exc:
        logger.warning("could not cast %r from %s to %s (%s)", value, source, target, exc)
        return cast(low)


def normalize(data: np.ndarray) -> np.ndarray:
    """Rescale ``data`` linearly so its minimum is 0 and maximum just under 1.

    A constant (or empty) input maps to zeros rather than NaN.
    """
    values = np.asarray(data, dtype=np.float64)
    if values.size == 0:
        return values.copy()
    low = float(np.min(values))
    high = float(np.max(values))
    return (values - low) / ((high - low) + _EPS)
