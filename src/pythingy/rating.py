"""Rating normalisation.

Pure functions mapping a measured value onto a 0–5 score relative to an
optimal range.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from pythingy.exceptions import RangeConfigurationError

MAX_RATING = 5.0


def _as_range(name: str, bounds: Sequence[float]) -> tuple[float, float]:
    if len(bounds) != 2:
        raise RangeConfigurationError(f"{name} must have exactly two bounds, got {len(bounds)}")
    low, high = float(bounds[0]), float(bounds[1])
    if math.isnan(low) or math.isnan(high):
        raise RangeConfigurationError(f"{name} bounds must be numbers")
    if low > high:
        raise RangeConfigurationError(f"{name} is inverted: [{low}, {high}]")
    return low, high


def s_curve_rating(
    value: float,
    optimal_range: Sequence[float],
    slope_above: float = 0.5,
    slope_below: float = 0.5,
) -> float:
    """Logistic score: 5 inside *optimal_range*, decaying outside it.

    Outside the range the score is ``5 * 2 / (1 + e^(slope * distance))``
    where *distance* is how far *value* lies beyond the nearer bound and
    *slope* is *slope_above* or *slope_below* depending on the side.
    """
    low, high = _as_range("optimal_range", optimal_range)
    if low <= value <= high:
        return MAX_RATING
    if value > high:
        slope, distance = slope_above, value - high
    else:
        slope, distance = slope_below, low - value
    exponent = slope * distance
    # e^x overflows past ~709; the score is 0 for all practical purposes.
    if exponent > 700:
        return 0.0
    return MAX_RATING * 2.0 / (1.0 + math.exp(exponent))


def linear_rating(
    value: float,
    optimal_range: Sequence[float],
    full_range: Sequence[float],
) -> float:
    """Linear score: 5 inside *optimal_range*, 0 at the *full_range* edges.

    Values beyond *full_range* score 0.
    """
    opt_low, opt_high = _as_range("optimal_range", optimal_range)
    full_low, full_high = _as_range("full_range", full_range)
    if opt_low < full_low or opt_high > full_high:
        raise RangeConfigurationError(
            f"optimal_range [{opt_low}, {opt_high}] is not within full_range [{full_low}, {full_high}]"
        )

    if opt_low <= value <= opt_high:
        return MAX_RATING
    if value < opt_low:
        span = opt_low - full_low
        score = MAX_RATING * (value - full_low) / span if span > 0 else 0.0
    else:
        span = full_high - opt_high
        score = MAX_RATING * (full_high - value) / span if span > 0 else 0.0
    return max(0.0, min(MAX_RATING, score))
