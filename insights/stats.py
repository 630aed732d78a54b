"""
insights/stats.py

Order-statistic primitives used as detector baselines.

Every function is total: an empty input returns ``0.0`` rather than raising,
because callers gate on these values instead of requiring them.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

_EMPTY_SENTINEL = 0.0


def median(values: Sequence[float]) -> float:
    """Median of *values*, or ``0.0`` for an empty sequence."""
    if not values:
        return _EMPTY_SENTINEL
    return float(np.median(np.asarray(values, dtype=float)))


def percentile(values: Sequence[float], p: float) -> float:
    """
    Linearly interpolated percentile of *values*.

    Parameters
    ----------
    values:
        Finite numbers in any order.
    p:
        Fraction in ``[0, 1]`` (``0.25`` is the lower quartile). Values
        outside the range are clamped.

    Returns
    -------
    float
        ``0.0`` when *values* is empty.
    """
    if not values:
        return _EMPTY_SENTINEL
    q = min(1.0, max(0.0, float(p))) * 100.0
    return float(np.percentile(np.asarray(values, dtype=float), q, method="linear"))


def iqr(values: Sequence[float]) -> float:
    """Interquartile range (p75 - p25), or ``0.0`` for an empty sequence."""
    if not values:
        return _EMPTY_SENTINEL
    return percentile(values, 0.75) - percentile(values, 0.25)
