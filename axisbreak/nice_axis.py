"""Round ("nice") bounds and increment for a continuous axis."""

from __future__ import annotations

import math
import typing as t
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class NiceAxis:
    start: float
    end: float
    step: float


def nice_number(value: float, round_: bool) -> float:
    """Returns a "nice" number approximately equal to `value`.

    Parameters
    ----------
    value : float
        A positive magnitude (range or step).
    round_ : bool
        If true, round to the nearest nice number; otherwise take the ceiling.

    Returns
    -------
    float
        1, 2, 5 or 10 times a power of ten.
    """
    if value <= 0:
        return 0.0

    exponent = math.floor(math.log10(value))
    fraction = value / math.pow(10, exponent)

    if round_:
        if fraction < 1.5:
            nice_fraction = 1
        elif fraction < 3:
            nice_fraction = 2
        elif fraction < 7:
            nice_fraction = 5
        else:
            nice_fraction = 10
    else:
        if fraction <= 1:
            nice_fraction = 1
        elif fraction <= 2:
            nice_fraction = 2
        elif fraction <= 5:
            nice_fraction = 5
        else:
            nice_fraction = 10

    return nice_fraction * math.pow(10, exponent)


def _snap(value: float, step: float) -> float:
    # Strip float noise left by multiplying back by the step
    digits = max(0, -int(math.floor(math.log10(step)))) + 2
    return round(value, digits) + 0.0


def nice_axis(values: t.Iterable[float], max_ticks: int = 10) -> NiceAxis:
    """Computes round start/end/step values covering `values`.

    Parameters
    ----------
    values : t.Iterable[float]
        The observations the axis must cover. Non-finite entries are ignored.
    max_ticks : int, optional
        Upper bound on the number of tick marks, by default 10.

    Returns
    -------
    NiceAxis
        start <= min(values), end >= max(values), both multiples of step.
    """
    if max_ticks < 2:
        raise ValueError(f"max_ticks must be at least 2, got {max_ticks}")

    arr = np.asarray(list(values), dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        raise ValueError("nice_axis needs at least one finite value")

    lo = float(arr.min())
    hi = float(arr.max())
    if hi == lo:
        # Widen a degenerate range around the single value
        half = abs(lo) / 2 if lo != 0 else 0.5
        lo, hi = lo - half, hi + half

    nice_range = nice_number(hi - lo, round_=False)
    step = nice_number(nice_range / (max_ticks - 1), round_=True)
    start = _snap(math.floor(lo / step) * step, step)
    end = _snap(math.ceil(hi / step) * step, step)
    # Snapping must never pull a bound inside the data
    if start > lo:
        start = _snap(start - step, step)
    if end < hi:
        end = _snap(end + step, step)
    return NiceAxis(start=start, end=end, step=_snap(step, step))
