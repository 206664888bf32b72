"""
Output checks for axis specifications.

Provides:
- check_axis_spec(spec, mar_pct=None, decimals=None) -> list of violated properties
- check_axis_result(result, params) -> same, for an AxisBreakResult

The orchestrator runs these on every computed axis and records each violation as
a diagnostics warning; tests use them as property oracles.
"""

from __future__ import annotations

import math
from typing import List, Optional

try:
    from .breaks import (
        AxisBreakResult,
        AxisMode,
        AxisSpec,
        BreakParams,
        printed_subranges,
    )
except ImportError:
    from breaks import (
        AxisBreakResult,
        AxisMode,
        AxisSpec,
        BreakParams,
        printed_subranges,
    )


def check_axis_spec(
    spec: AxisSpec, mar_pct: Optional[float] = None, decimals: Optional[int] = None
) -> List[str]:
    """
    Return human-readable descriptions of every violated output property.

    Properties:
    - VALUES carries start/end/step and no sub-ranges; RANGES carries 2-4 sub-ranges
      and no start/end/step.
    - VALUES: start <= min, end >= max, step > 0.
    - RANGES: each sub-range has lower <= upper, consecutive sub-ranges satisfy
      upper_i < lower_{i+1}, and with mar_pct > 0 the outer bounds lie strictly
      outside [min, max].
    - With decimals given, the sub-ranges stay separate once printed at that
      precision (upper_i < lower_{i+1} in the axis option text).
    """
    violations: List[str] = []

    if spec.mode is AxisMode.VALUES:
        if spec.subranges:
            violations.append("VALUES axis must not carry sub-ranges")
        if spec.start is None or spec.end is None or spec.step is None:
            violations.append("VALUES axis must carry start, end and step")
            return violations
        if not (spec.step > 0 and math.isfinite(spec.step)):
            violations.append(f"step must be a positive finite number, got {spec.step}")
        if spec.start > spec.min:
            violations.append(f"start {spec.start} clips the minimum {spec.min}")
        if spec.end < spec.max:
            violations.append(f"end {spec.end} clips the maximum {spec.max}")
        return violations

    if spec.start is not None or spec.end is not None or spec.step is not None:
        violations.append("RANGES axis must not carry start, end or step")

    count = len(spec.subranges)
    if not 2 <= count <= 4:
        violations.append(f"RANGES axis must have 2-4 sub-ranges, got {count}")

    for i, (lower, upper) in enumerate(spec.subranges, start=1):
        if lower > upper:
            violations.append(f"sub-range {i} is inverted ({lower} > {upper})")

    for i in range(count - 1):
        upper_i = spec.subranges[i][1]
        lower_next = spec.subranges[i + 1][0]
        if not upper_i < lower_next:
            violations.append(
                f"sub-ranges {i + 1} and {i + 2} overlap ({upper_i} >= {lower_next})"
            )

    if count:
        first_lower = spec.subranges[0][0]
        last_upper = spec.subranges[-1][1]
        if mar_pct is not None and mar_pct > 0:
            if not first_lower < spec.min:
                violations.append(
                    f"first lower bound {first_lower} does not clear the minimum {spec.min}"
                )
            if not last_upper > spec.max:
                violations.append(
                    f"last upper bound {last_upper} does not clear the maximum {spec.max}"
                )
        else:
            if first_lower > spec.min:
                violations.append(
                    f"first lower bound {first_lower} clips the minimum {spec.min}"
                )
            if last_upper < spec.max:
                violations.append(
                    f"last upper bound {last_upper} clips the maximum {spec.max}"
                )

    if decimals is not None:
        printed = printed_subranges(spec, decimals)
        for i in range(len(printed) - 1):
            upper_i = printed[i][1]
            lower_next = printed[i + 1][0]
            if not upper_i < lower_next:
                violations.append(
                    f"sub-ranges {i + 1} and {i + 2} touch once printed with "
                    f"decimals={decimals} ({upper_i} >= {lower_next})"
                )

    return violations


def check_axis_result(result: AxisBreakResult, params: BreakParams) -> List[str]:
    """Check an AxisBreakResult and record each violation as a diagnostics warning."""
    violations = check_axis_spec(
        result.axis, mar_pct=params.mar_pct, decimals=params.decimals
    )
    for v in violations:
        result.diagnostics.add_warning(
            f"Axis check failed for {result.diagnostics.label}: {v}"
        )
    return violations
