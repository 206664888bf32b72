"""
Axis break detection.

Decides whether a numeric column should be plotted on one continuous axis
(VALUES mode) or on 2-4 disjoint sub-ranges separated by breaks (RANGES mode).

Pipeline (each step a plain function taking explicit inputs):
- analyze_gaps():            sort, consecutive gaps, qualifying-gap decision
- select_gaps():             top-K gaps by size, re-ordered by position
- build_ranges():            K gaps -> K+1 margin-padded candidate sub-ranges
- merge_overlapping_ranges(): collapse runs of overlapping neighbours
- compute_axis_breaks():     ties the steps together and returns an AxisBreakResult
"""

import logging
import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Callable, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

try:
    from .dataset import OverallRange, PreparedColumn, prepare_column
    from .nice_axis import NiceAxis, nice_axis
except ImportError:
    from dataset import OverallRange, PreparedColumn, prepare_column
    from nice_axis import NiceAxis, nice_axis

logger = logging.getLogger(__name__)

# Hard cap on the number of gaps (hence at most four sub-ranges).
MAX_GAP_CAP: int = 3


class AxisMode(Enum):
    """
    Output mode of an axis specification.

    - VALUES: single continuous axis described by start/end/step.
    - RANGES: 2-4 disjoint (lower, upper) sub-ranges with breaks in between.
    """

    VALUES = auto()
    RANGES = auto()


class BreakDiagnostics:
    """Container for per-column diagnostics: events, merge notes, warnings, metrics."""

    def __init__(self, label: Optional[str] = None) -> None:
        self.label: Optional[str] = label

        self.events: list[str] = []
        self.notes: list[str] = []
        self.warnings: list[str] = []
        self.metrics: dict[str, int | float | str] = {}

        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None
        self.elapsed_ms: Optional[float] = None

    def start(self) -> None:
        self.started_at = time.perf_counter()

    def stop(self) -> None:
        self.finished_at = time.perf_counter()
        if self.started_at is not None:
            self.elapsed_ms = (self.finished_at - self.started_at) * 1000.0

    def add_event(self, message: str) -> None:
        """Add an info-level event message."""
        self.events.append(message)
        logger.info(message)

    def add_note(self, message: str) -> None:
        """Add a diagnostic note (expected algorithm state, e.g. a range merge)."""
        self.notes.append(message)
        logger.info("NOTE: %s", message)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)
        logger.warning(message)

    def add_metric(self, name: str, value: int | float | str) -> None:
        """Attach a named metric."""
        self.metrics[name] = value

    def summarize(self) -> str:
        """Produce a concise summary string for diagnostics."""
        lbl = f"{self.label} " if self.label else ""
        parts = [f"{lbl}axis breaks"]
        if self.notes:
            parts.append(f"notes={len(self.notes)}")
        if self.warnings:
            parts.append(f"warnings={len(self.warnings)}")
        if self.elapsed_ms is not None:
            parts.append(f"elapsed_ms={self.elapsed_ms:.1f}")
        if self.metrics:
            parts.append(f"metrics={self.metrics}")
        return " | ".join(parts)


@dataclass
class BreakParams:
    """
    Tuning parameters for break detection.

    Attributes:
        chk_pct: Fraction of the overall range the largest gap must reach for a
            broken axis to be considered.
        mar_pct: Fraction of each sub-range's effective range added as margin on
            both sides.
        max_gap: Maximum number of gaps (sub-ranges minus one). Values above 3 are
            capped at 3.
        decimals: Rounding applied to numbers in the formatted axis option.
    """

    chk_pct: float = 0.25
    mar_pct: float = 0.10
    max_gap: int = MAX_GAP_CAP
    decimals: int = 6

    @property
    def effective_max_gap(self) -> int:
        return min(int(self.max_gap), MAX_GAP_CAP)

    def validate(self) -> None:
        """Raise ValueError on parameters the algorithm cannot use."""
        for name in ("chk_pct", "mar_pct"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{name} must be a finite value >= 0, got {value}")
        if isinstance(self.max_gap, bool) or not isinstance(self.max_gap, int):
            raise ValueError(f"max_gap must be an integer, got {self.max_gap!r}")
        if self.max_gap < 1:
            raise ValueError(f"max_gap must be at least 1, got {self.max_gap}")
        if isinstance(self.decimals, bool) or not isinstance(self.decimals, int):
            raise ValueError(f"decimals must be an integer, got {self.decimals!r}")
        if self.decimals < 0:
            raise ValueError(f"decimals must be >= 0, got {self.decimals}")


@dataclass(frozen=True)
class Gap:
    """Distance between two consecutive sorted observations."""

    position: int  # 0-based index of lower_value in the sorted observations
    lower_value: float
    upper_value: float

    @property
    def size(self) -> float:
        return self.upper_value - self.lower_value


@dataclass(frozen=True)
class GapAnalysis:
    gaps: Tuple[Gap, ...]  # in axis order
    overall: OverallRange
    largest_gap: float
    threshold: float
    has_qualifying_gap: bool

    @property
    def largest_gap_ratio(self) -> float:
        if self.overall.span == 0:
            return 0.0
        return self.largest_gap / self.overall.span


@dataclass(frozen=True)
class SubRange:
    """
    One sub-range of a broken axis.

    members holds the 1-based candidate positions this range covers; a merged
    range covers several. effective_range and margin are only set on
    candidates straight out of build_ranges().
    """

    members: Tuple[int, ...]
    data_lower: float
    data_upper: float
    lower: float
    upper: float
    effective_range: Optional[float] = None
    margin: Optional[float] = None

    @property
    def label(self) -> str:
        return "+".join(str(m) for m in self.members)

    def overlaps(self, other: "SubRange") -> bool:
        """True when this range's padded upper bound reaches the next range's lower bound."""
        return self.upper >= other.lower

    def merged_with(self, other: "SubRange") -> "SubRange":
        """Join with the next range: from this range's lower bound to the other's upper."""
        return SubRange(
            members=self.members + other.members,
            data_lower=self.data_lower,
            data_upper=other.data_upper,
            lower=self.lower,
            upper=other.upper,
        )


@dataclass
class MergeResult:
    ranges: List[SubRange]
    merged_pairs: List[Tuple[SubRange, SubRange]] = field(default_factory=list)

    @property
    def merged_count(self) -> int:
        return len(self.ranges)

    @property
    def fallback(self) -> bool:
        """All candidates collapsed into one: use a continuous axis instead."""
        return len(self.ranges) < 2


@dataclass(frozen=True)
class AxisSpec:
    """
    Final axis specification.

    VALUES mode fills start/end/step; RANGES mode fills subranges (2-4 ascending,
    non-overlapping (lower, upper) pairs). axis_option is the text form usable
    directly as a plotting-axis option.
    """

    mode: AxisMode
    min: float
    max: float
    start: Optional[float] = None
    end: Optional[float] = None
    step: Optional[float] = None
    subranges: Tuple[Tuple[float, float], ...] = ()
    axis_option: str = ""

    @property
    def range_count(self) -> int:
        return len(self.subranges) if self.mode is AxisMode.RANGES else 1


@dataclass
class AxisBreakResult:
    axis: AxisSpec
    diagnostics: BreakDiagnostics
    analysis: GapAnalysis
    selected_gaps: List[Gap] = field(default_factory=list)
    candidates: List[SubRange] = field(default_factory=list)
    merge: Optional[MergeResult] = None


def analyze_gaps(
    values: Iterable[float], overall: OverallRange, chk_pct: float
) -> GapAnalysis:
    """
    Sort the observations and compute consecutive gaps.

    The column qualifies for a broken axis when the largest gap is at least
    overall.span * chk_pct. A zero span never qualifies.
    """
    sorted_values = np.sort(np.asarray(values, dtype=float))
    sizes = np.diff(sorted_values)
    gaps = tuple(
        Gap(
            position=i,
            lower_value=float(sorted_values[i]),
            upper_value=float(sorted_values[i + 1]),
        )
        for i in range(sizes.size)
    )

    largest = float(sizes.max()) if sizes.size else 0.0
    threshold = overall.span * float(chk_pct)
    qualifies = bool(sizes.size) and overall.span > 0 and largest >= threshold
    return GapAnalysis(
        gaps=gaps,
        overall=overall,
        largest_gap=largest,
        threshold=threshold,
        has_qualifying_gap=qualifies,
    )


def select_gaps(analysis: GapAnalysis, max_gap: int) -> List[Gap]:
    """
    Pick the largest gaps by rank and return them in axis order.

    Only the overall largest gap has to qualify; the remaining picks are taken
    purely by size. Ties go to the gap lower on the axis. max_gap is capped at 3.
    """
    if not analysis.gaps:
        return []
    k = min(int(max_gap), MAX_GAP_CAP, len(analysis.gaps))
    if max_gap > MAX_GAP_CAP:
        logger.debug("max_gap=%d capped at %d", max_gap, MAX_GAP_CAP)

    sizes = np.array([g.size for g in analysis.gaps], dtype=float)
    ranked = np.argsort(-sizes, kind="stable")[:k]
    return [analysis.gaps[i] for i in sorted(ranked.tolist())]


def gap_spans(overall: OverallRange, gaps: List[Gap]) -> List[float]:
    """
    Continuous axis reach across each selected gap.

    gap_span_k = (max - lower_k) + (upper_k - min)
    """
    return [
        (overall.max - g.lower_value) + (g.upper_value - overall.min) for g in gaps
    ]


def effective_ranges(overall: OverallRange, gaps: List[Gap]) -> List[float]:
    """
    Margin scale for each of the len(gaps) + 1 sub-ranges.

    End sub-ranges use the span of their single flanking gap; interior
    sub-ranges take the larger of their two flanking gap spans.
    """
    spans = gap_spans(overall, gaps)
    if not spans:
        return []
    result = [spans[0]]
    for i in range(1, len(spans)):
        result.append(max(spans[i - 1], spans[i]))
    result.append(spans[-1])
    return result


def build_ranges(
    overall: OverallRange, gaps: List[Gap], mar_pct: float
) -> List[SubRange]:
    """
    Turn K ordered gaps into K+1 margin-padded candidate sub-ranges.

    Sub-range i runs from min (or the upper value of gap i-1) to max (or the
    lower value of gap i); margin_i = effective_range_i * mar_pct is subtracted
    from its lower bound and added to its upper bound.
    """
    if not gaps:
        return []
    lefts = [overall.min] + [g.upper_value for g in gaps]
    rights = [g.lower_value for g in gaps] + [overall.max]
    ranges: List[SubRange] = []
    for i, eff in enumerate(effective_ranges(overall, gaps)):
        margin = eff * float(mar_pct)
        ranges.append(
            SubRange(
                members=(i + 1,),
                data_lower=lefts[i],
                data_upper=rights[i],
                lower=lefts[i] - margin,
                upper=rights[i] + margin,
                effective_range=eff,
                margin=margin,
            )
        )
    return ranges


def merge_overlapping_ranges(ranges: List[SubRange]) -> MergeResult:
    """
    Merge connected runs of adjacent overlapping sub-ranges.

    Overlap between neighbours is treated as an edge on a line graph; each
    connected run collapses into one range spanning [lower of its first
    member, upper of its last member]. Since a merged range keeps its last
    member's upper bound, one left-to-right pass tests exactly the original
    neighbour pairs. One remaining range means fallback.
    """
    if not ranges:
        return MergeResult(ranges=[])
    merged: List[SubRange] = [ranges[0]]
    merged_pairs: List[Tuple[SubRange, SubRange]] = []
    for nxt in ranges[1:]:
        prev = merged[-1]
        if prev.overlaps(nxt):
            merged_pairs.append((prev, nxt))
            merged[-1] = prev.merged_with(nxt)
        else:
            merged.append(nxt)
    return MergeResult(ranges=merged, merged_pairs=merged_pairs)


def format_number(value: float, decimals: int = 6) -> str:
    """Positional text for an axis bound: rounded, trailing zeros trimmed."""
    rounded = round(float(value), decimals) + 0.0
    return np.format_float_positional(rounded, trim="-")


def round_outward(value: float, decimals: int, upward: bool) -> float:
    """
    Round to `decimals` places away from the data: ceiling for upper bounds,
    floor for lower bounds, so the printed range never clips a boundary point.
    """
    scale = 10.0**decimals
    scaled = float(value) * scale
    nearest = round(scaled)
    # Float noise next to a representable step is treated as the step itself
    if math.isclose(scaled, nearest, rel_tol=1e-9, abs_tol=1e-9):
        return nearest / scale + 0.0
    return (math.ceil(scaled) if upward else math.floor(scaled)) / scale + 0.0


def printed_subranges(spec: AxisSpec, decimals: int = 6) -> List[Tuple[float, float]]:
    """Sub-range bounds as they appear in the axis option text."""
    return [
        (round_outward(lo, decimals, upward=False), round_outward(hi, decimals, upward=True))
        for lo, hi in spec.subranges
    ]


def format_axis_option(spec: AxisSpec, decimals: int = 6) -> str:
    """
    Text form of an AxisSpec:
      VALUES=(start to end by step)
      RANGES=(l1-u1 l2-u2 ...)

    Sub-range bounds are rounded outward; see printed_subranges().
    """
    if spec.mode is AxisMode.VALUES:
        return (
            f"VALUES=({format_number(spec.start, decimals)} to "
            f"{format_number(spec.end, decimals)} by "
            f"{format_number(spec.step, decimals)})"
        )
    parts = [
        f"{format_number(lo, decimals)}-{format_number(hi, decimals)}"
        for lo, hi in printed_subranges(spec, decimals)
    ]
    return f"RANGES=({' '.join(parts)})"


def values_axis(
    values: Iterable[float],
    overall: OverallRange,
    nice_axis_fn: Callable[[Iterable[float]], NiceAxis] = nice_axis,
    decimals: int = 6,
) -> AxisSpec:
    """Single continuous axis from the nice-axis helper."""
    nice = nice_axis_fn(values)
    spec = AxisSpec(
        mode=AxisMode.VALUES,
        min=overall.min,
        max=overall.max,
        start=float(nice.start),
        end=float(nice.end),
        step=float(nice.step),
    )
    return replace(spec, axis_option=format_axis_option(spec, decimals))


def ranges_axis(
    ranges: List[SubRange], overall: OverallRange, decimals: int = 6
) -> AxisSpec:
    spec = AxisSpec(
        mode=AxisMode.RANGES,
        min=overall.min,
        max=overall.max,
        subranges=tuple((float(r.lower), float(r.upper)) for r in ranges),
    )
    return replace(spec, axis_option=format_axis_option(spec, decimals))


def _merge_advice(gap_count: int, final_count: int, params: BreakParams) -> str:
    if gap_count == 1 or final_count < 2:
        return f"mar_pct={params.mar_pct:g} is likely too large for the gaps in this column"
    return (
        f"max_gap={gap_count} exceeds the {final_count - 1} separable gap(s); "
        f"set max_gap={final_count - 1} or lower mar_pct={params.mar_pct:g}"
    )


def compute_axis_breaks(
    column: Union[PreparedColumn, Iterable[float]],
    params: Optional[BreakParams] = None,
    nice_axis_fn: Callable[[Iterable[float]], NiceAxis] = nice_axis,
) -> AxisBreakResult:
    """
    Decide between a continuous and a broken axis for one column.

    Accepts a PreparedColumn or any iterable of numbers (missing values are
    dropped first). Returns an AxisBreakResult whose axis is exactly one of
    VALUES or RANGES; merges are reported as diagnostic notes.

    Example:
        >>> res = compute_axis_breaks([1, 2, 3, 4, 5, 50, 51, 52, 53, 54], BreakParams(max_gap=1))
        >>> res.axis.axis_option
        'RANGES=(-8.8-14.8 40.2-63.8)'
    """
    params = params if params is not None else BreakParams()
    params.validate()

    if not isinstance(column, PreparedColumn):
        column = prepare_column(pd.DataFrame({"values": list(column)}), "values")

    diagnostics = BreakDiagnostics(label=column.name)
    diagnostics.start()
    overall = column.overall
    diagnostics.add_metric("observations", column.count)
    diagnostics.add_metric("missing", column.missing_count)

    analysis = analyze_gaps(column.values, overall, params.chk_pct)
    diagnostics.add_metric("largest_gap", analysis.largest_gap)
    diagnostics.add_metric("threshold", analysis.threshold)

    if not analysis.has_qualifying_gap:
        diagnostics.add_event(
            f"{column.name}: largest gap {analysis.largest_gap:g} below threshold "
            f"{analysis.threshold:g}; using a continuous axis"
        )
        axis = values_axis(column.values, overall, nice_axis_fn, params.decimals)
        diagnostics.stop()
        return AxisBreakResult(axis=axis, diagnostics=diagnostics, analysis=analysis)

    selected = select_gaps(analysis, params.max_gap)
    candidates = build_ranges(overall, selected, params.mar_pct)
    merge = merge_overlapping_ranges(candidates)
    diagnostics.add_metric("gaps_selected", len(selected))
    diagnostics.add_metric("ranges", merge.merged_count)

    advice = _merge_advice(len(selected), merge.merged_count, params)
    for prev, nxt in merge.merged_pairs:
        diagnostics.add_note(
            f"{column.name}: sub-ranges {prev.label} and {nxt.label} overlap after "
            f"margins ({prev.upper:g} >= {nxt.lower:g}) and were merged; {advice}"
        )

    if merge.fallback:
        diagnostics.add_event(
            f"{column.name}: all {len(candidates)} sub-ranges merged; using a continuous axis"
        )
        axis = values_axis(column.values, overall, nice_axis_fn, params.decimals)
    else:
        axis = ranges_axis(merge.ranges, overall, params.decimals)

    diagnostics.stop()
    return AxisBreakResult(
        axis=axis,
        diagnostics=diagnostics,
        analysis=analysis,
        selected_gaps=selected,
        candidates=candidates,
        merge=merge,
    )
