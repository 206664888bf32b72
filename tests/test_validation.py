import logging

from axisbreak.breaks import (
    AxisMode,
    AxisSpec,
    BreakParams,
    compute_axis_breaks,
    format_axis_option,
)
from axisbreak.validation import check_axis_result, check_axis_spec


def _ranges(*pairs, lo=1.0, hi=54.0):
    return AxisSpec(mode=AxisMode.RANGES, min=lo, max=hi, subranges=tuple(pairs))


def test_valid_specs_have_no_violations():
    values = AxisSpec(mode=AxisMode.VALUES, min=1, max=100, start=0, end=100, step=10)
    ranges = _ranges((-8.8, 14.8), (40.2, 63.8))

    assert check_axis_spec(values) == []
    assert check_axis_spec(ranges, mar_pct=0.1) == []


def test_values_axis_that_clips_data_is_reported():
    spec = AxisSpec(mode=AxisMode.VALUES, min=1, max=100, start=10, end=90, step=0)
    problems = check_axis_spec(spec)
    assert len(problems) == 3
    assert any("step" in p for p in problems)
    assert any("clips the minimum" in p for p in problems)
    assert any("clips the maximum" in p for p in problems)


def test_values_axis_without_bounds_is_reported():
    spec = AxisSpec(mode=AxisMode.VALUES, min=1, max=2)
    assert check_axis_spec(spec) == ["VALUES axis must carry start, end and step"]


def test_overlapping_or_touching_ranges_are_reported():
    problems = check_axis_spec(_ranges((-8.8, 40.2), (40.2, 63.8)), mar_pct=0.1)
    assert problems == ["sub-ranges 1 and 2 overlap (40.2 >= 40.2)"]


def test_range_count_must_be_two_to_four():
    one = check_axis_spec(_ranges((0.0, 60.0)), mar_pct=0.1)
    five = check_axis_spec(
        _ranges((0, 1), (2, 3), (4, 5), (6, 7), (8, 60), lo=0.5), mar_pct=0.0
    )
    assert any("2-4 sub-ranges, got 1" in p for p in one)
    assert any("2-4 sub-ranges, got 5" in p for p in five)


def test_inverted_range_is_reported():
    problems = check_axis_spec(_ranges((-8.8, 14.8), (63.8, 40.2)), mar_pct=0.1)
    assert any("inverted" in p for p in problems)


def test_outer_bounds_must_clear_data_only_with_margin():
    flush = _ranges((1.0, 5.0), (50.0, 54.0))

    assert check_axis_spec(flush, mar_pct=0.0) == []
    problems = check_axis_spec(flush, mar_pct=0.1)
    assert len(problems) == 2
    assert "does not clear the minimum" in problems[0]
    assert "does not clear the maximum" in problems[1]


def test_mixed_mode_fields_are_reported():
    spec = AxisSpec(
        mode=AxisMode.RANGES,
        min=1,
        max=54,
        start=0,
        end=60,
        step=10,
        subranges=((-8.8, 14.8), (40.2, 63.8)),
    )
    assert check_axis_spec(spec, mar_pct=0.1) == [
        "RANGES axis must not carry start, end or step"
    ]


def test_check_axis_result_records_each_violation(caplog):
    params = BreakParams()
    result = compute_axis_breaks([1, 2, 3, 4, 5, 50, 51, 52, 53, 54], params)
    assert check_axis_result(result, params) == []
    assert result.diagnostics.warnings == []

    # Pretend the margins were zero-width to trip the clearance check
    result.axis = _ranges((1.0, 5.0), (50.0, 54.0))
    with caplog.at_level(logging.WARNING):
        problems = check_axis_result(result, params)
    assert len(problems) == 2
    assert len(result.diagnostics.warnings) == 2
    assert all(w.startswith("Axis check failed for values") for w in result.diagnostics.warnings)
    assert "warnings=2" in result.diagnostics.summarize()
    assert sum("Axis check failed for values" in r.getMessage() for r in caplog.records) == 2


def test_ranges_that_touch_once_printed_are_reported():
    spec = _ranges((0.0, 14.2), (14.7, 30.0), lo=1.0, hi=29.0)

    assert format_axis_option(spec, decimals=0) == "RANGES=(0-15 14-30)"
    assert check_axis_spec(spec, mar_pct=0.1) == []
    assert check_axis_spec(spec, mar_pct=0.1, decimals=1) == []
    problems = check_axis_spec(spec, mar_pct=0.1, decimals=0)
    assert problems == ["sub-ranges 1 and 2 touch once printed with decimals=0 (15.0 >= 14.0)"]


def test_check_axis_result_uses_the_configured_decimals():
    params = BreakParams(decimals=0)
    result = compute_axis_breaks([1, 2, 3, 4, 5, 50, 51, 52, 53, 54], BreakParams(max_gap=1))
    result.axis = _ranges((0.0, 14.2), (14.7, 30.0), lo=1.0, hi=29.0)

    problems = check_axis_result(result, params)
    assert len(problems) == 1
    assert "decimals=0" in problems[0]
    assert len(result.diagnostics.warnings) == 1
