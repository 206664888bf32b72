import pytest

from axisbreak.breaks import Gap, build_ranges, effective_ranges, gap_spans
from axisbreak.dataset import OverallRange


def _gap(lower, upper, position=0):
    return Gap(position=position, lower_value=float(lower), upper_value=float(upper))


def test_single_gap_span_reaches_from_both_ends():
    overall = OverallRange(min=1.0, max=54.0)
    spans = gap_spans(overall, [_gap(5, 50)])
    # (54 - 5) + (50 - 1)
    assert spans == [98.0]


def test_single_gap_ranges_match_worked_example():
    overall = OverallRange(min=1.0, max=54.0)

    ranges = build_ranges(overall, [_gap(5, 50)], mar_pct=0.10)

    assert len(ranges) == 2
    first, second = ranges
    assert first.margin == pytest.approx(9.8)
    assert second.margin == pytest.approx(9.8)
    assert (first.data_lower, first.data_upper) == (1.0, 5.0)
    assert (second.data_lower, second.data_upper) == (50.0, 54.0)
    assert first.lower == pytest.approx(-8.8)
    assert first.upper == pytest.approx(14.8)
    assert second.lower == pytest.approx(40.2)
    assert second.upper == pytest.approx(63.8)


def test_interior_ranges_take_larger_flanking_gap_span():
    overall = OverallRange(min=0.0, max=100.0)
    gaps = [_gap(10, 20, 1), _gap(30, 80, 3)]

    spans = gap_spans(overall, gaps)
    eff = effective_ranges(overall, gaps)

    assert spans == [110.0, 150.0]
    # first -> own span, interior -> max(110, 150), last -> own span
    assert eff == [110.0, 150.0, 150.0]


def test_interior_rule_is_not_symmetric():
    overall = OverallRange(min=0.0, max=100.0)
    gaps = [_gap(10, 70, 1), _gap(80, 90, 2)]

    eff = effective_ranges(overall, gaps)

    # larger span sits on the left this time; interior inherits it
    assert eff == [160.0, 160.0, 110.0]


def test_three_gaps_produce_four_ranges_in_order():
    overall = OverallRange(min=0.0, max=104.0)
    gaps = [_gap(0, 1, 0), _gap(4, 50, 4), _gap(54, 100, 9)]

    ranges = build_ranges(overall, gaps, mar_pct=0.10)

    assert [r.members for r in ranges] == [(1,), (2,), (3,), (4,)]
    assert [r.effective_range for r in ranges] == [105.0, 150.0, 150.0, 150.0]
    assert [(r.data_lower, r.data_upper) for r in ranges] == [
        (0.0, 0.0),
        (1.0, 4.0),
        (50.0, 54.0),
        (100.0, 104.0),
    ]
    assert ranges[0].lower == pytest.approx(-10.5)
    assert ranges[1].lower == pytest.approx(-14.0)
    assert ranges[2].upper == pytest.approx(69.0)
    assert ranges[3].upper == pytest.approx(119.0)


def test_zero_margin_keeps_data_bounds():
    overall = OverallRange(min=1.0, max=54.0)
    ranges = build_ranges(overall, [_gap(5, 50)], mar_pct=0.0)
    assert [(r.lower, r.upper) for r in ranges] == [(1.0, 5.0), (50.0, 54.0)]


def test_no_gaps_no_ranges():
    assert build_ranges(OverallRange(min=0.0, max=1.0), [], mar_pct=0.1) == []
