import numpy as np
import pytest

from axisbreak.nice_axis import NiceAxis, nice_axis, nice_number


@pytest.mark.parametrize(
    "value, round_, expected",
    [
        (0.75, False, 1.0),
        (99.0, False, 100.0),
        (1.2, True, 1.0),
        (2.9, True, 2.0),
        (4.0, True, 5.0),
        (7.0, True, 10.0),
        (0.0, True, 0.0),
    ],
)
def test_nice_number(value, round_, expected):
    assert nice_number(value, round_) == pytest.approx(expected)


def test_nice_axis_for_one_to_hundred():
    assert nice_axis(range(1, 101)) == NiceAxis(start=0.0, end=100.0, step=10.0)


def test_nice_axis_handles_negative_values():
    axis = nice_axis([-37, 12])
    assert (axis.start, axis.end, axis.step) == (-40.0, 15.0, 5.0)


def test_nice_axis_handles_fractions():
    axis = nice_axis([0.12, 0.87])
    assert axis.start == pytest.approx(0.1)
    assert axis.end == pytest.approx(0.9)
    assert axis.step == pytest.approx(0.1)


def test_nice_axis_widens_constant_values():
    axis = nice_axis([5.0, 5.0, 5.0])
    assert (axis.start, axis.end, axis.step) == (2.5, 7.5, 0.5)

    around_zero = nice_axis([0.0, 0.0])
    assert around_zero.start < 0.0 < around_zero.end
    assert around_zero.step > 0


def test_nice_axis_ignores_non_finite_values():
    assert nice_axis([np.nan, 1, 100, np.inf]) == nice_axis(range(1, 101))


def test_nice_axis_rejects_bad_input():
    with pytest.raises(ValueError):
        nice_axis([1, 2, 3], max_ticks=1)
    with pytest.raises(ValueError):
        nice_axis([])
    with pytest.raises(ValueError):
        nice_axis([np.nan, np.nan])


@pytest.mark.parametrize("seed", range(8))
def test_nice_axis_covers_data_on_step_multiples(seed):
    rng = np.random.default_rng(seed)
    scale = 10.0 ** rng.integers(-3, 5)
    values = rng.uniform(-1, 1, size=25) * scale + rng.uniform(-5, 5) * scale

    axis = nice_axis(values)

    assert axis.step > 0
    assert axis.start <= values.min()
    assert axis.end >= values.max()
    assert (axis.end - axis.start) / axis.step <= 20
    assert axis.start / axis.step == pytest.approx(round(axis.start / axis.step), abs=1e-6)
