"""Tests for timing point resolution and time-to-position mapping."""

import pytest

from beatmap_models import TimingPoint
from osu_store import FormatError
from timing_model import ScrollTimingModel, resolve_timing_points


def _red(start_time, beat_length, meter=4):
    return TimingPoint(
        start_time=start_time,
        beat_length=beat_length,
        raw_length=beat_length * 1000.0,
        meter=meter,
        sv=1.0,
        is_uninherited=True,
    )


def _green(start_time, sv, meter=4):
    return TimingPoint(
        start_time=start_time,
        beat_length=0.0,
        raw_length=-100.0 / sv,
        meter=meter,
        sv=sv,
        is_uninherited=False,
    )


def _model():
    return ScrollTimingModel.from_timing_points([_red(0.0, 0.5), _green(2.0, 2.0), _red(4.0, 0.25)])


def test_resolved_positions_and_bpm():
    resolved = _model().resolved_timing_points()

    assert [item.absolute_y for item in resolved] == pytest.approx([0.0, 100.0, 300.0])
    assert [item.bpm for item in resolved] == pytest.approx([120.0, 120.0, 240.0])
    assert [item.sv for item in resolved] == [1.0, 2.0, 1.0]


def test_inherited_point_keeps_latest_beat_length():
    resolved = resolve_timing_points([_red(0.0, 0.5), _green(1.0, 2.0), _green(2.0, 0.5)])
    assert [item.beat_length for item in resolved] == [0.5, 0.5, 0.5]
    assert resolved[2].absolute_y == pytest.approx(50.0 + 100.0)


def test_position_inside_and_after_segments():
    model = _model()
    assert model.position(0.0) == 0.0
    assert model.position(1.0) == pytest.approx(50.0)
    assert model.position(3.0) == pytest.approx(200.0)
    assert model.position(5.0) == pytest.approx(400.0)


def test_position_before_first_point_extrapolates():
    assert _model().position(-1.0) == pytest.approx(-50.0)


def test_position_is_monotonic():
    model = _model()
    positions = [model.position(step * 0.25) for step in range(0, 25)]
    assert positions == sorted(positions)


def test_meter_scales_measure_length():
    model = ScrollTimingModel.from_timing_points([_red(0.0, 0.5, meter=3)])
    assert model.position(1.5) == pytest.approx(100.0)


def test_same_time_points_later_wins():
    model = ScrollTimingModel.from_timing_points([_red(0.0, 0.5), _green(0.0, 2.0)])
    resolved = model.resolved_timing_points()

    assert len(resolved) == 1
    assert not resolved[0].point.is_uninherited
    assert resolved[0].beat_length == 0.5
    assert model.position(1.0) == pytest.approx(100.0)


def test_timing_point_for():
    model = _model()
    assert model.timing_point_for(-0.1) is None
    assert model.timing_point_for(0.0).start_time == 0.0
    assert model.timing_point_for(2.0).start_time == 2.0
    assert model.timing_point_for(3.9).start_time == 2.0
    assert model.timing_point_for(100.0).start_time == 4.0


def test_scroll_speed_and_timing_point_at_y():
    model = _model()
    assert model.scroll_speed_at(1.0) == pytest.approx(50.0)
    assert model.scroll_speed_at(3.0) == pytest.approx(100.0)
    assert model.timing_point_at_y(150.0).start_time == 2.0
    assert model.timing_point_at_y(-1.0) is None


def test_first_point_inherited_is_rejected():
    with pytest.raises(FormatError):
        resolve_timing_points([_green(0.0, 1.0), _red(1.0, 0.5)])


def test_empty_model():
    model = ScrollTimingModel.from_timing_points([])
    assert model.resolved_timing_points() == ()
    assert model.position(3.0) == 0.0
    assert model.timing_point_for(3.0) is None


def test_slider_multiplier_scales_every_segment():
    points = [_red(0.0, 0.5), _green(2.0, 2.0), _red(4.0, 0.25)]
    resolved = resolve_timing_points(points, slider_multiplier=1.4)

    assert [item.sv for item in resolved] == pytest.approx([1.4, 2.8, 1.4])
    assert [item.absolute_y for item in resolved] == pytest.approx([0.0, 140.0, 420.0])

    model = ScrollTimingModel.from_timing_points(points, slider_multiplier=1.4)
    assert model.position(1.0) == pytest.approx(70.0)
    assert model.scroll_speed_at(1.0) == pytest.approx(70.0)


@pytest.mark.parametrize("multiplier", [0.0, -1.0, float("nan"), float("inf")])
def test_invalid_slider_multiplier_is_rejected(multiplier):
    with pytest.raises(ValueError):
        resolve_timing_points([_red(0.0, 0.5)], slider_multiplier=multiplier)
