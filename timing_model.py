# -*- coding: utf-8 -*-
########################
# timing_model.py
########################
# Purpose:
# - Single source of truth for chart scroll coordinates.
# - Resolves BPM / scroll-speed inheritance across timing points and maps song time to playfield Y.
#
# Design notes:
# - Resolution is a pure fold over timing points in ascending start time.
# - Playfield Y advances 100 units per measure at 1.0x scroll speed:
#     y[i] = y[i-1] + sv[i-1] * 100 * (t[i] - t[i-1]) / (beat_length[i-1] * meter[i-1])
#   where beat_length is the segment beat length of the latest uninherited point
#   and sv is the point multiplier scaled by the difficulty SliderMultiplier.
# - A point that shares the previous point's start time replaces it (later wins),
#   keeping the beat length anchor the replaced point established.
# - No I/O. Keep this module deterministic.
#
########################
# Interfaces:
# Public functions:
# - resolve_timing_points(points: Sequence[TimingPoint], slider_multiplier: float = 1.0) -> tuple[ResolvedTimingPoint, ...]
#
# Public classes:
# - class ScrollTimingModel
#   - __init__(resolved: Sequence[ResolvedTimingPoint])
#   - from_timing_points(points, slider_multiplier: float = 1.0) -> ScrollTimingModel
#   - resolved_timing_points() -> tuple[ResolvedTimingPoint, ...]
#   - position(time: float) -> float
#   - timing_point_for(time: float) -> Optional[ResolvedTimingPoint]
#   - scroll_speed_at(time: float) -> float
#   - timing_point_at_y(y: float) -> Optional[ResolvedTimingPoint]
#
# Inputs:
# - TimingPoint sequence sorted by start_time (osu_store guarantees it).
#
# Outputs:
# - ResolvedTimingPoint tuple and position queries used by note_scheduler and playback.
#
########################

from __future__ import annotations

import bisect
import math
from typing import List, Optional, Sequence, Tuple

from beatmap_models import ResolvedTimingPoint, TimingPoint
from osu_store import FormatError

# Playfield units covered by one measure at 1.0x scroll speed.
UNITS_PER_MEASURE = 100.0


def _advance_y(previous: ResolvedTimingPoint, time: float) -> float:
    elapsed = float(time) - previous.start_time
    return previous.absolute_y + previous.sv * UNITS_PER_MEASURE * elapsed / (previous.beat_length * previous.meter)


def _resolve_first(point: TimingPoint, slider_multiplier: float) -> ResolvedTimingPoint:
    if not point.is_uninherited:
        raise FormatError("first timing point must be uninherited")
    return ResolvedTimingPoint(
        point=point,
        beat_length=point.beat_length,
        meter=point.meter,
        sv=point.sv * slider_multiplier,
        absolute_y=0.0,
    )


def _resolve_next(
    previous: ResolvedTimingPoint,
    anchor: ResolvedTimingPoint,
    point: TimingPoint,
    slider_multiplier: float,
) -> ResolvedTimingPoint:
    beat_length = point.beat_length if point.is_uninherited else anchor.beat_length

    if point.start_time == previous.start_time:
        absolute_y = previous.absolute_y
    else:
        absolute_y = _advance_y(previous, point.start_time)

    return ResolvedTimingPoint(
        point=point,
        beat_length=beat_length,
        meter=point.meter,
        sv=point.sv * slider_multiplier,
        absolute_y=absolute_y,
    )


def resolve_timing_points(
    points: Sequence[TimingPoint],
    slider_multiplier: float = 1.0,
) -> Tuple[ResolvedTimingPoint, ...]:
    multiplier = float(slider_multiplier)
    if not (math.isfinite(multiplier) and multiplier > 0.0):
        raise ValueError(f"slider multiplier must be a positive number, got {slider_multiplier!r}")

    ordered = sorted(points, key=lambda item: item.start_time)
    if not ordered:
        return ()

    first = _resolve_first(ordered[0], multiplier)
    resolved: List[ResolvedTimingPoint] = [first]
    anchor = first

    for point in ordered[1:]:
        previous = resolved[-1]
        current = _resolve_next(previous, anchor, point, multiplier)
        if point.start_time == previous.start_time:
            # Same instant: the later point replaces the earlier one, whose anchor stays in force.
            resolved.pop()
        resolved.append(current)
        if point.is_uninherited:
            anchor = current

    return tuple(resolved)


class ScrollTimingModel:
    def __init__(self, resolved: Sequence[ResolvedTimingPoint]) -> None:
        self._resolved: Tuple[ResolvedTimingPoint, ...] = tuple(resolved)
        self._start_times = [item.start_time for item in self._resolved]

    @classmethod
    def from_timing_points(cls, points: Sequence[TimingPoint], slider_multiplier: float = 1.0) -> "ScrollTimingModel":
        return cls(resolve_timing_points(points, slider_multiplier))

    def resolved_timing_points(self) -> Tuple[ResolvedTimingPoint, ...]:
        return self._resolved

    def _segment_index(self, time: float) -> int:
        # Greatest start_time <= time; ties resolve to the later point.
        return bisect.bisect_right(self._start_times, float(time)) - 1

    def timing_point_for(self, time: float) -> Optional[ResolvedTimingPoint]:
        index = self._segment_index(time)
        if index < 0:
            return None
        return self._resolved[index]

    def position(self, time: float) -> float:
        if not self._resolved:
            return 0.0
        index = max(0, self._segment_index(time))
        return _advance_y(self._resolved[index], time)

    def scroll_speed_at(self, time: float) -> float:
        """Playfield units per second at the given song time."""
        if not self._resolved:
            return 0.0
        segment = self._resolved[max(0, self._segment_index(time))]
        return segment.sv * UNITS_PER_MEASURE / (segment.beat_length * segment.meter)

    def timing_point_at_y(self, y: float) -> Optional[ResolvedTimingPoint]:
        found: Optional[ResolvedTimingPoint] = None
        for item in self._resolved:
            if item.absolute_y <= float(y):
                found = item
            else:
                break
        return found


def _run_unit_tests() -> None:
    red = TimingPoint(start_time=1.0, beat_length=0.5, raw_length=500.0, meter=4, sv=1.0, is_uninherited=True)
    green = TimingPoint(start_time=3.0, beat_length=0.0, raw_length=-50.0, meter=4, sv=2.0, is_uninherited=False)
    model = ScrollTimingModel.from_timing_points([red, green])

    assert model.position(1.0) == 0.0
    # 2 seconds at 0.5 s/beat, 4 beats per measure -> one measure -> 100 units.
    assert abs(model.position(3.0) - 100.0) < 1e-9
    assert abs(model.position(4.0) - 200.0) < 1e-9
    assert model.timing_point_for(0.5) is None
    assert model.timing_point_for(3.5).point is green
    assert abs(model.timing_point_for(3.5).bpm - 120.0) < 1e-9

    scaled = ScrollTimingModel.from_timing_points([red, green], slider_multiplier=1.4)
    assert abs(scaled.position(3.0) - 140.0) < 1e-9

    duplicate = TimingPoint(start_time=3.0, beat_length=0.0, raw_length=-100.0, meter=4, sv=1.0, is_uninherited=False)
    model = ScrollTimingModel.from_timing_points([red, green, duplicate])
    assert len(model.resolved_timing_points()) == 2
    assert model.timing_point_for(3.0).point is duplicate


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_model.py: ok")
