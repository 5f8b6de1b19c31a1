# -*- coding: utf-8 -*-
########################
# note_scheduler.py
########################
# Purpose:
# - Organize chart hit objects into per-column event streams for playback and judgement.
# - Provides queries for the exact/nearest event in a column and for events inside a Y window.
#
# Design notes:
# - Pure logic. Positions come from timing_model.ScrollTimingModel.
# - Column order is deterministic: stable sort by time, so a hold's start always precedes its end.
# - Nearest-event tie break: the earlier event wins when two are equidistant.
# - Column count is limited to 1..MAX_COLUMN_COUNT (osu!mania maximum).
# - event_for bisects Column.times, computed once per column.
#
########################
# Interfaces:
# Public functions:
# - build_playfield(hit_objects: Sequence[HitObject], column_count: int, timing: ScrollTimingModel) -> Playfield
# - event_for(playfield: Playfield, time: float, column: int, *, find_nearest: bool = False) -> Optional[NoteEvent]
# - visible_events(playfield: Playfield, *, lower_y: float, upper_y: float) -> list[NoteEvent]
#
# Inputs:
# - Hit objects sorted by start time, column count from CircleSize, resolved timing model.
#
# Outputs:
# - Playfield with one Column per lane.
#
########################

from __future__ import annotations

import bisect
from typing import Dict, List, Optional, Sequence

from beatmap_models import Column, HitObject, NoteEvent, NoteKind, Playfield, TimingPoint
from osu_store import MAX_COLUMN_COUNT
from timing_model import ScrollTimingModel

# Exact-match tolerance for event_for, in seconds.
TIME_EPSILON_SECONDS = 1e-6


def build_playfield(hit_objects: Sequence[HitObject], column_count: int, timing: ScrollTimingModel) -> Playfield:
    if not 1 <= int(column_count) <= MAX_COLUMN_COUNT:
        raise ValueError(f"column count {int(column_count)} outside 1..{MAX_COLUMN_COUNT}")

    lanes: Dict[int, List[NoteEvent]] = {index: [] for index in range(int(column_count))}

    for hit_object in hit_objects:
        lane = lanes.get(int(hit_object.column))
        if lane is None:
            raise ValueError(f"hit object column {hit_object.column} outside 0..{int(column_count) - 1}")

        if hit_object.is_hold:
            lane.append(
                NoteEvent(
                    kind=NoteKind.HOLD_START,
                    time=hit_object.start_time,
                    resolved_y=timing.position(hit_object.start_time),
                    column=hit_object.column,
                )
            )
            lane.append(
                NoteEvent(
                    kind=NoteKind.HOLD_END,
                    time=hit_object.end_time,
                    resolved_y=timing.position(hit_object.end_time),
                    column=hit_object.column,
                )
            )
        else:
            lane.append(
                NoteEvent(
                    kind=NoteKind.CLICK,
                    time=hit_object.start_time,
                    resolved_y=timing.position(hit_object.start_time),
                    column=hit_object.column,
                )
            )

    columns = []
    for index in sorted(lanes.keys()):
        events = sorted(lanes[index], key=lambda event: event.time)
        columns.append(Column(index=index, events=tuple(events)))
    return Playfield(columns=tuple(columns))


def event_for(playfield: Playfield, time: float, column: int, *, find_nearest: bool = False) -> Optional[NoteEvent]:
    column_index = int(column)
    if column_index < 0 or column_index >= len(playfield.columns):
        return None
    lane = playfield.columns[column_index]
    events = lane.events
    if not events:
        return None

    target = float(time)
    times = lane.times
    index = bisect.bisect_left(times, target - TIME_EPSILON_SECONDS)

    if not find_nearest:
        if index < len(events) and abs(events[index].time - target) <= TIME_EPSILON_SECONDS:
            return events[index]
        return None

    best_event: Optional[NoteEvent] = None
    best_abs_delta = 0.0
    for candidate_index in (index - 1, index):
        if candidate_index < 0 or candidate_index >= len(events):
            continue
        candidate = events[candidate_index]
        abs_delta = abs(candidate.time - target)
        # Candidates are visited earliest first, so strict < keeps the earlier one on ties.
        if best_event is None or abs_delta < best_abs_delta:
            best_event = candidate
            best_abs_delta = abs_delta
    return best_event


def visible_events(playfield: Playfield, *, lower_y: float, upper_y: float) -> List[NoteEvent]:
    lower = float(lower_y)
    upper = float(upper_y)
    visible: List[NoteEvent] = []
    for column in playfield.columns:
        for event in column.events:
            if lower <= event.resolved_y <= upper:
                visible.append(event)
    visible.sort(key=lambda event: (event.time, event.column))
    return visible


def _run_unit_tests() -> None:
    timing = ScrollTimingModel.from_timing_points(
        [TimingPoint(start_time=0.0, beat_length=0.5, raw_length=500.0, meter=4, sv=1.0, is_uninherited=True)]
    )
    hit_objects = [
        HitObject(x=64, start_time=1.0, end_time=0.0, column=0),
        HitObject(x=192, start_time=1.0, end_time=3.0, column=1, is_hold=True),
        HitObject(x=64, start_time=2.0, end_time=0.0, column=0),
    ]
    playfield = build_playfield(hit_objects, 4, timing)

    assert len(playfield.columns) == 4
    assert [event.kind for event in playfield.columns[1].events] == [NoteKind.HOLD_START, NoteKind.HOLD_END]
    assert abs(playfield.columns[0].events[0].resolved_y - 50.0) < 1e-9

    assert event_for(playfield, 2.0, 0).time == 2.0
    assert event_for(playfield, 1.4, 0) is None
    assert event_for(playfield, 1.4, 0, find_nearest=True).time == 1.0
    assert event_for(playfield, 1.5, 0, find_nearest=True).time == 1.0
    assert event_for(playfield, 1.0, 3, find_nearest=True) is None
    assert event_for(playfield, 1.0, 9) is None

    assert [event.column for event in visible_events(playfield, lower_y=40.0, upper_y=60.0)] == [0, 1]


if __name__ == "__main__":
    _run_unit_tests()
    print("note_scheduler.py: ok")
