# -*- coding: utf-8 -*-
########################
# beatmap_models.py
########################
# Purpose:
# - Core data models for loaded beatmap sets.
# - Defines the immutable Beatmap / Difficulty representation and the derived playfield events.
#
# Design notes:
# - All public models are frozen dataclasses. Sequences are tuples.
# - Derived data (resolved_timing_points, playfield) is only built by chart_engine.
# - Difficulty queries delegate to timing_model and note_scheduler.
#
########################
# Interfaces:
# Public enums:
# - class GameMode(enum.IntEnum): STANDARD | TAIKO | CATCH | MANIA
# - class NoteKind(enum.Enum): CLICK | HOLD_START | HOLD_END
#
# Public dataclasses:
# - BreakEvent(start_time: float, end_time: float)
# - MediaEvent(filename: str, start_time: float, offset_x: int, offset_y: int)   background image or video
# - TimingPoint(start_time, beat_length, raw_length, meter, sv, is_uninherited, volume, kiai,
#               sample_set, sample_index, effects)
# - ResolvedTimingPoint(point: TimingPoint, beat_length: float, meter: int, sv: float, absolute_y: float)
# - HitObject(x: int, start_time: float, end_time: float, column: int, is_hold: bool)
# - NoteEvent(kind: NoteKind, time: float, resolved_y: float, column: int)
# - Column(index: int, events: tuple[NoteEvent, ...])   .times: cached event times for bisect lookups
# - Playfield(columns: tuple[Column, ...])
# - ChartMetadata(title, artist, creator, source, tags, beatmap_id, beatmap_set_id)
# - Difficulty(...)
#   - scroll_timing: cached ScrollTimingModel over resolved_timing_points
#   - timing_point_for(time: float) -> Optional[ResolvedTimingPoint]   (.point is the raw TimingPoint)
#   - event_for(time: float, column: int, find_nearest: bool = False) -> Optional[NoteEvent]
#   - position(time: float) -> float
# - Beatmap(id, title, artist, creator, source, tags, difficulties)
#
########################

from __future__ import annotations

from dataclasses import dataclass
import enum
from functools import cached_property
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from timing_model import ScrollTimingModel


# Timing point effect bits.
EFFECT_KIAI = 1
EFFECT_OMIT_FIRST_BARLINE = 8


class GameMode(enum.IntEnum):
    STANDARD = 0
    TAIKO = 1
    CATCH = 2
    MANIA = 3


class NoteKind(enum.Enum):
    CLICK = "click"
    HOLD_START = "hold_start"
    HOLD_END = "hold_end"


@dataclass(frozen=True)
class BreakEvent:
    start_time: float
    end_time: float


@dataclass(frozen=True)
class MediaEvent:
    filename: str
    start_time: float = 0.0
    offset_x: int = 0  # pixels from the playfield centre
    offset_y: int = 0


@dataclass(frozen=True)
class TimingPoint:
    start_time: float
    beat_length: float  # seconds per beat; 0.0 on inherited points
    raw_length: float  # raw field: milliseconds, or negative percentage when inherited
    meter: int
    sv: float  # 1.0 when uninherited
    is_uninherited: bool
    volume: float = 1.0
    kiai: bool = False
    sample_set: int = 0
    sample_index: int = 0
    effects: int = 0

    @property
    def omit_first_barline(self) -> bool:
        return bool(self.effects & EFFECT_OMIT_FIRST_BARLINE)


@dataclass(frozen=True)
class ResolvedTimingPoint:
    point: TimingPoint
    beat_length: float  # segment beat length in force at this point
    meter: int
    sv: float
    absolute_y: float

    @property
    def start_time(self) -> float:
        return self.point.start_time

    @property
    def bpm(self) -> float:
        return 60.0 / self.beat_length


@dataclass(frozen=True)
class HitObject:
    x: int
    start_time: float
    end_time: float
    column: int
    is_hold: bool = False


@dataclass(frozen=True)
class NoteEvent:
    kind: NoteKind
    time: float
    resolved_y: float
    column: int


@dataclass(frozen=True)
class Column:
    index: int
    events: Tuple[NoteEvent, ...]

    @cached_property
    def times(self) -> Tuple[float, ...]:
        return tuple(event.time for event in self.events)


@dataclass(frozen=True)
class Playfield:
    columns: Tuple[Column, ...]

    def event_count(self) -> int:
        return sum(len(column.events) for column in self.columns)


@dataclass(frozen=True)
class ChartMetadata:
    title: str = ""
    artist: str = ""
    creator: str = ""
    source: str = ""
    tags: Tuple[str, ...] = ()
    beatmap_id: int = -1
    beatmap_set_id: int = -1


@dataclass(frozen=True)
class Difficulty:
    name: str
    format_version: int
    beatmap_id: int
    version: str
    audio_filename: str
    audio_lead_in: float
    preview_time: Optional[float]
    stack_leniency: float
    mode: GameMode
    hp: float
    cs: float
    od: float
    ar: float
    sv: float
    slider_tick_rate: float
    background_filename: str
    breaks: Tuple[BreakEvent, ...]
    timing_points: Tuple[TimingPoint, ...]
    resolved_timing_points: Tuple[ResolvedTimingPoint, ...]
    hit_objects: Tuple[HitObject, ...]
    playfield: Playfield
    background: Optional[MediaEvent] = None
    video: Optional[MediaEvent] = None

    @property
    def column_count(self) -> int:
        return int(self.cs)

    @property
    def duration(self) -> float:
        last_times = [column.events[-1].time for column in self.playfield.columns if column.events]
        return max(last_times) if last_times else 0.0

    @cached_property
    def scroll_timing(self) -> ScrollTimingModel:
        import timing_model

        return timing_model.ScrollTimingModel(self.resolved_timing_points)

    def timing_point_for(self, time: float) -> Optional[ResolvedTimingPoint]:
        """Resolved point governing `time`; its `.point` is the TimingPoint as parsed."""
        return self.scroll_timing.timing_point_for(time)

    def position(self, time: float) -> float:
        return self.scroll_timing.position(time)

    def event_for(self, time: float, column: int, find_nearest: bool = False) -> Optional[NoteEvent]:
        import note_scheduler

        return note_scheduler.event_for(self.playfield, time, column, find_nearest=find_nearest)


@dataclass(frozen=True)
class Beatmap:
    id: int
    title: str
    artist: str
    creator: str
    source: str
    tags: Tuple[str, ...]
    difficulties: Tuple[Difficulty, ...]
