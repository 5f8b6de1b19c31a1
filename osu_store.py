# -*- coding: utf-8 -*-
########################
# osu_store.py
########################
# Purpose:
# - Parse osu! chart (.osu) text into an in-progress chart (ChartBuilder) plus its metadata.
# - Owns the error taxonomy shared by the loading pipeline.
#
# Design notes:
# - No I/O. Input is already-read bytes or text.
# - Section state machine driven by [Name] headers; unknown sections are ignored.
# - Header-like sections use fixed key dispatch tables (exact, case-sensitive key match).
# - Record sections (Events, TimingPoints, HitObjects) are comma-separated positional records.
# - Events records kept: background image, video (filename, start time, x/y offset) and breaks.
# - Malformed records are RecoverableLineError: logged, counted and skipped.
# - FormatError / DependencyError / SchemaError are fatal for the chart being parsed.
#
########################
# Interfaces:
# Public exceptions:
# - class BeatmapError(Exception)
# - class FormatError(BeatmapError)
# - class SchemaError(BeatmapError)        .missing_fields: list[str]
# - class DependencyError(BeatmapError)
# - class RecoverableLineError(BeatmapError)
#
# Public dataclasses:
# - ChartBuilder (mutable, in-progress chart fields)
# - ParsedChart(chart: ChartBuilder, metadata: ChartMetadata, skipped_lines: int)
#
# Public functions:
# - decode_chart_bytes(name: str, content: bytes) -> str
# - parse_chart(name: str, text: str) -> ParsedChart
# - column_for_x(x: int, circle_size: float) -> int
#
# Inputs:
# - Chart file name (for diagnostics) and its text.
#
# Outputs:
# - ParsedChart, validated for required fields. Timing points and hit objects are sorted by start time.
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
import logging
import math
import re
from typing import Callable, Dict, List, Optional, Tuple

import chart_validator
from beatmap_models import (
    BreakEvent,
    ChartMetadata,
    EFFECT_KIAI,
    GameMode,
    HitObject,
    MediaEvent,
    TimingPoint,
)
from line_cursor import LineCursor

logger = logging.getLogger(__name__)


class BeatmapError(Exception):
    """Base error for chart parsing and loading."""


class FormatError(BeatmapError):
    """Raised when the chart structure is wrong (magic line, first timing point)."""


class SchemaError(BeatmapError):
    """Raised when required fields are still missing after the whole chart was read."""

    def __init__(self, message: str, missing_fields: List[str]) -> None:
        super().__init__(message)
        self.missing_fields = list(missing_fields)


class DependencyError(BeatmapError):
    """Raised when a record needs a field that has not been set yet (hit objects before CircleSize)."""


class RecoverableLineError(BeatmapError):
    """Raised by record handlers for a malformed line. Never escapes parse_chart."""


PLAYFIELD_WIDTH = 512
TIMING_POINT_FIELD_COUNT = 8
HIT_OBJECT_MIN_FIELD_COUNT = 5
HOLD_NOTE_MIN_FIELD_COUNT = 6

HIT_OBJECT_TAP = 1
HIT_OBJECT_HOLD = 128

EVENT_BACKGROUND = ("0", "Background")
EVENT_VIDEO = ("1", "Video")
EVENT_BREAK = ("2", "Break")

# osu!mania supports at most 18 keys.
MAX_COLUMN_COUNT = 18

# Inherited scroll multiplier range accepted by the game client.
MIN_SCROLL_MULTIPLIER = 0.1
MAX_SCROLL_MULTIPLIER = 10.0

_FORMAT_LINE_PATTERN = re.compile(r"^osu file format v(\d+)$")


class Section(enum.Enum):
    NO_SECTION = "NoSection"
    GENERAL = "General"
    METADATA = "Metadata"
    DIFFICULTY = "Difficulty"
    EVENTS = "Events"
    TIMING_POINTS = "TimingPoints"
    HIT_OBJECTS = "HitObjects"
    UNKNOWN = "Unknown"


_SECTIONS_BY_NAME: Dict[str, Section] = {
    section.value: section
    for section in Section
    if section not in (Section.NO_SECTION, Section.UNKNOWN)
}


@dataclass
class ChartBuilder:
    name: str
    format_version: int

    # [General]
    audio_filename: str = ""
    audio_lead_in: float = 0.0
    preview_time: Optional[float] = None
    stack_leniency: float = 0.0
    mode: GameMode = GameMode.MANIA

    # [Metadata]
    title: str = ""
    artist: str = ""
    creator: str = ""
    version: str = ""
    source: str = ""
    tags: Tuple[str, ...] = ()
    beatmap_id: int = -1
    beatmap_set_id: int = -1

    # [Difficulty]
    hp: float = 0.0
    cs: float = 0.0  # column count in mania
    od: float = 0.0
    ar: float = 0.0
    sv: float = 0.0
    slider_tick_rate: float = 0.0

    # [Events]
    background_filename: str = ""
    background: Optional[MediaEvent] = None
    video: Optional[MediaEvent] = None
    breaks: List[BreakEvent] = field(default_factory=list)

    # [TimingPoints]
    timing_points: List[TimingPoint] = field(default_factory=list)

    # [HitObjects]
    hit_objects: List[HitObject] = field(default_factory=list)

    def metadata(self) -> ChartMetadata:
        return ChartMetadata(
            title=self.title,
            artist=self.artist,
            creator=self.creator,
            source=self.source,
            tags=tuple(self.tags),
            beatmap_id=int(self.beatmap_id),
            beatmap_set_id=int(self.beatmap_set_id),
        )


@dataclass(frozen=True)
class ParsedChart:
    chart: ChartBuilder
    metadata: ChartMetadata
    skipped_lines: int


def _to_text(value: str) -> str:
    return value


def _to_float(value: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _to_int(value: str) -> int:
    return int(value)


def _ms_to_seconds(value: str) -> float:
    return int(value) / 1000.0


def _preview_seconds(value: str) -> Optional[float]:
    milliseconds = int(value)
    if milliseconds < 0:
        return None
    return milliseconds / 1000.0


def _to_game_mode(value: str) -> GameMode:
    return GameMode(int(value))


def _to_tags(value: str) -> Tuple[str, ...]:
    return tuple(value.split())


# Key -> (ChartBuilder attribute, converter). Converters raise ValueError on bad input.
_GENERAL_KEYS: Dict[str, Tuple[str, Callable[[str], object]]] = {
    "AudioFilename": ("audio_filename", _to_text),
    "AudioLeadIn": ("audio_lead_in", _ms_to_seconds),
    "PreviewTime": ("preview_time", _preview_seconds),
    "StackLeniency": ("stack_leniency", _to_float),
    "Mode": ("mode", _to_game_mode),
}

_METADATA_KEYS: Dict[str, Tuple[str, Callable[[str], object]]] = {
    "Title": ("title", _to_text),
    "Artist": ("artist", _to_text),
    "Creator": ("creator", _to_text),
    "Version": ("version", _to_text),
    "Source": ("source", _to_text),
    "Tags": ("tags", _to_tags),
    "BeatmapID": ("beatmap_id", _to_int),
    "BeatmapSetID": ("beatmap_set_id", _to_int),
}

_DIFFICULTY_KEYS: Dict[str, Tuple[str, Callable[[str], object]]] = {
    "HPDrainRate": ("hp", _to_float),
    "CircleSize": ("cs", _to_float),
    "OverallDifficulty": ("od", _to_float),
    "ApproachRate": ("ar", _to_float),
    "SliderMultiplier": ("sv", _to_float),
    "SliderTickRate": ("slider_tick_rate", _to_float),
}


def decode_chart_bytes(name: str, content: bytes) -> str:
    try:
        return bytes(content).decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FormatError(f"{name}: chart is not valid UTF-8") from exc


def column_for_x(x: int, circle_size: float) -> int:
    column_count = int(circle_size)
    column = int(math.floor(float(x) * float(circle_size) / PLAYFIELD_WIDTH))
    return max(0, min(column_count - 1, column))


def inherited_scroll_multiplier(raw_length: float) -> float:
    """Scroll multiplier of an inherited point: raw length is a negative percentage (-50 -> 2.0x)."""
    if raw_length >= 0.0:
        return 1.0
    multiplier = -100.0 / float(raw_length)
    return max(MIN_SCROLL_MULTIPLIER, min(MAX_SCROLL_MULTIPLIER, multiplier))


def _parse_format_version(name: str, first_line: Optional[str]) -> int:
    if first_line is None:
        raise FormatError(f"{name}: chart is empty")
    match = _FORMAT_LINE_PATTERN.match(first_line.lstrip("\ufeff").strip())
    if match is None:
        raise FormatError(f"{name}: expected 'osu file format v<N>' header, got {first_line!r}")
    return int(match.group(1))


def _parse_media_event(kind: str, params: List[str], line_text: str) -> Optional[MediaEvent]:
    """Background/video record: code, start time (ms), "filename", optional x and y offsets."""
    if len(params) < 3:
        raise RecoverableLineError(f"{kind} event needs at least 3 fields, got {len(params)}")
    filename = params[2].strip('"')
    try:
        start_ms = int(params[1])
        offsets = [int(value) for value in params[3:5]]
    except ValueError as exc:
        raise RecoverableLineError(f"invalid {kind} event value: {line_text!r}") from exc
    if not filename:
        return None
    offset_x, offset_y = (offsets + [0, 0])[:2]
    return MediaEvent(filename=filename, start_time=start_ms / 1000.0, offset_x=offset_x, offset_y=offset_y)


def _is_section_header(line_text: str) -> bool:
    return len(line_text) >= 2 and line_text.startswith("[") and line_text.endswith("]")


class _ChartParser:
    def __init__(self, name: str, text: str) -> None:
        self._name = name
        self._cursor = LineCursor(text)
        self._chart: Optional[ChartBuilder] = None
        self._section = Section.NO_SECTION
        self._skipped_lines = 0
        self._handlers: Dict[Section, Callable[[str], None]] = {
            Section.GENERAL: lambda line: self._on_key_value(line, _GENERAL_KEYS),
            Section.METADATA: lambda line: self._on_key_value(line, _METADATA_KEYS),
            Section.DIFFICULTY: lambda line: self._on_key_value(line, _DIFFICULTY_KEYS),
            Section.EVENTS: self._on_event,
            Section.TIMING_POINTS: self._on_timing_point,
            Section.HIT_OBJECTS: self._on_hit_object,
        }

    def _where(self) -> str:
        return f"{self._name}:{self._cursor.line_number}"

    def parse(self) -> ParsedChart:
        format_version = _parse_format_version(self._name, self._cursor.next_line())
        chart = ChartBuilder(name=self._name, format_version=format_version)
        self._chart = chart

        for line_text in self._cursor:
            if _is_section_header(line_text):
                self._section = _SECTIONS_BY_NAME.get(line_text[1:-1].strip(), Section.UNKNOWN)
                continue

            handler = self._handlers.get(self._section)
            if handler is None:
                continue

            try:
                handler(line_text)
            except RecoverableLineError as exc:
                self._skipped_lines += 1
                logger.warning("%s: skipped [%s] line: %s", self._where(), self._section.value, exc)

        # Stable sorts keep file order for equal start times.
        chart.timing_points.sort(key=lambda point: point.start_time)
        chart.hit_objects.sort(key=lambda hit_object: hit_object.start_time)

        missing = chart_validator.missing_fields(chart)
        if missing:
            raise SchemaError(f"{self._name}: missing required fields: {', '.join(missing)}", missing)

        if chart.mode != GameMode.MANIA:
            logger.warning("%s: chart mode is %s, columns are still derived from CircleSize", self._name, chart.mode.name)

        logger.debug(
            "%s: parsed v%d, %d timing points, %d hit objects, %d skipped lines",
            self._name,
            format_version,
            len(chart.timing_points),
            len(chart.hit_objects),
            self._skipped_lines,
        )
        return ParsedChart(chart=chart, metadata=chart.metadata(), skipped_lines=self._skipped_lines)

    def _on_key_value(self, line_text: str, key_table: Dict[str, Tuple[str, Callable[[str], object]]]) -> None:
        if ":" not in line_text:
            return
        key, value = line_text.split(":", 1)
        entry = key_table.get(key)
        if entry is None:
            return
        attribute_name, converter = entry
        value_text = value.strip()
        try:
            converted = converter(value_text)
        except ValueError as exc:
            raise RecoverableLineError(f"invalid value for {key}: {value_text!r}") from exc
        setattr(self._chart, attribute_name, converted)

    def _on_event(self, line_text: str) -> None:
        params = [param.strip() for param in line_text.split(",")]
        event_code = params[0]

        if event_code in EVENT_BACKGROUND:
            background = _parse_media_event("background", params, line_text)
            if background is not None:
                self._chart.background = background
                self._chart.background_filename = background.filename
            return

        if event_code in EVENT_VIDEO:
            video = _parse_media_event("video", params, line_text)
            if video is not None:
                self._chart.video = video
            return

        if event_code in EVENT_BREAK:
            if len(params) < 3:
                raise RecoverableLineError(f"break event needs 3 fields, got {len(params)}")
            try:
                start_ms = int(params[1])
                end_ms = int(params[2])
            except ValueError as exc:
                raise RecoverableLineError(f"invalid break times: {line_text!r}") from exc
            if end_ms < start_ms:
                raise RecoverableLineError(f"break ends before it starts: {line_text!r}")
            self._chart.breaks.append(BreakEvent(start_time=start_ms / 1000.0, end_time=end_ms / 1000.0))

    def _on_timing_point(self, line_text: str) -> None:
        params = line_text.split(",")
        if len(params) != TIMING_POINT_FIELD_COUNT:
            raise RecoverableLineError(
                f"expected {TIMING_POINT_FIELD_COUNT} timing point fields, got {len(params)}"
            )

        try:
            start_ms = float(params[0])
            raw_length = float(params[1])
            meter = int(params[2])
            sample_set = int(params[3])
            sample_index = int(params[4])
            volume = int(params[5])
            is_uninherited = params[6].strip() == "1"
            effects = int(params[7])
        except ValueError as exc:
            raise RecoverableLineError(f"invalid timing point value: {line_text!r}") from exc

        if not (math.isfinite(start_ms) and math.isfinite(raw_length)):
            raise RecoverableLineError(f"timing point time and length must be finite: {line_text!r}")

        if is_uninherited and raw_length <= 0.0:
            raise RecoverableLineError(f"uninherited timing point needs a positive beat length: {line_text!r}")
        if meter <= 0:
            raise RecoverableLineError(f"meter must be positive: {line_text!r}")

        if not self._chart.timing_points and not is_uninherited:
            raise FormatError(f"{self._where()}: first timing point must be uninherited")

        if is_uninherited:
            beat_length = raw_length / 1000.0
            sv = 1.0
        else:
            beat_length = 0.0
            sv = inherited_scroll_multiplier(raw_length)

        self._chart.timing_points.append(
            TimingPoint(
                start_time=start_ms / 1000.0,
                beat_length=beat_length,
                raw_length=raw_length,
                meter=meter,
                sv=sv,
                is_uninherited=is_uninherited,
                volume=max(0, min(100, volume)) / 100.0,
                kiai=bool(effects & EFFECT_KIAI),
                sample_set=sample_set,
                sample_index=sample_index,
                effects=effects,
            )
        )

    def _on_hit_object(self, line_text: str) -> None:
        circle_size = float(self._chart.cs)
        if circle_size <= 0.0 or int(circle_size) <= 0:
            raise DependencyError(f"{self._where()}: hit objects found before CircleSize (column count) is known")
        if int(circle_size) > MAX_COLUMN_COUNT:
            raise DependencyError(
                f"{self._where()}: CircleSize {circle_size:g} exceeds the {MAX_COLUMN_COUNT} column maximum"
            )

        params = line_text.split(",")
        if len(params) < HIT_OBJECT_MIN_FIELD_COUNT:
            raise RecoverableLineError(
                f"expected at least {HIT_OBJECT_MIN_FIELD_COUNT} hit object fields, got {len(params)}"
            )

        try:
            x = int(params[0])
            start_ms = int(params[2])
            object_type = int(params[3])
        except ValueError as exc:
            raise RecoverableLineError(f"invalid hit object value: {line_text!r}") from exc

        if object_type & HIT_OBJECT_HOLD:
            if len(params) < HOLD_NOTE_MIN_FIELD_COUNT:
                raise RecoverableLineError(
                    f"expected at least {HOLD_NOTE_MIN_FIELD_COUNT} hold note fields, got {len(params)}"
                )
            end_text = params[5].split(":", 1)[0]
            try:
                end_ms = int(end_text)
            except ValueError as exc:
                raise RecoverableLineError(f"invalid hold end time: {end_text!r}") from exc
            if end_ms <= start_ms:
                raise RecoverableLineError(f"hold note must end after it starts: {line_text!r}")
            is_hold = True
            end_time = end_ms / 1000.0
        elif object_type & HIT_OBJECT_TAP:
            is_hold = False
            end_time = 0.0
        else:
            logger.debug("%s: ignored hit object type %d", self._where(), object_type)
            return

        self._chart.hit_objects.append(
            HitObject(
                x=x,
                start_time=start_ms / 1000.0,
                end_time=end_time,
                column=column_for_x(x, circle_size),
                is_hold=is_hold,
            )
        )


def parse_chart(name: str, text: str) -> ParsedChart:
    """Parse one chart. Raises FormatError, DependencyError or SchemaError when the chart is rejected."""
    return _ChartParser(str(name), str(text)).parse()
