# -*- coding: utf-8 -*-
########################
# chart_engine.py
########################
# Purpose:
# - Beatmap set loading only.
# - Runs each chart source through decode -> parse/validate -> timing resolution -> playfield build,
#   and assembles the successful difficulties into one immutable Beatmap.
#
########################
# Key Logic:
# - A fatal chart error rejects that chart only; it is logged and reported, the set keeps loading.
# - Zero loaded difficulties is a set-level failure (BeatmapSetLoadError lists every file and reason).
# - Set metadata comes from the first loaded difficulty in source order; later differing values are ignored.
# - Difficulties may be parsed on a worker pool; results are always collected in source order.
#
########################
# Interfaces:
# Public exceptions:
# - class ChartLoadError(BeatmapError)        .chart_name: str
# - class BeatmapSetLoadError(BeatmapError)   .failures: list[ChartFailure]
#
# Public dataclasses:
# - @dataclass(frozen=True) class ChartSource(name: str, content: bytes)
# - @dataclass(frozen=True) class ChartFailure(name: str, reason: str)
# - @dataclass(frozen=True) class LoadedChart(difficulty: Difficulty, metadata: ChartMetadata, skipped_lines: int)
#
# Public functions:
# - build_difficulty(parsed: osu_store.ParsedChart) -> Difficulty
# - rebuild_difficulty(difficulty: Difficulty, **changes) -> Difficulty
# - load_chart(source: ChartSource) -> LoadedChart
# - load_beatmap_set(sources: Iterable[ChartSource], *, max_workers: int = 1) -> Beatmap
# - load_beatmap_set_with_report(sources, *, max_workers: int = 1) -> tuple[Beatmap, list[ChartFailure]]
#
# Inputs:
# - (name, bytes) pairs from library_index or any other chart source.
#
# Outputs:
# - Beatmap, or BeatmapSetLoadError when nothing could be loaded.
#
########################

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
import logging
from typing import Iterable, List, Tuple, Union

import note_scheduler
import osu_store
import timing_model
from beatmap_models import Beatmap, ChartMetadata, Difficulty, Playfield
from osu_store import BeatmapError

logger = logging.getLogger(__name__)

# Computed from timing_points and hit_objects; never set directly.
_DERIVED_FIELDS = ("resolved_timing_points", "playfield")


class ChartLoadError(BeatmapError):
    """Raised when one chart source is rejected (format, schema or dependency error)."""

    def __init__(self, chart_name: str, message: str) -> None:
        super().__init__(message)
        self.chart_name = chart_name


@dataclass(frozen=True)
class ChartFailure:
    name: str
    reason: str


class BeatmapSetLoadError(BeatmapError):
    """Raised when no difficulty in the set could be loaded."""

    def __init__(self, failures: List[ChartFailure]) -> None:
        self.failures = list(failures)
        if self.failures:
            details = "; ".join(failure.reason for failure in self.failures)
            message = f"No difficulty could be loaded ({details})"
        else:
            message = "No chart files to load"
        super().__init__(message)


@dataclass(frozen=True)
class ChartSource:
    name: str
    content: bytes


@dataclass(frozen=True)
class LoadedChart:
    difficulty: Difficulty
    metadata: ChartMetadata
    skipped_lines: int


def _derive(difficulty: Difficulty) -> Difficulty:
    timing = timing_model.ScrollTimingModel.from_timing_points(difficulty.timing_points, difficulty.sv)
    playfield = note_scheduler.build_playfield(difficulty.hit_objects, difficulty.column_count, timing)
    return replace(difficulty, resolved_timing_points=timing.resolved_timing_points(), playfield=playfield)


def build_difficulty(parsed: osu_store.ParsedChart) -> Difficulty:
    chart = parsed.chart
    difficulty = Difficulty(
        name=chart.name,
        format_version=int(chart.format_version),
        beatmap_id=int(chart.beatmap_id),
        version=chart.version,
        audio_filename=chart.audio_filename,
        audio_lead_in=float(chart.audio_lead_in),
        preview_time=chart.preview_time,
        stack_leniency=float(chart.stack_leniency),
        mode=chart.mode,
        hp=float(chart.hp),
        cs=float(chart.cs),
        od=float(chart.od),
        ar=float(chart.ar),
        sv=float(chart.sv),
        slider_tick_rate=float(chart.slider_tick_rate),
        background_filename=chart.background_filename,
        breaks=tuple(chart.breaks),
        timing_points=tuple(chart.timing_points),
        resolved_timing_points=(),
        hit_objects=tuple(chart.hit_objects),
        playfield=Playfield(columns=()),
        background=chart.background,
        video=chart.video,
    )
    return _derive(difficulty)


def rebuild_difficulty(difficulty: Difficulty, **changes) -> Difficulty:
    """Return a copy with source fields changed and derived timing/playfield data recomputed."""
    for field_name in _DERIVED_FIELDS:
        if field_name in changes:
            raise ValueError(f"{field_name} is derived and cannot be set directly")
    if "timing_points" in changes:
        changes["timing_points"] = tuple(sorted(changes["timing_points"], key=lambda point: point.start_time))
    if "hit_objects" in changes:
        changes["hit_objects"] = tuple(sorted(changes["hit_objects"], key=lambda hit_object: hit_object.start_time))

    updated = replace(difficulty, **changes)
    if updated.cs != difficulty.cs or "hit_objects" in changes:
        # Column placement depends on CircleSize.
        updated = replace(
            updated,
            hit_objects=tuple(
                replace(hit_object, column=osu_store.column_for_x(hit_object.x, updated.cs))
                for hit_object in updated.hit_objects
            ),
        )
    return _derive(updated)


def load_chart(source: ChartSource) -> LoadedChart:
    try:
        text = osu_store.decode_chart_bytes(source.name, source.content)
        parsed = osu_store.parse_chart(source.name, text)
        difficulty = build_difficulty(parsed)
    except (BeatmapError, ValueError) as exc:
        reason = str(exc)
        if not reason.startswith(source.name):
            reason = f"{source.name}: {reason}"
        raise ChartLoadError(source.name, reason) from exc

    return LoadedChart(difficulty=difficulty, metadata=parsed.metadata, skipped_lines=parsed.skipped_lines)


def _load_chart_outcome(source: ChartSource) -> Union[LoadedChart, ChartFailure]:
    try:
        return load_chart(source)
    except ChartLoadError as exc:
        logger.error("Rejected chart %s: %s", source.name, exc)
        return ChartFailure(name=source.name, reason=str(exc))


def _log_metadata_conflicts(first: ChartMetadata, loaded: LoadedChart) -> None:
    for field_name in ("title", "artist", "creator", "source", "tags"):
        kept = getattr(first, field_name)
        other = getattr(loaded.metadata, field_name)
        if other and other != kept:
            logger.debug(
                "%s: ignoring %s %r, set already uses %r",
                loaded.difficulty.name,
                field_name,
                other,
                kept,
            )


def load_beatmap_set_with_report(
    sources: Iterable[ChartSource],
    *,
    max_workers: int = 1,
) -> Tuple[Beatmap, List[ChartFailure]]:
    source_list = list(sources)
    worker_count = max(1, int(max_workers))

    if worker_count > 1 and len(source_list) > 1:
        with ThreadPoolExecutor(max_workers=worker_count) as executor:
            outcomes = list(executor.map(_load_chart_outcome, source_list))
    else:
        outcomes = [_load_chart_outcome(source) for source in source_list]

    loaded = [outcome for outcome in outcomes if isinstance(outcome, LoadedChart)]
    failures = [outcome for outcome in outcomes if isinstance(outcome, ChartFailure)]

    if not loaded:
        raise BeatmapSetLoadError(failures)

    first_metadata = loaded[0].metadata
    for loaded_chart in loaded[1:]:
        _log_metadata_conflicts(first_metadata, loaded_chart)

    beatmap = Beatmap(
        id=int(first_metadata.beatmap_set_id),
        title=first_metadata.title,
        artist=first_metadata.artist,
        creator=first_metadata.creator,
        source=first_metadata.source,
        tags=tuple(first_metadata.tags),
        difficulties=tuple(loaded_chart.difficulty for loaded_chart in loaded),
    )

    logger.info(
        "Loaded beatmap set %r: %d difficulties, %d rejected",
        beatmap.title,
        len(beatmap.difficulties),
        len(failures),
    )
    return beatmap, failures


def load_beatmap_set(sources: Iterable[ChartSource], *, max_workers: int = 1) -> Beatmap:
    beatmap, _failures = load_beatmap_set_with_report(sources, max_workers=max_workers)
    return beatmap
