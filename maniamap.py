"""
maniamap.py

Command line entrypoint: load a beatmap set (directory or .osz) and print a JSON summary.

Integration
- Loads config (file + environment) and applies logging settings
- Enumerates chart files with library_index
- Loads the set with chart_engine and reports rejected charts
- --list-mods prints the game_mods catalogue instead of loading a set
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import chart_engine
import game_mods
import library_index
from beatmap_models import Beatmap, Difficulty, MediaEvent
from config import AppConfig, LoggingConfig, load_config

logger = logging.getLogger(__name__)


def configure_logging(logging_config: LoggingConfig) -> None:
    logging.basicConfig(level=getattr(logging, logging_config.level), format=logging_config.format)


def _media_summary(media: Optional[MediaEvent]) -> Optional[Dict[str, Any]]:
    if media is None:
        return None
    return {
        "filename": media.filename,
        "start_time": media.start_time,
        "offset": [media.offset_x, media.offset_y],
    }


def _mods_payload() -> Dict[str, Any]:
    return {
        "ok": True,
        "mods": [
            {"id": int(mod.mod_id), "name": mod.name, "abbreviation": mod.abbreviation, "description": mod.description}
            for mod in game_mods.all_mods()
        ],
    }


def _difficulty_summary(difficulty: Difficulty) -> Dict[str, Any]:
    bpms = [point.bpm for point in difficulty.resolved_timing_points]
    return {
        "name": difficulty.name,
        "version": difficulty.version,
        "format_version": difficulty.format_version,
        "mode": difficulty.mode.name,
        "columns": difficulty.column_count,
        "audio_filename": difficulty.audio_filename,
        "background_filename": difficulty.background_filename,
        "background": _media_summary(difficulty.background),
        "video": _media_summary(difficulty.video),
        "timing_points": len(difficulty.timing_points),
        "hit_objects": len(difficulty.hit_objects),
        "events": difficulty.playfield.event_count(),
        "breaks": len(difficulty.breaks),
        "bpm_min": round(min(bpms), 3) if bpms else None,
        "bpm_max": round(max(bpms), 3) if bpms else None,
        "duration_seconds": round(difficulty.duration, 3),
    }


def _difficulty_events(difficulty: Difficulty) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    for column in difficulty.playfield.columns:
        for event in column.events:
            events.append(
                {
                    "column": column.index,
                    "kind": event.kind.value,
                    "time": event.time,
                    "y": round(event.resolved_y, 3),
                }
            )
    events.sort(key=lambda item: (item["time"], item["column"]))
    return events


def beatmap_summary(
    beatmap: Beatmap,
    failures: List[chart_engine.ChartFailure],
    *,
    events_for: Optional[int] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "ok": True,
        "id": beatmap.id,
        "title": beatmap.title,
        "artist": beatmap.artist,
        "creator": beatmap.creator,
        "source": beatmap.source,
        "tags": list(beatmap.tags),
        "difficulties": [_difficulty_summary(difficulty) for difficulty in beatmap.difficulties],
        "rejected": [{"name": failure.name, "reason": failure.reason} for failure in failures],
    }
    if events_for is not None:
        if events_for < 0 or events_for >= len(beatmap.difficulties):
            raise IndexError(f"difficulty index {events_for} out of range 0..{len(beatmap.difficulties) - 1}")
        payload["events"] = _difficulty_events(beatmap.difficulties[events_for])
    return payload


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load an osu!mania beatmap set and print a JSON summary.")
    parser.add_argument("path", nargs="?", default="", help="Beatmap set directory or .osz archive")
    parser.add_argument("--config", default="", help="Path to a maniamap_config.json file")
    parser.add_argument("--workers", type=int, default=0, help="Worker threads (overrides config)")
    parser.add_argument("--log-level", default="", help="Logging level (overrides config)")
    parser.add_argument("--difficulty", type=int, default=None, help="Include the events of this difficulty index")
    parser.add_argument("--list-mods", action="store_true", help="Print the game mod catalogue and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    arg_parser = _build_arg_parser()
    args = arg_parser.parse_args(argv)

    if args.list_mods:
        print(json.dumps(_mods_payload(), ensure_ascii=False, indent=2))
        return 0
    if not args.path:
        arg_parser.error("path is required unless --list-mods is given")

    try:
        config, _config_path = load_config(Path(args.config) if args.config else None)
        if args.log_level:
            config = AppConfig(
                loader=config.loader,
                logging=LoggingConfig(level=args.log_level, format=config.logging.format),
            )
    except Exception as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    configure_logging(config.logging)

    max_workers = args.workers if args.workers > 0 else config.loader.max_workers

    try:
        sources = library_index.list_chart_sources(Path(args.path), chart_extension=config.loader.chart_extension)
        beatmap, failures = chart_engine.load_beatmap_set_with_report(sources, max_workers=max_workers)
        payload = beatmap_summary(beatmap, failures, events_for=args.difficulty)
    except (library_index.ChartSourceError, chart_engine.BeatmapSetLoadError, IndexError) as exception:
        logger.error("Failed to load %s: %s", args.path, exception)
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
