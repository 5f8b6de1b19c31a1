# -*- coding: utf-8 -*-
########################
# library_index.py
########################
# Purpose:
# - Locate chart files for a beatmap set and read them into ChartSource values.
# - Supports a set directory or a .osz archive (zip).
#
# Design notes:
# - Enumeration and reading only. No parsing or validation happens here.
# - Candidate order is deterministic: lexicographic by chart file name.
# - Only top-level chart files of a directory are listed (archives: every non-directory entry).
#
########################
# Interfaces:
# Public exceptions:
# - class ChartSourceError(Exception)
#
# Public functions:
# - list_chart_sources(path: pathlib.Path, *, chart_extension: str = ".osu") -> list[ChartSource]
# - is_archive(path: pathlib.Path) -> bool
#
# Inputs:
# - path to a set directory or .osz archive.
#
# Outputs:
# - ChartSource(name, content) pairs consumed by chart_engine.load_beatmap_set.
#
########################

from __future__ import annotations

import logging
from pathlib import Path
from typing import List
import zipfile

from chart_engine import ChartSource

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".osz"


class ChartSourceError(Exception):
    """Raised when a set path does not exist or cannot be read."""


def is_archive(path: Path) -> bool:
    return Path(path).suffix.lower() == ARCHIVE_SUFFIX


def _has_chart_extension(file_name: str, chart_extension: str) -> bool:
    return file_name.lower().endswith(chart_extension.lower())


def _list_directory_sources(directory_path: Path, chart_extension: str) -> List[ChartSource]:
    if not directory_path.is_dir():
        raise ChartSourceError(f"Beatmap set directory does not exist: {directory_path}")

    chart_paths = sorted(
        [path for path in directory_path.iterdir() if path.is_file() and _has_chart_extension(path.name, chart_extension)],
        key=lambda item: item.name,
    )

    sources: List[ChartSource] = []
    for chart_path in chart_paths:
        try:
            content = chart_path.read_bytes()
        except OSError as exc:
            raise ChartSourceError(f"Failed to read chart file: {chart_path}") from exc
        logger.info("Loaded %r (%d bytes)", chart_path.name, len(content))
        sources.append(ChartSource(name=chart_path.name, content=content))
    return sources


def _list_archive_sources(archive_path: Path, chart_extension: str) -> List[ChartSource]:
    if not archive_path.is_file():
        raise ChartSourceError(f"Beatmap archive does not exist: {archive_path}")

    sources: List[ChartSource] = []
    try:
        with zipfile.ZipFile(str(archive_path), "r") as zip_file:
            entries = sorted(
                [
                    entry
                    for entry in zip_file.infolist()
                    if not entry.is_dir() and _has_chart_extension(entry.filename, chart_extension)
                ],
                key=lambda item: item.filename,
            )
            for entry in entries:
                content = zip_file.read(entry)
                logger.info("Loaded %r (%d bytes)", entry.filename, len(content))
                sources.append(ChartSource(name=entry.filename, content=content))
    except zipfile.BadZipFile as exc:
        raise ChartSourceError(f"Failed to open {archive_path} as a zip file") from exc
    except OSError as exc:
        raise ChartSourceError(f"Failed to read beatmap archive: {archive_path}") from exc

    return sources


def list_chart_sources(path: Path, *, chart_extension: str = ".osu") -> List[ChartSource]:
    set_path = Path(path)
    if is_archive(set_path):
        sources = _list_archive_sources(set_path, chart_extension)
    else:
        sources = _list_directory_sources(set_path, chart_extension)

    if not sources:
        logger.warning("No %s files found in %s", chart_extension, set_path)
    return sources
