# -*- coding: utf-8 -*-
########################
# chart_validator.py
########################
# Purpose:
# - Required-field checks for a fully parsed chart.
#
# Design notes:
# - Pure function over the parser's in-progress chart state. Never raises.
# - Zero is the "unset" sentinel for HP/CS/OD/AR/SV.
# - osu_store turns a non-empty result into SchemaError.
#
########################
# Interfaces:
# Public functions:
# - missing_fields(chart) -> list[str]
#
# Inputs:
# - Any object exposing the osu_store.ChartBuilder attributes.
#
# Outputs:
# - Names of missing fields in a stable order (empty list when the chart is complete).
#
########################

from __future__ import annotations

from typing import Any, List

_REQUIRED_TEXT_FIELDS = [
    ("audio_filename", "AudioFilename"),
    ("background_filename", "Background"),
    ("title", "Title"),
    ("artist", "Artist"),
    ("creator", "Creator"),
    ("version", "Version"),
]

_REQUIRED_NONZERO_FIELDS = [
    ("hp", "HPDrainRate"),
    ("cs", "CircleSize"),
    ("od", "OverallDifficulty"),
    ("ar", "ApproachRate"),
    ("sv", "SliderMultiplier"),
]


def missing_fields(chart: Any) -> List[str]:
    missing: List[str] = []

    for attribute_name, field_name in _REQUIRED_TEXT_FIELDS:
        if not str(getattr(chart, attribute_name, "") or "").strip():
            missing.append(field_name)

    for attribute_name, field_name in _REQUIRED_NONZERO_FIELDS:
        if float(getattr(chart, attribute_name, 0.0) or 0.0) == 0.0:
            missing.append(field_name)

    if not getattr(chart, "timing_points", None):
        missing.append("TimingPoints")
    if not getattr(chart, "hit_objects", None):
        missing.append("HitObjects")

    return missing
