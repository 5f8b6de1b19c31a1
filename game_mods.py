# -*- coding: utf-8 -*-
########################
# game_mods.py
########################
# Purpose:
# - Catalogue of osu! game modifiers (mods): display name, two-letter abbreviation and description.
#
# Design notes:
# - Static data only. Entries are ordered by ModId.
# - Lookups raise ValueError for unknown ids or abbreviations.
#
########################
# Interfaces:
# Public enums:
# - class ModId(enum.IntEnum): NONE | EASY | NO_FAIL | HALF_TIME | HARD_ROCK | SUDDEN_DEATH |
#                              DOUBLE_TIME | HIDDEN | FADE_IN | RANDOM | AUTO
#
# Public dataclasses:
# - GameMod(mod_id: ModId, name: str, abbreviation: str, description: str)
#
# Public functions:
# - mod_info(mod_id: int) -> GameMod
# - mod_by_abbreviation(abbreviation: str) -> GameMod
# - all_mods() -> tuple[GameMod, ...]
#
########################

from __future__ import annotations

from dataclasses import dataclass
import enum
from typing import Dict, Tuple


class ModId(enum.IntEnum):
    NONE = 0
    EASY = 1
    NO_FAIL = 2
    HALF_TIME = 3
    HARD_ROCK = 4
    SUDDEN_DEATH = 5
    DOUBLE_TIME = 6
    HIDDEN = 7
    FADE_IN = 8
    RANDOM = 9
    AUTO = 10


@dataclass(frozen=True)
class GameMod:
    mod_id: ModId
    name: str
    abbreviation: str
    description: str


_MODS: Tuple[GameMod, ...] = (
    GameMod(ModId.NONE, "NoMod", "NM", "Plays the chart as written."),
    GameMod(ModId.EASY, "Easy", "EZ", "Lower HP drain and wider timing windows."),
    GameMod(ModId.NO_FAIL, "No Fail", "NF", "The play cannot fail, whatever the HP."),
    GameMod(ModId.HALF_TIME, "Half Time", "HT", "Song and notes play at 0.75x speed."),
    GameMod(ModId.HARD_ROCK, "Hard Rock", "HR", "Higher HP drain and tighter timing windows."),
    GameMod(ModId.SUDDEN_DEATH, "Sudden Death", "SD", "The first miss fails the play."),
    GameMod(ModId.DOUBLE_TIME, "Double Time", "DT", "Song and notes play at 1.5x speed."),
    GameMod(ModId.HIDDEN, "Hidden", "HD", "Notes fade out before they reach the judgement line."),
    GameMod(ModId.FADE_IN, "Fade In", "FI", "Notes fade in as they approach the judgement line."),
    GameMod(ModId.RANDOM, "Random", "RD", "Columns are shuffled."),
    GameMod(ModId.AUTO, "Auto", "AT", "An automated perfect play."),
)

_MODS_BY_ABBREVIATION: Dict[str, GameMod] = {mod.abbreviation: mod for mod in _MODS}


def mod_info(mod_id: int) -> GameMod:
    try:
        return _MODS[ModId(int(mod_id))]
    except ValueError as exc:
        raise ValueError(f"unknown mod id: {mod_id!r}") from exc


def mod_by_abbreviation(abbreviation: str) -> GameMod:
    mod = _MODS_BY_ABBREVIATION.get(str(abbreviation).strip().upper())
    if mod is None:
        raise ValueError(f"unknown mod abbreviation: {abbreviation!r}")
    return mod


def all_mods() -> Tuple[GameMod, ...]:
    return _MODS


def _run_unit_tests() -> None:
    assert [mod.mod_id for mod in _MODS] == list(ModId)
    assert mod_info(0).abbreviation == "NM"
    assert mod_info(ModId.DOUBLE_TIME).name == "Double Time"
    assert mod_by_abbreviation("hd").mod_id == ModId.HIDDEN
    for bad_id in (-1, 11):
        try:
            mod_info(bad_id)
        except ValueError:
            pass
        else:
            raise AssertionError(f"mod id {bad_id} should be rejected")


if __name__ == "__main__":
    _run_unit_tests()
    print("game_mods.py: ok")
