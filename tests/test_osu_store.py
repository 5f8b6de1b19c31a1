"""Tests for the .osu section parser."""

import logging

import pytest

import osu_store
from beatmap_models import BreakEvent, GameMode, MediaEvent
from osu_store import DependencyError, FormatError, SchemaError, column_for_x, inherited_scroll_multiplier
from test_chart import build_test_chart_text


def test_minimal_chart_parses():
    parsed = osu_store.parse_chart("easy.osu", build_test_chart_text())
    chart = parsed.chart

    assert chart.format_version == 14
    assert chart.audio_filename == "audio.mp3"
    assert chart.background_filename == "bg.jpg"
    assert chart.preview_time is None
    assert chart.mode == GameMode.MANIA
    assert chart.cs == 4.0
    assert chart.sv == 1.4
    assert parsed.metadata.title == "Test Song"
    assert parsed.metadata.tags == ("test", "chart")
    assert parsed.metadata.beatmap_set_id == 100
    assert parsed.skipped_lines == 0

    assert len(chart.timing_points) == 1
    point = chart.timing_points[0]
    assert point.is_uninherited
    assert point.beat_length == 0.5
    assert point.meter == 4
    assert point.volume == 1.0
    assert point.sv == 1.0

    assert len(chart.hit_objects) == 1
    assert chart.hit_objects[0].start_time == 1.0
    assert chart.hit_objects[0].column == 0
    assert not chart.hit_objects[0].is_hold


def test_bom_and_crlf_line_endings():
    text = "\ufeff" + build_test_chart_text(line_ending="\r\n")
    parsed = osu_store.parse_chart("crlf.osu", text)
    assert parsed.chart.audio_filename == "audio.mp3"
    assert len(parsed.chart.hit_objects) == 1


def test_decode_chart_bytes_strips_bom_and_rejects_invalid_utf8():
    assert osu_store.decode_chart_bytes("a.osu", b"\xef\xbb\xbfosu file format v14") == "osu file format v14"
    with pytest.raises(FormatError):
        osu_store.decode_chart_bytes("a.osu", b"\xff\xfe\x00")


def test_missing_format_line_is_format_error():
    text = build_test_chart_text().replace("osu file format v14", "")
    with pytest.raises(FormatError):
        osu_store.parse_chart("broken.osu", text)


def test_garbled_format_line_is_format_error():
    text = build_test_chart_text().replace("osu file format v14", "osu file format vX")
    with pytest.raises(FormatError):
        osu_store.parse_chart("broken.osu", text)


def test_empty_chart_is_format_error():
    with pytest.raises(FormatError):
        osu_store.parse_chart("empty.osu", "\r\n\r\n")


def test_missing_audio_filename_is_schema_error():
    with pytest.raises(SchemaError) as info:
        osu_store.parse_chart("no_audio.osu", build_test_chart_text(audio_filename=None))
    assert info.value.missing_fields == ["AudioFilename"]
    assert "no_audio.osu" in str(info.value)


def test_missing_background_is_schema_error():
    with pytest.raises(SchemaError) as info:
        osu_store.parse_chart("no_bg.osu", build_test_chart_text(background_filename=None))
    assert info.value.missing_fields == ["Background"]


def test_no_hit_objects_is_schema_error():
    with pytest.raises(SchemaError) as info:
        osu_store.parse_chart("empty_notes.osu", build_test_chart_text(hit_object_lines=[]))
    assert info.value.missing_fields == ["HitObjects"]


def test_first_timing_point_inherited_is_format_error():
    text = build_test_chart_text(timing_lines=["0,-100,4,1,0,100,0,0", "0,500,4,1,0,100,1,0"])
    with pytest.raises(FormatError, match="uninherited"):
        osu_store.parse_chart("inherited.osu", text)


def test_hit_objects_with_unknown_circle_size_is_dependency_error():
    with pytest.raises(DependencyError):
        osu_store.parse_chart("no_cs.osu", build_test_chart_text(circle_size="0"))


def test_malformed_hit_object_line_is_skipped():
    text = build_test_chart_text(
        hit_object_lines=[
            "64,192,500",
            "64,192,1000,1,0,0:0:0:0:",
            "448,192,1500,128,0,2000:0:0:0:0:",
        ]
    )
    parsed = osu_store.parse_chart("skip.osu", text)
    assert parsed.skipped_lines == 1
    assert len(parsed.chart.hit_objects) == 2

    hold = parsed.chart.hit_objects[1]
    assert hold.is_hold
    assert hold.start_time == 1.5
    assert hold.end_time == 2.0
    assert hold.column == 3


def test_hold_without_end_field_or_ending_early_is_skipped():
    text = build_test_chart_text(
        hit_object_lines=[
            "64,192,1000,128,0",
            "64,192,1000,128,0,900:0:0:0:0:",
            "64,192,1000,1,0,0:0:0:0:",
        ]
    )
    parsed = osu_store.parse_chart("holds.osu", text)
    assert parsed.skipped_lines == 2
    assert len(parsed.chart.hit_objects) == 1


def test_other_hit_object_types_are_ignored():
    text = build_test_chart_text(
        hit_object_lines=[
            "256,192,500,2,0,B|300:192,1,100",
            "64,192,1000,5,0,0:0:0:0:",
        ]
    )
    parsed = osu_store.parse_chart("types.osu", text)
    assert parsed.skipped_lines == 0
    assert [hit_object.start_time for hit_object in parsed.chart.hit_objects] == [1.0]


def test_wrong_timing_point_field_count_is_skipped():
    text = build_test_chart_text(timing_lines=["0,500,4,1,0,100,1,0", "1000,-50,4,1,0,100,0"])
    parsed = osu_store.parse_chart("timing.osu", text)
    assert parsed.skipped_lines == 1
    assert len(parsed.chart.timing_points) == 1


def test_inherited_timing_point_fields():
    text = build_test_chart_text(timing_lines=["0,500,4,1,0,100,1,0", "1000,-50,4,2,1,40,0,1"])
    parsed = osu_store.parse_chart("timing.osu", text)
    inherited = parsed.chart.timing_points[1]
    assert not inherited.is_uninherited
    assert inherited.beat_length == 0.0
    assert inherited.raw_length == -50.0
    assert inherited.sv == 2.0
    assert inherited.volume == 0.4
    assert inherited.kiai
    assert inherited.sample_set == 2


def test_out_of_order_timing_points_are_sorted_stably():
    text = build_test_chart_text(
        timing_lines=[
            "0,500,4,1,0,100,1,0",
            "2000,-50,4,1,0,100,0,0",
            "1000,-100,4,1,0,100,0,0",
            "1000,-200,4,1,0,100,0,0",
        ]
    )
    points = osu_store.parse_chart("order.osu", text).chart.timing_points
    assert [point.start_time for point in points] == [0.0, 1.0, 1.0, 2.0]
    assert [point.raw_length for point in points] == [500.0, -100.0, -200.0, -50.0]


def test_break_events():
    parsed = osu_store.parse_chart("breaks.osu", build_test_chart_text(event_lines=["2,1000,2500", "Break,3000,4000"]))
    assert parsed.chart.breaks == [BreakEvent(start_time=1.0, end_time=2.5), BreakEvent(start_time=3.0, end_time=4.0)]


def test_unknown_sections_and_keys_are_ignored():
    text = build_test_chart_text(event_lines=["[Colours]", "Combo1 : 255,0,0", "[Editor]", "DistanceSpacing: 1.2"])
    parsed = osu_store.parse_chart("extra.osu", text)
    assert parsed.skipped_lines == 0
    assert len(parsed.chart.hit_objects) == 1


def test_key_lookup_is_whitespace_sensitive():
    text = build_test_chart_text().replace("Title:Test Song", "Title :Other")
    with pytest.raises(SchemaError) as info:
        osu_store.parse_chart("spaced.osu", text)
    assert info.value.missing_fields == ["Title"]


def test_invalid_numeric_value_is_recoverable():
    text = build_test_chart_text().replace("SliderTickRate:1", "SliderTickRate:fast")
    parsed = osu_store.parse_chart("tick.osu", text)
    assert parsed.skipped_lines == 1
    assert parsed.chart.slider_tick_rate == 0.0


def test_recoverable_lines_are_logged(caplog):
    text = build_test_chart_text(hit_object_lines=["64,192", "64,192,1000,1,0,0:0:0:0:"])
    with caplog.at_level(logging.WARNING, logger="osu_store"):
        osu_store.parse_chart("logged.osu", text)
    assert any("logged.osu" in record.getMessage() for record in caplog.records)


def test_column_assignment():
    assert column_for_x(0, 4) == 0
    assert column_for_x(511, 4) == 3
    assert column_for_x(512, 4) == 3
    assert column_for_x(-10, 4) == 0
    assert column_for_x(256, 7) == 3


def test_inherited_scroll_multiplier():
    assert inherited_scroll_multiplier(-50.0) == 2.0
    assert inherited_scroll_multiplier(-100.0) == 1.0
    assert inherited_scroll_multiplier(-200.0) == 0.5
    assert inherited_scroll_multiplier(-1.0) == 10.0
    assert inherited_scroll_multiplier(-5000.0) == 0.1
    assert inherited_scroll_multiplier(0.0) == 1.0


@pytest.mark.parametrize(
    "bad_line",
    [
        "nan,-50,4,1,0,100,0,0",
        "inf,-50,4,1,0,100,0,0",
        "1000,nan,4,1,0,100,0,0",
        "1000,-inf,4,1,0,100,0,0",
        "1000,inf,4,1,0,100,1,0",
    ],
)
def test_non_finite_timing_point_is_skipped(bad_line):
    text = build_test_chart_text(timing_lines=["0,500,4,1,0,100,1,0", bad_line])
    parsed = osu_store.parse_chart("finite.osu", text)
    assert parsed.skipped_lines == 1
    assert len(parsed.chart.timing_points) == 1


def test_non_finite_first_timing_point_leaves_chart_without_timing():
    with pytest.raises(SchemaError) as info:
        osu_store.parse_chart("finite.osu", build_test_chart_text(timing_lines=["0,nan,4,1,0,100,1,0"]))
    assert info.value.missing_fields == ["TimingPoints"]


def test_non_finite_header_value_is_skipped():
    text = build_test_chart_text().replace("ApproachRate:5", "ApproachRate:inf")
    with pytest.raises(SchemaError) as info:
        osu_store.parse_chart("header.osu", text)
    assert info.value.missing_fields == ["ApproachRate"]


def test_column_count_above_maximum_is_dependency_error():
    assert osu_store.MAX_COLUMN_COUNT == 18
    osu_store.parse_chart("keys18.osu", build_test_chart_text(circle_size="18"))
    with pytest.raises(DependencyError, match="18 column maximum"):
        osu_store.parse_chart("huge.osu", build_test_chart_text(circle_size="100000000"))


def test_background_offsets_and_video_event():
    text = build_test_chart_text(
        background_filename=None,
        event_lines=['0,0,"cover.png",32,-16', '1,1500,"intro.avi"'],
    )
    chart = osu_store.parse_chart("media.osu", text).chart
    assert chart.background_filename == "cover.png"
    assert chart.background == MediaEvent(filename="cover.png", start_time=0.0, offset_x=32, offset_y=-16)
    assert chart.video == MediaEvent(filename="intro.avi", start_time=1.5, offset_x=0, offset_y=0)


def test_malformed_video_event_is_skipped():
    text = build_test_chart_text(event_lines=['Video,soon,"intro.avi"', "Video,0"])
    parsed = osu_store.parse_chart("video.osu", text)
    assert parsed.skipped_lines == 2
    assert parsed.chart.video is None


def test_timing_point_effect_flags():
    text = build_test_chart_text(timing_lines=["0,500,4,1,0,100,1,9", "1000,500,4,1,0,100,1,0"])
    first, second = osu_store.parse_chart("effects.osu", text).chart.timing_points
    assert first.kiai
    assert first.omit_first_barline
    assert not second.kiai
    assert not second.omit_first_barline
