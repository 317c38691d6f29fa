"""Tests for timeline assembly (pass 2) and the parse entry points."""

from __future__ import annotations

import dataclasses

import pytest

from sus2timeline.diagnostics import DiagnosticCollector, StrictSink, SusParseException
from sus2timeline.kinds import AirKind, LongNoteKind, TapKind
from sus2timeline.process import parse_file, parse_lines, parse_text, read_chart
from sus2timeline.timeline import NotePosition


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

class TestDefaults:
    def test_default_synthesis(self, parse):
        tl, sink = parse(["#00010: 11"])
        assert tl.time_signatures == {0: 4.0}
        assert tl.bpm_events == {0: 120.0}
        assert len(sink.informations) == 2
        assert sink.warnings == []

    def test_empty_input_is_structurally_valid(self, parse):
        tl, _ = parse([])
        assert set(tl.short_notes) >= {"1", "5"}
        assert set(tl.long_notes) >= {"2", "3", "4"}
        assert all(len(v) == 0 for v in tl.short_notes.values())
        assert all(len(v) == 0 for v in tl.long_notes.values())
        assert tl.last_tick() == 0

    def test_ticks_per_beat_falls_back_to_config(self, cfg):
        cfg["ticks_per_beat"] = 480
        tl = parse_lines(["#00010: 1111"], cfg, DiagnosticCollector())
        assert tl.ticks_per_beat == 480
        assert [n.position.tick for n in tl.short_notes["1"]] == [0, 960]


# ---------------------------------------------------------------------------
# Scenario
# ---------------------------------------------------------------------------

class TestScenario:
    def test_minimal_chart(self, parse):
        tl, sink = parse([
            '#REQUEST "ticks_per_beat 192"',
            "#BPM01: 150",
            "#00008: 01",
            "000 02: 4",
            "#00115: 1f",
        ])
        assert tl.ticks_per_beat == 192
        assert tl.bpm_events == {0: 150.0}
        assert tl.time_signatures == {0: 4.0}
        (tap,) = tl.short_notes["1"]
        assert tap.position == NotePosition(tick=768, lane_index=5, width=15)
        assert tap.kind is TapKind.TAP
        assert [d for d in sink if d.severity > 0] == []


# ---------------------------------------------------------------------------
# BPM
# ---------------------------------------------------------------------------

class TestBpm:
    def test_mid_bar_change(self, parse):
        tl, _ = parse(["#BPM01: 120", "#BPM02: 240", "#00008: 0102"])
        assert tl.bpm_events == {0: 120.0, 384: 240.0}

    def test_undefined_id_is_dropped(self, parse):
        tl, sink = parse(["#BPM01: 150", "#00008: 02"])
        assert tl.bpm_events == {0: 120.0}
        assert len(sink.warnings) == 1
        assert "undefined BPM id" in sink.warnings[0].message
        assert len(sink.informations) >= 1

    def test_same_tick_later_wins(self, parse):
        tl, sink = parse(["#BPM01: 150", "#BPM02: 180", "#00008: 01", "#00008: 02"])
        assert tl.bpm_events == {0: 180.0}
        assert len(sink.warnings) == 1

    def test_same_value_redefinition_still_warns(self, parse):
        tl, sink = parse(["#BPM01: 150", "#00008: 01", "#00008: 01"])
        assert tl.bpm_events == {0: 150.0}
        assert ["redefined" in d.message for d in sink.warnings] == [True]

    def test_seconds(self, parse):
        tl, _ = parse(["#BPM01: 60", "#00008: 01"])
        assert tl.seconds_at(192) == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Time signatures
# ---------------------------------------------------------------------------

class TestTimeSignatures:
    def test_bar_keys_become_ticks(self, parse):
        tl, _ = parse(["#00002: 4", "#00202: 3", "#00310: 11"])
        assert tl.time_signatures == {0: 4.0, 1536: 3.0}
        assert tl.bar_signatures == {0: 4.0, 2: 3.0}
        assert tl.short_notes["1"][0].position.tick == 2112

    def test_fractional_bar(self, parse):
        tl, _ = parse(["#00002: 2.5", "#00110: 11"])
        assert tl.short_notes["1"][0].position.tick == 480

    def test_zero_length_bar_collides(self, parse):
        # 0.001 Beats -> Takt 0 hat 0 Ticks, Takt 1 beginnt ebenfalls bei 0
        tl, sink = parse(["#00002: 0.001", "#00102: 4"])
        assert tl.time_signatures == {0: 4.0}
        assert len(sink.warnings) == 1
        assert "starts at tick 0" in sink.warnings[0].message
        assert sink.warnings[0].source_line == 1


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

class TestNotes:
    def test_tap_kinds(self, parse):
        tl, _ = parse(["#00010: 11213141"])
        assert [n.kind for n in tl.short_notes["1"]] == [TapKind.TAP, TapKind.EX_TAP, TapKind.FLICK, TapKind.DAMAGE]

    def test_air_kinds(self, parse):
        tl, _ = parse(["#00050: 11213161"])
        kinds = [n.kind for n in tl.short_notes["5"]]
        assert kinds == [AirKind.UP, AirKind.DOWN, AirKind.UP_LEFT, AirKind.DOWN_RIGHT]
        assert kinds[3].vertical == "down" and kinds[3].horizontal == "right"

    def test_unknown_type_is_kept_with_warning(self, parse):
        tl, sink = parse(["#00010: 91"])
        (n,) = tl.short_notes["1"]
        assert n.kind is None
        assert len(sink.warnings) == 1

    def test_zero_width_is_dropped(self, parse):
        tl, sink = parse(["#00010: 10"])
        assert tl.short_notes["1"] == ()
        assert len(sink.warnings) == 1

    def test_width_sixteen(self, parse):
        tl, _ = parse(["#00010: 1g"])
        assert tl.short_notes["1"][0].position.width == 16

    def test_short_notes_sorted_across_lines(self, parse):
        tl, _ = parse(["#00110: 11", "#00010: 0011"])
        assert [n.position.tick for n in tl.short_notes["1"]] == [384, 768]

    def test_source_line_is_kept(self, parse):
        tl, _ = parse(["", "#00010: 11"])
        assert tl.short_notes["1"][0].source_line == 1

    def test_hold(self, parse):
        tl, sink = parse(["#00020a: 11002100"])
        (hold,) = tl.long_notes["2"]
        assert [n.position.tick for n in hold] == [0, 384]
        assert hold.begin.kind is LongNoteKind.BEGIN
        assert hold.end.kind is LongNoteKind.END
        assert sink.warnings == []

    def test_slide_across_bars(self, parse):
        tl, _ = parse(["#00030a: 13", "#00130a: 330023"])
        (slide,) = tl.long_notes["3"]
        assert [n.position.tick for n in slide] == [0, 768, 1280]
        assert [n.kind for n in slide] == [LongNoteKind.BEGIN, LongNoteKind.STEP, LongNoteKind.END]
        assert slide.begin.position.width == 3

    def test_unterminated_hold_warns(self, parse):
        tl, sink = parse(["#00020a: 11"])
        assert len(tl.long_notes["2"][0]) == 1
        assert len(sink.warnings) == 1

    def test_long_end_and_air_anchor_positions(self, parse):
        tl, _ = parse(["#00020a: 11002100", "#00010: 0000001a"])
        ends = tl.long_end_positions()
        assert ends == frozenset({NotePosition(384, 0, 1)})
        anchors = tl.air_anchor_positions()
        assert NotePosition(576, 0, 10) in anchors
        assert NotePosition(384, 0, 1) in anchors

    def test_last_tick(self, parse):
        tl, _ = parse(["#00020a: 11002100", "#00010: 11"])
        assert tl.last_tick() == 384
        assert tl.note_count() == 2


# ---------------------------------------------------------------------------
# Metadata, immutability, entry points
# ---------------------------------------------------------------------------

class TestTimeline:
    def test_metadata(self, parse):
        tl, _ = parse(['#TITLE "Song"', "#ARTIST Someone", '#DESIGNER "me"'])
        assert (tl.title, tl.artist, tl.designer) == ("Song", "Someone", "me")

    def test_is_immutable(self, parse):
        tl, _ = parse(["#00010: 11"])
        with pytest.raises(TypeError):
            tl.bpm_events[100] = 200.0
        with pytest.raises(dataclasses.FrozenInstanceError):
            tl.ticks_per_beat = 480

    def test_parse_text(self, cfg):
        tl = parse_text("#00010: 11\n#00110: 11\n", cfg, DiagnosticCollector())
        assert len(tl.short_notes["1"]) == 2

    def test_parse_file_with_bom(self, cfg, tmp_path):
        path = tmp_path / "chart.sus"
        path.write_text('#TITLE "x"\n#00010: 11\n', encoding="utf-8-sig")
        tl = parse_file(path, cfg, DiagnosticCollector())
        assert tl.title == "x"

    def test_callable_sink(self, cfg):
        seen = []
        parse_lines(["#00010: 11"], cfg, seen.append)
        assert len(seen) == 2

    def test_strict_sink_aborts(self, cfg):
        with pytest.raises(SusParseException) as exc:
            parse_lines(['#WAVE "a.ogg"'], cfg, StrictSink())
        assert "WAVE" in str(exc.value)


# ---------------------------------------------------------------------------
# Encodings
# ---------------------------------------------------------------------------

class TestEncodings:
    CHART = '#TITLE "曲名"\n#00010: 11\n'

    def test_shift_jis_falls_back_to_cp932(self, cfg, tmp_path):
        path = tmp_path / "sjis.sus"
        path.write_bytes(self.CHART.encode("cp932"))
        sink = DiagnosticCollector()
        tl = parse_file(path, cfg, sink)
        assert tl.title == "曲名"
        assert any("cp932" in d.message for d in sink.informations)
        assert sink.warnings == []

    def test_explicit_encoding_replaces_bad_bytes(self, cfg, tmp_path):
        path = tmp_path / "sjis.sus"
        path.write_bytes(self.CHART.encode("cp932"))
        sink = DiagnosticCollector()
        tl = parse_file(path, cfg, sink, encoding="ascii")
        assert "\ufffd" in tl.title
        assert len(tl.short_notes["1"]) == 1
        assert "undecodable" in sink.warnings[0].message

    def test_read_chart_prefers_utf8(self, tmp_path):
        path = tmp_path / "utf8.sus"
        path.write_text(self.CHART, encoding="utf-8")
        sink = DiagnosticCollector()
        assert read_chart(path, sink=sink) == self.CHART
        assert len(sink) == 0
