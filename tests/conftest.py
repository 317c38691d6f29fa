from __future__ import annotations

import pytest

from sus2timeline.diagnostics import DiagnosticCollector
from sus2timeline.process import parse_lines
from sus2timeline.timeline import (
    NoteDefinition, NotePosition, LongNoteChain, ScoreTimeline,
)

BASE_CFG = {"ticks_per_beat": 192, "window": {}, "diagnostics": {}, "midi": {}}


def nd(tick, code="1", lane=0, width=1, line=0):
    return NoteDefinition(source_line=line, type_code=code, position=NotePosition(tick, lane, width))


def make_timeline(short=None, long=None, bpm=None, bars=None, tpb=192):
    short = {k: tuple(v) for k, v in (short or {}).items()}
    long = {k: tuple(v) for k, v in (long or {}).items()}
    for k in ("1", "5"):
        short.setdefault(k, ())
    for k in ("2", "3", "4"):
        long.setdefault(k, ())
    bars = bars or {0: 4.0}
    return ScoreTimeline(
        ticks_per_beat=tpb,
        bpm_events=bpm or {0: 120.0},
        time_signatures={0: bars[0]},
        bar_signatures=bars,
        short_notes=short,
        long_notes=long,
    )


def chain(*defs, category="3", key="a"):
    return LongNoteChain(category=category, key=key, notes=tuple(defs))


@pytest.fixture
def cfg():
    return dict(BASE_CFG)


@pytest.fixture
def parse(cfg):
    def _parse(lines):
        sink = DiagnosticCollector()
        return parse_lines(lines, cfg, sink), sink
    return _parse
