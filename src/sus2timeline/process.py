from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .analyze import scan_lines
from .chains import Fragment, reconstruct_chains
from .config import get_ticks_per_beat, load_config
from .diagnostics import DiagnosticSink, SinkLike, as_sink
from .kinds import REQUIRED_LONG, REQUIRED_SHORT, decode_kind
from .timeline import (
    RawScore, ScoreTimeline, NoteData, NoteDefinition, NotePosition, LongNoteChain,
    DEFAULT_BPM,
)
from .util.split import convert_hex, split_data
from .util.time import BarIndexCalculator


def _build_bpm_events(raw: RawScore, calc: BarIndexCalculator, sink: DiagnosticSink) -> Dict[int, float]:
    events: Dict[int, float] = {}
    for rec in raw.bpm_assignments:
        for tick, code in split_data(calc, rec.bar_index, rec.data, sink, rec.line):
            if code not in raw.bpm_definitions:
                sink.warning(f"undefined BPM id '{code}' in bar {rec.bar_index:03d}, dropped", rec.line)
                continue
            bpm = raw.bpm_definitions[code][1]
            if tick in events:
                sink.warning(f"BPM at tick {tick} redefined ({events[tick]:g} -> {bpm:g})", rec.line)
            events[tick] = bpm
    if 0 not in events:
        sink.information(f"no BPM at tick 0, assuming {DEFAULT_BPM:g}")
        events[0] = DEFAULT_BPM
    return dict(sorted(events.items()))


def _note_definitions(rec: NoteData, calc: BarIndexCalculator, sink: DiagnosticSink) -> List[NoteDefinition]:
    out = []
    for tick, code in split_data(calc, rec.bar_index, rec.data, sink, rec.line):
        type_code, width = code[0], convert_hex(code[1])
        if width < 1:
            sink.warning(f"note '{code}' in bar {rec.bar_index:03d} has no width, dropped", rec.line)
            continue
        kind = decode_kind(rec.category, type_code, rec.is_long)
        if kind is None:
            sink.warning(f"unknown note type '{type_code}' for category {rec.category}", rec.line)
        out.append(NoteDefinition(
            source_line=rec.line,
            type_code=type_code,
            position=NotePosition(tick=tick, lane_index=rec.lane_index, width=width),
            kind=kind,
        ))
    return out


def build_timeline(raw: RawScore, cfg: dict, sink: SinkLike = None) -> ScoreTimeline:
    """Pass 2: Rohdaten zu einer unveränderlichen Timeline auflösen."""
    sink = as_sink(sink)
    tpb = raw.ticks_per_beat or get_ticks_per_beat(cfg)

    bar_sigs = {bar: beats for bar, (_line, beats) in raw.time_signatures.items()}
    calc = BarIndexCalculator(tpb, bar_sigs, sink)

    bpm_events = _build_bpm_events(raw, calc, sink)

    # Kurznoten: Kategorie -> nach Tick sortiert (stabil, Dateireihenfolge bei Gleichstand)
    short_notes: Dict[str, List[NoteDefinition]] = {}
    for rec in raw.short_notes:
        short_notes.setdefault(rec.category, []).extend(_note_definitions(rec, calc, sink))
    for notes in short_notes.values():
        notes.sort(key=lambda d: d.position.tick)

    # Langnoten: Kategorie -> Fragmente -> Ketten
    fragments: Dict[str, List[Fragment]] = {}
    for rec in raw.long_notes:
        fragments.setdefault(rec.category, []).extend(
            (rec.chain_id, rec.lane_index, d) for d in _note_definitions(rec, calc, sink)
        )
    long_notes: Dict[str, Tuple[LongNoteChain, ...]] = {
        cat: tuple(reconstruct_chains(cat, frs, sink)) for cat, frs in sorted(fragments.items())
    }

    for cat in REQUIRED_SHORT:
        short_notes.setdefault(cat, [])
    for cat in REQUIRED_LONG:
        long_notes.setdefault(cat, ())

    # Takte mit 0 Ticks lassen zwei Segmente auf denselben Tick fallen
    time_signatures: Dict[int, float] = {}
    for seg in calc.segments:
        if seg.head_tick in time_signatures:
            line = raw.time_signatures.get(seg.bar_index, (None, None))[0]
            sink.warning(
                f"time signature of bar {seg.bar_index:03d} starts at tick {seg.head_tick} "
                f"like the previous one, replacing it", line)
        time_signatures[seg.head_tick] = seg.beats_per_bar

    return ScoreTimeline(
        ticks_per_beat=tpb,
        bpm_events=bpm_events,
        time_signatures=time_signatures,
        bar_signatures=calc.signatures,
        short_notes={cat: tuple(v) for cat, v in sorted(short_notes.items())},
        long_notes=dict(sorted(long_notes.items())),
        title=raw.metadata.get("title"),
        artist=raw.metadata.get("artist"),
        designer=raw.metadata.get("designer"),
    )


def parse_lines(lines: Iterable[str], cfg: Optional[dict] = None, sink: SinkLike = None) -> ScoreTimeline:
    sink = as_sink(sink)
    if cfg is None:
        cfg = load_config()
    return build_timeline(scan_lines(lines, sink), cfg, sink)


def parse_text(text: str, cfg: Optional[dict] = None, sink: SinkLike = None) -> ScoreTimeline:
    return parse_lines(text.splitlines(), cfg, sink)


# Charts kommen meist als UTF-8 (mit BOM) oder Shift_JIS
DEFAULT_ENCODINGS = ("utf-8-sig", "cp932")


def read_chart(path: Union[str, Path], encoding: Optional[str] = None, sink: SinkLike = None) -> str:
    """
    Datei dekodieren: explizites Encoding oder der Reihe nach DEFAULT_ENCODINGS.
    Passt keins, wird mit Ersatzzeichen dekodiert und gewarnt.
    """
    sink = as_sink(sink)
    data = Path(path).read_bytes()
    candidates = (encoding,) if encoding else DEFAULT_ENCODINGS
    for i, enc in enumerate(candidates):
        try:
            text = data.decode(enc)
        except UnicodeDecodeError:
            continue
        if i > 0:
            sink.information(f"decoded {Path(path).name} as {enc}")
        return text
    sink.warning(f"{Path(path).name} is not valid {candidates[0]}, undecodable bytes replaced")
    return data.decode(candidates[0], errors="replace")


def parse_file(path: Union[str, Path], cfg: Optional[dict] = None, sink: SinkLike = None,
               encoding: Optional[str] = None) -> ScoreTimeline:
    sink = as_sink(sink)
    return parse_text(read_chart(path, encoding, sink), cfg, sink)
