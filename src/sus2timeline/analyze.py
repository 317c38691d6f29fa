# src/sus2timeline/analyze.py
from __future__ import annotations
import re
from functools import reduce
from typing import Iterable, Optional, Tuple, Union

from .diagnostics import DiagnosticSink
from .timeline import (
    RawScore, MetaCommand, BpmDefinition, BpmAssignment, NoteData, TimeSignatureRecord,
)
from .util.split import convert_hex

Record = Union[MetaCommand, BpmDefinition, BpmAssignment, NoteData, TimeSignatureRecord]

# Reihenfolge = Priorität, der erste Treffer gewinnt
COMMAND_PATTERN = re.compile(r'^\s*#(?P<name>[A-Z]+)\s+"?(?P<value>[^"]*)"?', re.IGNORECASE)
BPM_DEFINITION_PATTERN = re.compile(r"^\s*#BPM(?P<key>[0-9a-z]{2}):\s*(?P<value>[0-9.]+)", re.IGNORECASE)
BPM_COMMAND_PATTERN = re.compile(r"^\s*#(?P<bar>\d{3})08:\s*(?P<data>[0-9a-z\s]+)", re.IGNORECASE)
NOTE_PATTERN = re.compile(
    r"^\s*#(?P<bar>\d{3})(?P<type>[1-5])(?P<lane>[0-9a-z])(?P<chain>[0-9a-z])?:\s*(?P<data>[0-9a-z\s]+)",
    re.IGNORECASE,
)
TIME_SIGNATURE_PATTERN = re.compile(r"^\s*#?(?P<bar>\d{3})\s?02:\s*(?P<value>[0-9.]+)")
TICKS_PER_BEAT_PATTERN = re.compile(r"ticks_per_beat\s+(?P<tpb>\d+)", re.IGNORECASE)

METADATA_FIELDS = {"TITLE": "title", "ARTIST": "artist", "DESIGNER": "designer"}


def recognize_line(line: str, index: int) -> Optional[Record]:
    """Klassifiziert eine Zeile; None für alles Unbekannte (Kommentare etc.)."""
    m = COMMAND_PATTERN.match(line)
    if m:
        return MetaCommand(index, m.group("name").upper(), m.group("value").strip())

    m = BPM_DEFINITION_PATTERN.match(line)
    if m:
        return BpmDefinition(index, m.group("key").lower(), m.group("value"))

    m = BPM_COMMAND_PATTERN.match(line)
    if m:
        return BpmAssignment(index, int(m.group("bar")), m.group("data"))

    m = NOTE_PATTERN.match(line)
    if m:
        chain = m.group("chain")
        return NoteData(
            line=index,
            bar_index=int(m.group("bar")),
            category=m.group("type"),
            lane_index=convert_hex(m.group("lane")),
            chain_id=chain.lower() if chain else None,
            data=m.group("data"),
        )

    m = TIME_SIGNATURE_PATTERN.match(line)
    if m:
        return TimeSignatureRecord(index, int(m.group("bar")), m.group("value"))

    return None


def _parse_float(text: str, what: str, sink: DiagnosticSink, line: int) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        sink.warning(f"invalid {what} '{text}', ignored", line)
        return None


def _apply_command(acc: RawScore, rec: MetaCommand, sink: DiagnosticSink):
    if rec.name in METADATA_FIELDS:
        acc.metadata[METADATA_FIELDS[rec.name]] = rec.value
    elif rec.name == "REQUEST":
        m = TICKS_PER_BEAT_PATTERN.search(rec.value)
        if m:
            tpb = int(m.group("tpb"))
            if tpb > 0:
                acc.ticks_per_beat = tpb
            else:
                sink.warning(f"invalid ticks_per_beat {tpb}, ignored", rec.line)
    else:
        sink.warning(f"unhandled command #{rec.name}", rec.line)


def fold_record(acc: RawScore, rec: Record, sink: DiagnosticSink) -> RawScore:
    """Ein Schritt des Folds: Record in den Akkumulator einsortieren."""
    if isinstance(rec, MetaCommand):
        _apply_command(acc, rec, sink)

    elif isinstance(rec, BpmDefinition):
        bpm = _parse_float(rec.value, "BPM", sink, rec.line)
        if bpm is not None:
            if rec.key in acc.bpm_definitions:
                sink.warning(f"BPM definition {rec.key} redefined", rec.line)
            acc.bpm_definitions[rec.key] = (rec.line, bpm)

    elif isinstance(rec, BpmAssignment):
        acc.bpm_assignments.append(rec)

    elif isinstance(rec, NoteData):
        (acc.long_notes if rec.is_long else acc.short_notes).append(rec)

    elif isinstance(rec, TimeSignatureRecord):
        beats = _parse_float(rec.value, "beats per bar", sink, rec.line)
        if beats is not None and beats <= 0:
            sink.warning(f"non-positive beats per bar {rec.value} in bar {rec.bar_index:03d}, ignored", rec.line)
            beats = None
        if beats is not None:
            if rec.bar_index in acc.time_signatures:
                sink.warning(f"time signature of bar {rec.bar_index:03d} redefined", rec.line)
            acc.time_signatures[rec.bar_index] = (rec.line, beats)

    return acc


def scan_lines(lines: Iterable[str], sink: DiagnosticSink) -> RawScore:
    """
    Pass 1: alle Zeilen einsammeln. Ticks werden hier bewusst noch nicht
    berechnet, da die Taktarten erst nach der ganzen Datei bekannt sind.
    """
    def step(acc: RawScore, item: Tuple[int, str]) -> RawScore:
        index, line = item
        rec = recognize_line(line.rstrip("\r\n"), index)
        return acc if rec is None else fold_record(acc, rec, sink)

    return reduce(step, enumerate(lines), RawScore())
