from __future__ import annotations
import mido
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .kinds import NoteCategory
from .timeline import ScoreTimeline

# ---------- interne Helfer ----------

# Obergrenze des set_tempo-Felds (24 Bit, Mikrosekunden pro Viertel)
MAX_TEMPO = 0xFFFFFF

def _bpm_to_micro(bpm: float) -> int:
    """BPM 0 ist erlaubt: wird auf das langsamste darstellbare Tempo geklemmt."""
    return min(MAX_TEMPO, int(round(60_000_000 / max(1e-6, float(bpm)))))

def beats_to_time_signature(beats: float) -> Tuple[int, int]:
    """
    Beats pro Takt -> (Zähler, Nenner) mit Nenner als Zweierpotenz,
    z.B. 4.0 -> (4, 4), 3.5 -> (7, 8), 0.75 -> (3, 16).
    """
    factor = 1
    for exp in range(2, 10):
        value = factor * beats
        if value % 1 == 0:
            return int(value), 2 ** exp
        factor *= 2
    raise ValueError(f"Invalid time signature: {beats} beats per bar")

def _emit_conductor(track: mido.MidiTrack, tempos: Mapping[int, float], timesigs: Mapping[int, float]):
    """Schreibt Tempo- und Takt-Metaevents in einen Track (sortiert & delta-times)."""
    events = []
    for tick, bpm in tempos.items():
        events.append((tick, 1, ("tempo", bpm)))
    for tick, beats in timesigs.items():
        events.append((tick, 0, ("timesig", beats_to_time_signature(beats))))
    # Reihenfolge: TimeSig vor Tempo bei gleichem Tick
    events.sort(key=lambda x: (x[0], x[1]))
    last = 0
    for tick, _, (kind, value) in events:
        delta = tick - last
        last = tick
        if kind == "tempo":
            track.append(mido.MetaMessage("set_tempo", tempo=_bpm_to_micro(value), time=delta))
        else:
            num, den = value
            track.append(mido.MetaMessage("time_signature", numerator=num, denominator=den, time=delta))

def _emit_track_events(mt: mido.MidiTrack, spans: Iterable[Tuple[int, int, int]], channel: int, velocity: int):
    """spans: (start_tick, end_tick, note). Off zuerst bei gleichem Tick."""
    evs = []
    for start, end, note in spans:
        evs.append((start, 1, "note_on", note))
        evs.append((end, 0, "note_off", note))
    evs.sort(key=lambda x: (x[0], x[1], x[3]))

    last = 0
    for tick, _, kind, note in evs:
        delta = tick - last
        last = tick
        vel = velocity if kind == "note_on" else 0
        mt.append(mido.Message(kind, note=note, velocity=vel, channel=channel, time=delta))

def _pitch(lane: int, base: int) -> int:
    return max(0, min(127, base + lane))

def _category_spans(timeline: ScoreTimeline, cfg: dict) -> Dict[str, List[Tuple[int, int, int]]]:
    mcfg = cfg.get("midi") or {}
    base = int(mcfg.get("lane_base_note", 48))
    divisor = max(1, int(mcfg.get("note_length_divisor", 8)))
    short_len = max(1, timeline.ticks_per_beat // divisor)

    spans: Dict[str, List[Tuple[int, int, int]]] = {}
    for cat, notes in timeline.short_notes.items():
        spans.setdefault(cat, []).extend(
            (n.position.tick, n.position.tick + short_len, _pitch(n.position.lane_index, base)) for n in notes
        )
    for cat, chains in timeline.long_notes.items():
        spans.setdefault(cat, []).extend(
            (c.start_tick, max(c.end_tick, c.start_tick + short_len), _pitch(c.begin.position.lane_index, base))
            for c in chains
        )
    return spans

def _conductor_track(timeline: ScoreTimeline) -> mido.MidiTrack:
    t_con = mido.MidiTrack()
    t_con.append(mido.MetaMessage("track_name", name="Conductor", time=0))
    _emit_conductor(t_con, timeline.bpm_events, timeline.time_signatures)
    return t_con

# ---------- öffentliche Writer-APIs ----------

def build_midi(timeline: ScoreTimeline, cfg: Optional[dict] = None) -> mido.MidiFile:
    """Conductor-Track (Tempo/TS) + ein Track pro nicht-leerer Notenkategorie."""
    cfg = cfg or {}
    mcfg = cfg.get("midi") or {}
    channels = {str(k): int(v) for k, v in (mcfg.get("channels") or {}).items()}
    names = {str(k): str(v) for k, v in (mcfg.get("track_names") or {}).items()}
    velocity = int(mcfg.get("velocity", 100))

    mid = mido.MidiFile(ticks_per_beat=timeline.ticks_per_beat)
    mid.tracks.append(_conductor_track(timeline))

    for cat, spans in sorted(_category_spans(timeline, cfg).items()):
        if not spans:
            continue
        try:
            default_name = NoteCategory(cat).name.replace("_", " ").title()
        except ValueError:
            default_name = f"Category {cat}"
        mt = mido.MidiTrack()
        mt.append(mido.MetaMessage("track_name", name=names.get(cat, default_name), time=0))
        _emit_track_events(mt, spans, channels.get(cat, 0) % 16, velocity)
        mid.tracks.append(mt)
    return mid

def write_midi_combined(timeline: ScoreTimeline, out_path: str, cfg: Optional[dict] = None):
    build_midi(timeline, cfg).save(out_path)

def write_conductor_only(timeline: ScoreTimeline, out_path: str):
    """
    Nur Conductor: Tempo/TS in einer separaten MIDI (kein Notentrack).
    """
    mid = mido.MidiFile(ticks_per_beat=timeline.ticks_per_beat)
    mid.tracks.append(_conductor_track(timeline))
    mid.save(out_path)
