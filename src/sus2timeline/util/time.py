from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple
import numpy as np

from ..diagnostics import DiagnosticSink
from ..timeline import DEFAULT_BEATS_PER_BAR, DEFAULT_BPM


@dataclass(frozen=True)
class TimeSignatureSegment:
    bar_index: int
    head_tick: int
    beats_per_bar: float


class BarIndexCalculator:
    """
    Taktindex -> absoluter Tick bei stückweise variabler Taktart.
    Segmente: (bar_index, head_tick, beats_per_bar), aufsteigend nach bar_index.
    """

    def __init__(self, ticks_per_beat: int, sigs: Mapping[int, float], sink: Optional[DiagnosticSink] = None):
        self.ticks_per_beat = int(ticks_per_beat)
        sigs = dict(sigs)
        if 0 not in sigs:
            sigs[0] = DEFAULT_BEATS_PER_BAR
            if sink is not None:
                sink.information(f"no time signature for bar 0, assuming {DEFAULT_BEATS_PER_BAR} beats per bar")

        ordered = sorted(sigs.items())
        segments: List[TimeSignatureSegment] = []
        pos = 0
        for i, (bar, beats) in enumerate(ordered):
            if i > 0:
                prev_bar, prev_beats = ordered[i - 1]
                pos += int((bar - prev_bar) * self.ticks_per_beat * prev_beats)
            segments.append(TimeSignatureSegment(bar, pos, float(beats)))
        self.segments: Tuple[TimeSignatureSegment, ...] = tuple(segments)
        self._bars = np.array([s.bar_index for s in segments], dtype=np.int64)
        self._heads = np.array([s.head_tick for s in segments], dtype=np.int64)

    @property
    def signatures(self) -> Dict[int, float]:
        return {s.bar_index: s.beats_per_bar for s in self.segments}

    def segment_of(self, bar_index: int) -> TimeSignatureSegment:
        i = int(np.searchsorted(self._bars, bar_index, side="right")) - 1
        if i < 0:
            raise ValueError(f"bar {bar_index} precedes the first time signature")
        return self.segments[i]

    def tick_of(self, bar_index: int) -> int:
        seg = self.segment_of(bar_index)
        return seg.head_tick + int((bar_index - seg.bar_index) * self.ticks_per_beat * seg.beats_per_bar)

    def beats_per_bar_of(self, bar_index: int) -> float:
        return self.segment_of(bar_index).beats_per_bar

    def bar_tick_of(self, bar_index: int) -> int:
        """Länge des Takts in Ticks."""
        return int(self.beats_per_bar_of(bar_index) * self.ticks_per_beat)

    def bar_index_of(self, tick: int) -> int:
        """Umkehrung: Index des Takts, in dem 'tick' liegt."""
        i = max(0, int(np.searchsorted(self._heads, tick, side="right")) - 1)
        seg = self.segments[i]
        span = self.ticks_per_beat * seg.beats_per_bar
        if span <= 0:
            return seg.bar_index
        bar = seg.bar_index + int((tick - seg.head_tick) // span)
        # Rundungsreste der int()-Kürzung ausgleichen
        while bar > seg.bar_index and self.tick_of(bar) > tick:
            bar -= 1
        while self.tick_of(bar + 1) <= tick:
            bar += 1
        return bar


class TempoMap:
    """Tick -> Sekunden über die BPM-Ereignisse (konstantes Tempo je Abschnitt)."""

    def __init__(self, bpm_events: Mapping[int, float], ticks_per_beat: int):
        items = sorted(bpm_events.items()) or [(0, DEFAULT_BPM)]
        if items[0][0] > 0:
            items.insert(0, (0, items[0][1]))
        self.ticks_per_beat = int(ticks_per_beat)
        self._ticks = np.array([t for t, _ in items], dtype=np.float64)
        self._bpms = np.array([b for _, b in items], dtype=np.float64)
        sec_per_tick = 60.0 / (np.maximum(self._bpms, 1e-6) * self.ticks_per_beat)
        spans = np.diff(self._ticks) * sec_per_tick[:-1]
        self._secs = np.concatenate(([0.0], np.cumsum(spans)))
        self._sec_per_tick = sec_per_tick

    def seconds_at(self, tick: int) -> float:
        i = max(0, int(np.searchsorted(self._ticks, tick, side="right")) - 1)
        return float(self._secs[i] + (tick - self._ticks[i]) * self._sec_per_tick[i])

    def bpm_at(self, tick: int) -> float:
        i = max(0, int(np.searchsorted(self._ticks, tick, side="right")) - 1)
        return float(self._bpms[i])
