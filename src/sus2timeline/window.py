# src/sus2timeline/window.py
"""
Spaltenweiser Scan über die fertige Timeline.

Jede Kategorie hat zwei Warteschlangen:
  - pending: noch nicht im gepaddeten Fenster, nach Start-Tick sortiert
  - active:  im Fenster (oder gerade herausgelaufen), Heap nach End-Tick

Pro advance(): verdrängen (End < head - padding), aufnehmen
(Start < head + column + padding), ausliefern, head += column.
Vorwärts-only, daher O(Noten) über alle Fenster.
"""
from __future__ import annotations
import heapq
from bisect import bisect_left
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List, Mapping, Optional, Tuple, Union

from .config import get_window_ticks
from .timeline import ScoreTimeline, NoteDefinition, LongNoteChain

Item = Union[NoteDefinition, LongNoteChain]


def _start_tick(item: Item) -> int:
    return item.start_tick if isinstance(item, LongNoteChain) else item.position.tick

def _end_tick(item: Item) -> int:
    return item.end_tick if isinstance(item, LongNoteChain) else item.position.tick


@dataclass(frozen=True)
class GuideLine:
    tick: int
    bar_index: int
    is_bar_line: bool      # False = Beat-Linie


@dataclass(frozen=True)
class Window:
    index: int
    head_tick: int
    column_tick: int
    padding_tick: int
    short_notes: Mapping[str, Tuple[NoteDefinition, ...]]
    long_notes: Mapping[str, Tuple[LongNoteChain, ...]]
    bpm_changes: Tuple[Tuple[int, float], ...] = ()
    guide_lines: Tuple[GuideLine, ...] = ()

    @property
    def tail_tick(self) -> int:
        return self.head_tick + self.column_tick

    @property
    def padded_head(self) -> int:
        return self.head_tick - self.padding_tick

    @property
    def padded_tail(self) -> int:
        return self.tail_tick + self.padding_tick

    def contains(self, tick: int) -> bool:
        return self.head_tick <= tick < self.tail_tick

    def visible_elements(self, chain: LongNoteChain) -> Tuple[NoteDefinition, ...]:
        """Kettenpunkte innerhalb des gepaddeten Bereichs (Ränder inklusive)."""
        return tuple(n for n in chain if self.padded_head <= n.position.tick <= self.padded_tail)

    def iter_notes(self) -> Iterator[Item]:
        for notes in self.short_notes.values():
            yield from notes
        for chains in self.long_notes.values():
            yield from chains

    @property
    def is_empty(self) -> bool:
        return not any(self.short_notes.values()) and not any(self.long_notes.values())


class _CategoryQueues:
    def __init__(self, items):
        self.pending: Deque[Item] = deque(sorted(items, key=_start_tick))
        self.active: List[Tuple[int, int, Item]] = []
        self._seq = 0

    def evict(self, limit: int):
        while self.active and self.active[0][0] < limit:
            heapq.heappop(self.active)

    def admit(self, limit: int):
        while self.pending and _start_tick(self.pending[0]) < limit:
            item = self.pending.popleft()
            heapq.heappush(self.active, (_end_tick(item), self._seq, item))
            self._seq += 1

    def visible(self) -> tuple:
        # Ausgabe in Start-Reihenfolge, bei Gleichstand Aufnahme-Reihenfolge
        ordered = sorted(self.active, key=lambda e: (_start_tick(e[2]), e[1]))
        return tuple(e[2] for e in ordered)

    @property
    def empty(self) -> bool:
        return not self.pending and not self.active


class WindowScanner:
    def __init__(self, timeline: ScoreTimeline, column_tick: int, padding_tick: int = 0):
        if column_tick <= 0:
            raise ValueError(f"column_tick must be positive, got {column_tick}")
        if padding_tick < 0:
            raise ValueError(f"padding_tick must not be negative, got {padding_tick}")
        self.timeline = timeline
        self.column_tick = int(column_tick)
        self.padding_tick = int(padding_tick)
        self.head_tick = 0
        self.index = 0

        self._short = {cat: _CategoryQueues(notes) for cat, notes in timeline.short_notes.items()}
        self._long = {cat: _CategoryQueues(chains) for cat, chains in timeline.long_notes.items()}
        self._bpms = sorted(timeline.bpm_events.items())
        self._bpm_ticks = [t for t, _ in self._bpms]
        self._calc = timeline.bar_calculator()
        self._done = False

    @classmethod
    def from_config(cls, timeline: ScoreTimeline, cfg: dict) -> "WindowScanner":
        column_tick, padding_tick = get_window_ticks(cfg, timeline.ticks_per_beat)
        return cls(timeline, column_tick, padding_tick)

    @property
    def finished(self) -> bool:
        return self._done

    def _queues(self):
        yield from self._short.values()
        yield from self._long.values()

    def advance(self) -> Optional[Window]:
        if self._done:
            return None
        head = self.head_tick
        for q in self._queues():
            q.evict(head - self.padding_tick)
        for q in self._queues():
            q.admit(head + self.column_tick + self.padding_tick)
        if all(q.empty for q in self._queues()):
            # Warteschlangen freigeben
            self._done = True
            self._short.clear(); self._long.clear()
            return None

        win = Window(
            index=self.index,
            head_tick=head,
            column_tick=self.column_tick,
            padding_tick=self.padding_tick,
            short_notes={cat: q.visible() for cat, q in self._short.items()},
            long_notes={cat: q.visible() for cat, q in self._long.items()},
            bpm_changes=self._bpm_changes(head, head + self.column_tick),
            guide_lines=self._guide_lines(head - self.padding_tick, head + self.column_tick + self.padding_tick),
        )
        self.head_tick += self.column_tick
        self.index += 1
        return win

    def __iter__(self) -> Iterator[Window]:
        while True:
            win = self.advance()
            if win is None:
                return
            yield win

    def _bpm_changes(self, lo: int, hi: int) -> Tuple[Tuple[int, float], ...]:
        i = bisect_left(self._bpm_ticks, lo)
        j = bisect_left(self._bpm_ticks, hi)
        return tuple(self._bpms[i:j])

    def _guide_lines(self, lo: int, hi: int) -> Tuple[GuideLine, ...]:
        calc = self._calc
        tpb = self.timeline.ticks_per_beat
        last_sig_bar = calc.segments[-1].bar_index
        lines: List[GuideLine] = []
        bar = calc.bar_index_of(max(lo, 0))
        while True:
            head = calc.tick_of(bar)
            if head > hi:
                break
            next_head = calc.tick_of(bar + 1)
            if next_head <= head:
                # Takt ohne Länge: nur die Taktlinie
                if head >= lo:
                    lines.append(GuideLine(head, bar, True))
                if bar >= last_sig_bar:
                    break
                bar += 1
                continue
            beat = max(1, min(tpb, calc.bar_tick_of(bar)))
            t = head
            while t < next_head and t <= hi:
                if t >= lo:
                    lines.append(GuideLine(t, bar, t == head))
                t += beat
            bar += 1
        return tuple(lines)


def scan_windows(timeline: ScoreTimeline, column_tick: int, padding_tick: int = 0) -> Iterator[Window]:
    return iter(WindowScanner(timeline, column_tick, padding_tick))
