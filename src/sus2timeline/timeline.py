from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Optional, List, Dict, Tuple, Mapping, FrozenSet, Iterator

from .kinds import NoteCategory

DEFAULT_TPB = 192
DEFAULT_BPM = 120.0
DEFAULT_BEATS_PER_BAR = 4.0

# --- Pass 1: raw records (Grammatik, noch ohne Ticks) ---

@dataclass(frozen=True)
class MetaCommand:
    line: int
    name: str              # upper-case
    value: str

@dataclass(frozen=True)
class BpmDefinition:
    line: int
    key: str               # 2 Zeichen base-36, lower-case
    value: str

@dataclass(frozen=True)
class BpmAssignment:
    line: int
    bar_index: int
    data: str

@dataclass(frozen=True)
class NoteData:
    line: int
    bar_index: int
    category: str          # "1".."5"
    lane_index: int
    chain_id: Optional[str]  # None -> Kurznote
    data: str

    @property
    def is_long(self) -> bool:
        return self.chain_id is not None

@dataclass(frozen=True)
class TimeSignatureRecord:
    line: int
    bar_index: int
    value: str

@dataclass
class RawScore:
    """Akkumulator des Zeilen-Folds; wird einmal an die Assemblierung übergeben."""
    ticks_per_beat: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    bpm_definitions: Dict[str, Tuple[int, float]] = field(default_factory=dict)   # key -> (line, bpm)
    bpm_assignments: List[BpmAssignment] = field(default_factory=list)
    short_notes: List[NoteData] = field(default_factory=list)
    long_notes: List[NoteData] = field(default_factory=list)
    time_signatures: Dict[int, Tuple[int, float]] = field(default_factory=dict)   # bar -> (line, beats)

# --- Pass 2: resolved timeline ---

@dataclass(frozen=True, order=True)
class NotePosition:
    tick: int
    lane_index: int
    width: int

@dataclass(frozen=True)
class NoteDefinition:
    source_line: int
    type_code: str
    position: NotePosition
    kind: Optional[Enum] = field(default=None, compare=False)

    @property
    def tick(self) -> int:
        return self.position.tick

@dataclass(frozen=True)
class LongNoteChain:
    category: str
    key: str
    notes: Tuple[NoteDefinition, ...]
    is_closed: bool = True

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[NoteDefinition]:
        return iter(self.notes)

    def __getitem__(self, i):
        return self.notes[i]

    @property
    def begin(self) -> NoteDefinition:
        return self.notes[0]

    @property
    def end(self) -> NoteDefinition:
        return self.notes[-1]

    @property
    def steps(self) -> Tuple[NoteDefinition, ...]:
        return self.notes[1:-1]

    @property
    def start_tick(self) -> int:
        return self.notes[0].position.tick

    @property
    def end_tick(self) -> int:
        return self.notes[-1].position.tick

    @property
    def source_lines(self) -> List[int]:
        return [n.source_line for n in self.notes]


def _frozen(d: Mapping) -> Mapping:
    return MappingProxyType(dict(d))


@dataclass(frozen=True)
class ScoreTimeline:
    ticks_per_beat: int
    bpm_events: Mapping[int, float]
    time_signatures: Mapping[int, float]
    bar_signatures: Mapping[int, float]
    short_notes: Mapping[str, Tuple[NoteDefinition, ...]]
    long_notes: Mapping[str, Tuple[LongNoteChain, ...]]
    title: Optional[str] = None
    artist: Optional[str] = None
    designer: Optional[str] = None

    def __post_init__(self):
        # Nach der Assemblierung nur noch lesend
        for name in ("bpm_events", "time_signatures", "bar_signatures", "short_notes", "long_notes"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    def last_tick(self) -> int:
        ticks = [n.position.tick for notes in self.short_notes.values() for n in notes]
        ticks += [c.end_tick for chains in self.long_notes.values() for c in chains]
        return max(ticks) if ticks else 0

    def note_count(self) -> int:
        return sum(len(v) for v in self.short_notes.values()) + sum(len(v) for v in self.long_notes.values())

    def long_end_positions(self) -> FrozenSet[NotePosition]:
        """Endpunkte von Hold/Slide – dort sitzende AIRs sind Air-Steps."""
        chains = self.long_notes[NoteCategory.HOLD.value] + self.long_notes[NoteCategory.SLIDE.value]
        return frozenset(c.end.position for c in chains)

    def air_anchor_positions(self) -> FrozenSet[NotePosition]:
        """Alle Positionen, an die ein AIR / eine Air-Action andocken kann."""
        taps = {n.position for n in self.short_notes[NoteCategory.TAP.value]}
        return frozenset(taps) | self.long_end_positions()

    def bar_calculator(self):
        from .util.time import BarIndexCalculator
        return BarIndexCalculator(self.ticks_per_beat, dict(self.bar_signatures))

    def tempo_map(self):
        from .util.time import TempoMap
        return TempoMap(self.bpm_events, self.ticks_per_beat)

    def seconds_at(self, tick: int) -> float:
        return self.tempo_map().seconds_at(tick)
