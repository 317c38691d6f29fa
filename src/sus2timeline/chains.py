# src/sus2timeline/chains.py
from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Tuple

from .diagnostics import DiagnosticSink
from .kinds import NoteCategory, BEGIN_MARKER, END_MARKER
from .timeline import NoteDefinition, LongNoteChain

# (Gruppenschlüssel-Rohdaten) chain_id, lane_index, Definition
Fragment = Tuple[str, int, NoteDefinition]


def group_key(category: str, chain_id: str, lane_index: int) -> str:
    # Holds: Identität über die Spur; Slides/Air-Actions: über die Ketten-ID
    if category == NoteCategory.HOLD.value:
        return f"lane:{lane_index}"
    return chain_id.lower()


def sort_key(d: NoteDefinition):
    """
    Fester Komparator: Tick aufsteigend, bei gleichem Tick Startmarker zuerst,
    danach Subtyp absteigend.
    """
    return (d.position.tick, 0 if d.type_code == BEGIN_MARKER else 1, -ord(d.type_code))


def split_chains(category: str, key: str, defs: Iterable[NoteDefinition], sink: DiagnosticSink) -> Iterator[LongNoteChain]:
    """Eine Gruppe (gleicher Schlüssel) in Begin -> Step* -> End Ketten zerlegen."""
    items = sorted(defs, key=sort_key)
    i = 0
    while i < len(items):
        head = items[i]
        i += 1
        if head.type_code != BEGIN_MARKER:
            sink.warning(f"end without matching begin in long note '{key}' (category {category})", head.source_line)
            continue

        notes: List[NoteDefinition] = [head]
        closed = False
        while i < len(items):
            cur = items[i]
            i += 1
            if cur.position.tick == notes[-1].position.tick:
                sink.warning(f"duplicate tick {cur.position.tick} in chain '{key}' (category {category})", cur.source_line)
                continue
            if cur.type_code == BEGIN_MARKER:
                sink.warning(f"begin without matching end in long note '{key}' (category {category})", cur.source_line)
                continue
            notes.append(cur)
            if cur.type_code == END_MARKER:
                closed = True
                break

        if not closed:
            sink.warning(f"long note '{key}' (category {category}) is not terminated", notes[-1].source_line)
        yield LongNoteChain(category=category, key=key, notes=tuple(notes), is_closed=closed)


def reconstruct_chains(category: str, fragments: Iterable[Fragment], sink: DiagnosticSink) -> List[LongNoteChain]:
    groups: Dict[str, List[NoteDefinition]] = {}
    for chain_id, lane_index, d in fragments:
        groups.setdefault(group_key(category, chain_id, lane_index), []).append(d)

    chains: List[LongNoteChain] = []
    for key in sorted(groups):
        chains.extend(split_chains(category, key, groups[key], sink))
    chains.sort(key=lambda c: (c.start_tick, c.begin.position.lane_index, c.key))
    return chains
