# src/sus2timeline/kinds.py
from __future__ import annotations
from enum import Enum
from typing import Optional


class NoteCategory(str, Enum):
    TAP = "1"
    HOLD = "2"
    SLIDE = "3"
    AIR_ACTION = "4"
    AIR = "5"

    @property
    def is_long(self) -> bool:
        return self in (NoteCategory.HOLD, NoteCategory.SLIDE, NoteCategory.AIR_ACTION)


# Kategorien, die Konsumenten ohne Existenzprüfung erwarten dürfen
REQUIRED_SHORT = (NoteCategory.TAP.value, NoteCategory.AIR.value)
REQUIRED_LONG = (NoteCategory.HOLD.value, NoteCategory.SLIDE.value, NoteCategory.AIR_ACTION.value)


class TapKind(str, Enum):
    TAP = "1"
    EX_TAP = "2"
    FLICK = "3"
    DAMAGE = "4"
    AWESOME_EX_TAP = "5"
    AWESOME_EX_TAP_ALT = "6"

    @property
    def is_ex_tap(self) -> bool:
        return self in (TapKind.EX_TAP, TapKind.AWESOME_EX_TAP, TapKind.AWESOME_EX_TAP_ALT)


class AirKind(str, Enum):
    UP = "1"
    DOWN = "2"
    UP_LEFT = "3"
    UP_RIGHT = "4"
    DOWN_LEFT = "5"
    DOWN_RIGHT = "6"

    @property
    def vertical(self) -> str:
        return "down" if self in (AirKind.DOWN, AirKind.DOWN_LEFT, AirKind.DOWN_RIGHT) else "up"

    @property
    def horizontal(self) -> str:
        if self in (AirKind.UP_LEFT, AirKind.DOWN_LEFT):
            return "left"
        if self in (AirKind.UP_RIGHT, AirKind.DOWN_RIGHT):
            return "right"
        return "center"


class LongNoteKind(str, Enum):
    BEGIN = "1"
    END = "2"
    STEP = "3"
    CURVE = "4"
    INVISIBLE_STEP = "5"

    @property
    def is_visible(self) -> bool:
        return self in (LongNoteKind.BEGIN, LongNoteKind.END, LongNoteKind.STEP)


# Feste Marker der Kettenrekonstruktion
BEGIN_MARKER = LongNoteKind.BEGIN.value
END_MARKER = LongNoteKind.END.value


def decode_kind(category: str, type_code: str, is_long: bool) -> Optional[Enum]:
    """Subtyp-Zeichen einmalig in die passende Variante übersetzen (None = unbekannt)."""
    if category == NoteCategory.TAP.value and not is_long:
        enum_cls = TapKind
    elif category == NoteCategory.AIR.value and not is_long:
        enum_cls = AirKind
    else:
        # Langnoten-Kategorien (auch ohne Ketten-ID) tragen Langnoten-Subtypen
        enum_cls = LongNoteKind
    try:
        return enum_cls(type_code)
    except ValueError:
        return None
