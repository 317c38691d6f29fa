from __future__ import annotations
import re
from typing import List, Optional, Tuple

from ..diagnostics import DiagnosticSink
from .time import BarIndexCalculator

NULL_CODE = "00"
_WS = re.compile(r"\s+")


def convert_hex(c: str) -> int:
    # base-36 Ziffer; 'g' ergibt so automatisch 16
    return int(c, 36)


def split_data(calc: BarIndexCalculator, bar_index: int, data: str,
               sink: Optional[DiagnosticSink] = None, line: Optional[int] = None) -> List[Tuple[int, str]]:
    """
    Verteilt die 2-Zeichen-Codes eines Takts gleichmäßig über [head, head + barTick).
    '00' (kein Ereignis) wird herausgefiltert.
    """
    data = _WS.sub("", data).lower()
    if len(data) % 2:
        if sink is not None:
            sink.warning(f"odd-length data in bar {bar_index:03d}, dropping trailing '{data[-1]}'", line)
        data = data[:-1]

    codes = [data[i:i + 2] for i in range(0, len(data), 2)]
    n = len(codes)
    head_tick = calc.tick_of(bar_index)
    bar_tick = calc.bar_tick_of(bar_index)
    return [(head_tick + bar_tick * i // n, code) for i, code in enumerate(codes) if code != NULL_CODE]
