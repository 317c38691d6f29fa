# src/sus2timeline/config.py
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import copy
import yaml

# Paket-Root: .../src/sus2timeline
PKG_ROOT = Path(__file__).resolve().parent
DEFAULT_CFG_PATH = PKG_ROOT / "config.default.yaml"
USER_CFG_PATH = Path.home() / ".config" / "sus2timeline" / "config.yaml"

FALLBACK_TPB = 192

def _safe_load(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config {path} must be a mapping, got {type(data).__name__}")
    return data

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(a)
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out

def load_config(
    user_path: Optional[Path] = None,
    default_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Lädt die Konfiguration (Default + User-Overrides) und liefert ein gemergtes Dict.
    Enthält u.a. 'ticks_per_beat' (Fallback, falls die Datei kein #REQUEST hat),
    'window', 'diagnostics' und 'midi'.
    """
    dpath = Path(default_path) if default_path else DEFAULT_CFG_PATH
    upath = Path(user_path) if user_path else USER_CFG_PATH

    cfg = _deep_merge(_safe_load(dpath), _safe_load(upath))

    # Minimal-Defaults sicherstellen
    cfg.setdefault("ticks_per_beat", FALLBACK_TPB)
    cfg.setdefault("window", {})
    cfg.setdefault("diagnostics", {})
    cfg.setdefault("midi", {})
    return cfg

def get_ticks_per_beat(cfg: Dict[str, Any]) -> int:
    """Bequemer Accessor."""
    try:
        tpb = int(cfg.get("ticks_per_beat", FALLBACK_TPB))
    except (TypeError, ValueError):
        return FALLBACK_TPB
    return tpb if tpb > 0 else FALLBACK_TPB

def get_window_ticks(cfg: Dict[str, Any], ticks_per_beat: int) -> Tuple[int, int]:
    """(column_tick, padding_tick) – Spaltenhöhe in Beats, Padding als Bruchteil eines Beats."""
    win = cfg.get("window") or {}
    column_beats = float(win.get("column_beats", 12))
    padding_divisor = int(win.get("padding_divisor", 8))
    column_tick = max(1, int(ticks_per_beat * column_beats))
    padding_tick = ticks_per_beat // padding_divisor if padding_divisor > 0 else 0
    return column_tick, padding_tick
