from __future__ import annotations
import argparse, logging, pathlib, sys
from . import process, write
from .config import load_config
from .diagnostics import DiagnosticCollector, LoggingSink, Severity, StrictSink, SusParseException, TeeSink
from .window import WindowScanner

def _print_windows(timeline, cfg):
    scanner = WindowScanner.from_config(timeline, cfg)
    for win in scanner:
        counts = " ".join(
            f"{cat}:{len(notes)}" for cat, notes in sorted({**win.short_notes, **win.long_notes}.items()) if notes
        )
        bars = sorted({g.bar_index for g in win.guide_lines if g.is_bar_line and win.contains(g.tick)})
        bar_txt = f"{bars[0]:03d}-{bars[-1]:03d}" if bars else "---"
        bpm_txt = " ".join(f"{bpm:g}@{tick}" for tick, bpm in win.bpm_changes)
        print(f"[win] #{win.index:03d} [{win.head_tick}, {win.tail_tick}) bars={bar_txt} {counts} {bpm_txt}".rstrip())

def main(argv=None):
    p = argparse.ArgumentParser(description="SUS chart -> resolved tick timeline")
    p.add_argument("--in", dest="infile", required=True, help="Input SUS chart (.sus)")
    p.add_argument("--config", dest="config", default=None, help="YAML config (defaults applied if omitted)")
    p.add_argument("--midi-out", dest="midi_out", default=None, help="Write a MIDI preview (conductor + one track per category)")
    p.add_argument("--conductor-out", dest="conductor_out", default=None, help="Write a conductor-only MIDI (tempo/time signatures)")
    p.add_argument("--windows", action="store_true", help="Print the column windows a renderer would scan")
    p.add_argument("--strict", action="store_true", help="Abort on the first diagnostic at or above the strict threshold")
    p.add_argument("--encoding", dest="encoding", default=None, help="Input encoding (default: try utf-8-sig, then cp932)")

    args = p.parse_args(argv)

    in_path = pathlib.Path(args.infile).expanduser().resolve()
    if not in_path.exists():
        print(f"[cli] ERROR: Input not found: {in_path}", file=sys.stderr)
        sys.exit(1)

    cfg = load_config(args.config)
    dcfg = cfg.get("diagnostics") or {}
    try:
        logging.basicConfig(level=str(dcfg.get("log_level", "INFO")).upper(), format="[%(name)s] %(message)s")
        threshold = Severity.parse(str(dcfg.get("strict_threshold", "warning")))
    except ValueError as e:
        print(f"[cli] ERROR: invalid diagnostics config: {e}", file=sys.stderr)
        sys.exit(2)
    print(f"[cli] infile = {in_path}")

    # Diagnosen sammeln (Zusammenfassung) und ins Logging geben
    collector = DiagnosticCollector()
    sink = TeeSink(collector, LoggingSink())
    if args.strict or dcfg.get("strict", False):
        sink = StrictSink(sink, threshold)

    try:
        timeline = process.parse_file(in_path, cfg, sink, encoding=args.encoding)
    except SusParseException as e:
        print(f"[cli] ABORT (strict): {e}", file=sys.stderr)
        sys.exit(2)
    except LookupError as e:
        print(f"[cli] ERROR: {e}", file=sys.stderr)
        sys.exit(2)

    if args.windows:
        _print_windows(timeline, cfg)

    try:
        if args.midi_out:
            out_path = pathlib.Path(args.midi_out).expanduser().resolve()
            write.write_midi_combined(timeline, str(out_path), cfg)
            print(f"[cli] midi      -> {out_path}")
        if args.conductor_out:
            cond_path = pathlib.Path(args.conductor_out).expanduser().resolve()
            write.write_conductor_only(timeline, str(cond_path))
            print(f"[cli] conductor -> {cond_path}")
    except ValueError as e:
        print(f"[cli] ERROR: export failed: {e}", file=sys.stderr)
        sys.exit(2)

    last = timeline.last_tick()
    print(
        f"[cli] Done. title={timeline.title!r} notes={timeline.note_count()} tpb={timeline.ticks_per_beat} "
        f"last_tick={last} length={timeline.seconds_at(last):.2f}s warnings={len(collector.warnings)}"
    )

if __name__ == "__main__":
    main()
