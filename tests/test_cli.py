"""Tests for the command line front end."""

from __future__ import annotations

import logging

import mido
import pytest

from sus2timeline.cli import main

CHART = """\
#TITLE "Test Chart"
#REQUEST "ticks_per_beat 192"
#BPM01: 150
#00008: 01
#00002: 4
#00010: 11003100
#00020a: 11002100
#00115: 1f
"""


@pytest.fixture
def chart(tmp_path):
    path = tmp_path / "chart.sus"
    path.write_text(CHART, encoding="utf-8")
    return path


@pytest.fixture
def user_cfg(tmp_path, monkeypatch):
    # Keine echte ~/.config lesen
    monkeypatch.setattr("sus2timeline.config.USER_CFG_PATH", tmp_path / "no-user.yaml")


def test_missing_input(tmp_path, user_cfg):
    with pytest.raises(SystemExit) as exc:
        main(["--in", str(tmp_path / "nope.sus")])
    assert exc.value.code == 1


def test_summary_and_midi(chart, tmp_path, capsys, user_cfg):
    out = tmp_path / "out.mid"
    main(["--in", str(chart), "--midi-out", str(out), "--windows"])
    text = capsys.readouterr().out
    assert "[cli] Done." in text
    assert "notes=4" in text
    assert "[win] #000" in text
    assert mido.MidiFile(str(out)).ticks_per_beat == 192


def test_strict_aborts(tmp_path, capsys, user_cfg):
    path = tmp_path / "bad.sus"
    path.write_text('#WAVE "x.ogg"\n#00010: 11\n', encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["--in", str(path), "--strict"])
    assert exc.value.code == 2
    assert "WAVE" in capsys.readouterr().err


def test_strict_keeps_earlier_diagnostics(tmp_path, capsys, caplog, user_cfg):
    path = tmp_path / "odd.sus"
    # Takt/BPM-Informationen kommen vor der Warnung zur ungeraden Datenlänge
    path.write_text("#00010: 111\n", encoding="utf-8")
    with caplog.at_level(logging.INFO, logger="sus2timeline"):
        with pytest.raises(SystemExit) as exc:
            main(["--in", str(path), "--strict"])
    assert exc.value.code == 2
    assert "information: no time signature for bar 0" in caplog.text
    assert "warning: odd-length data" in caplog.text
    assert "odd-length" in capsys.readouterr().err


def test_diagnostics_are_logged(tmp_path, caplog, user_cfg):
    path = tmp_path / "bare.sus"
    path.write_text("#00010: 11\n", encoding="utf-8")
    with caplog.at_level(logging.INFO, logger="sus2timeline"):
        main(["--in", str(path)])
    assert "information: no time signature for bar 0" in caplog.text


def test_zero_bpm_midi_export(tmp_path, capsys, user_cfg):
    path = tmp_path / "zero.sus"
    path.write_text("#BPM01: 0\n#00008: 01\n#00010: 11\n", encoding="utf-8")
    out = tmp_path / "zero.mid"
    main(["--in", str(path), "--midi-out", str(out)])
    assert "[cli] Done." in capsys.readouterr().out
    assert out.exists()


def test_shift_jis_input(tmp_path, capsys, user_cfg):
    path = tmp_path / "sjis.sus"
    path.write_bytes('#TITLE "曲名"\n#00010: 11\n'.encode("cp932"))
    main(["--in", str(path)])
    assert "title='曲名'" in capsys.readouterr().out


def test_unknown_encoding(chart, capsys, user_cfg):
    with pytest.raises(SystemExit) as exc:
        main(["--in", str(chart), "--encoding", "no-such-codec"])
    assert exc.value.code == 2
    assert "[cli] ERROR" in capsys.readouterr().err


def test_invalid_strict_threshold(chart, tmp_path, capsys, user_cfg):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("diagnostics:\n  strict_threshold: bogus\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["--in", str(chart), "--config", str(cfg), "--strict"])
    assert exc.value.code == 2
    assert "[cli] ERROR: invalid diagnostics config" in capsys.readouterr().err
