from __future__ import annotations

import io
from pathlib import Path

import pytest

from bflang import run_cli
from conftest import HELLO_WORLD


def test_cli_run_file(tmp_path: Path, capsysbinary):
    p = tmp_path / "hello.bf"
    p.write_text(HELLO_WORLD + "\n", encoding="utf-8")

    assert run_cli([str(p)]) == 0
    captured = capsysbinary.readouterr()
    assert captured.out == b"Hello World!\n"
    assert captured.err == b""


def test_cli_source_mode(capsysbinary):
    assert run_cli(["-source", "+++++++++++++++++++++++++++++++++."]) == 0
    assert capsysbinary.readouterr().out == b"!"


def test_cli_reads_stdin(monkeypatch, capsysbinary):
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(b"xy")))
    assert run_cli(["-source", ",.,."]) == 0
    assert capsysbinary.readouterr().out == b"xy"


def test_cli_requires_program(capsys):
    with pytest.raises(SystemExit) as exc:
        run_cli([])
    assert exc.value.code == 2
    assert "usage" in capsys.readouterr().err


def test_cli_rejects_extra_arguments(tmp_path: Path, capsys):
    with pytest.raises(SystemExit) as exc:
        run_cli(["a.bf", "b.bf"])
    assert exc.value.code == 2
    assert "usage" in capsys.readouterr().err


def test_cli_missing_file(tmp_path: Path, capsys):
    assert run_cli([str(tmp_path / "missing.bf")]) == 1
    assert "Failed to read" in capsys.readouterr().err


def test_cli_parse_error(capsys):
    assert run_cli(["-source", "+[", "--no-color"]) == 1
    err = capsys.readouterr().err
    assert err.splitlines() == [
        "UnclosedLeftBracket: Unclosed '[' at <string>:1:2",
        "    +[",
        "     ^",
    ]


def test_cli_runtime_error(capsys):
    assert run_cli(["-source", "<"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("NegativeDataPointer:")
    assert "Traceback" not in err


def test_cli_runtime_error_json(capsys):
    assert run_cli(["-source", "<", "--verbose", "--traceback-json"]) == 1
    err = capsys.readouterr().err
    assert "Traceback (most recent call last):" in err
    assert '"type": "NegativeDataPointer"' in err


def test_cli_timings_go_to_stderr(capsysbinary):
    assert run_cli(["-source", "++.", "--timings"]) == 0
    captured = capsysbinary.readouterr()
    assert captured.out == b"\x02"
    assert b"Loading bf code..." in captured.err
    assert b"Program has been executed successfully." in captured.err


def test_cli_eof_policy(monkeypatch, capsysbinary):
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(b"")))
    assert run_cli(["-source", "+,.", "--eof", "unchanged"]) == 0
    assert capsysbinary.readouterr().out == b"\x01"
