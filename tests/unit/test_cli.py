"""Tests for the JAM reader CLI argument parsing and commands."""

import json
import struct
from pathlib import Path

import pytest

from jam_reader import cli

CREATED = 978307200


def _write_base(directory: Path, name: str, texts: list[bytes]) -> Path:
    header = struct.pack("<4sIIIII", b"JAM\x00", CREATED, 4, len(texts), 0, 1)
    header += b"\x00" * (1024 - len(header))
    data = b""
    for number, text in enumerate(texts, start=1):
        reply_to = number - 1
        header += struct.pack(
            "<4sHH17I",
            b"JAM\x00",
            1,
            0,
            0,
            0,
            0,
            0,
            reply_to,
            0,
            0,
            CREATED,
            CREATED,
            CREATED,
            number,
            0,
            0,
            len(data),
            len(text),
            0,
            0,
        )
        data += text
    directory.mkdir(parents=True, exist_ok=True)
    header_path = directory / f"{name}.jhr"
    header_path.write_bytes(header)
    (directory / f"{name}.jdt").write_bytes(data)
    return header_path


def test_parse_args_resolves_paths_for_export(tmp_path: Path) -> None:
    header_path = _write_base(tmp_path, "general", [b"Hello\r"])
    args = cli.parse_args(["export", str(header_path), str(tmp_path / "out.mbox")])
    assert args.command == "export"
    assert args.header_path == header_path
    assert args.target == tmp_path / "out.mbox"
    assert args.dry_run is False


def test_parse_args_rejects_unknown_extension(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["info", str(tmp_path / "general.msg")])


def test_info_command_prints_summary(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    header_path = _write_base(tmp_path, "general", [b"Hello\r", b"Again\r"])

    exit_code = cli.main(["info", str(header_path)])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Active messages:  2" in captured
    assert "2001-01-01T00:00:00+00:00" in captured
    assert str(tmp_path / "general.jdt") in captured


def test_info_command_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        cli.main(["info", str(tmp_path / "missing.jhr")])


def test_list_messages_command_respects_limit(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    header_path = _write_base(tmp_path, "general", [b"one\r", b"two\r", b"three\r"])

    exit_code = cli.main(["list-messages", str(header_path), "--limit", "2"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    rows = [line.split() for line in captured.splitlines()[3:]]
    assert [row[0] for row in rows] == ["1", "2"]
    assert rows[1][-2:] == ["1", "4"]


def test_show_command_prints_single_message(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    header_path = _write_base(tmp_path, "general", [b"one\r", b"second\rbody\r"])

    exit_code = cli.main(["show", str(header_path), "--number", "2"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert captured == "--- Message 2 ---\nsecond\nbody\n"


def test_show_command_reports_stream_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    header_path = _write_base(tmp_path, "general", [b"one\r", b"two\r"])
    (tmp_path / "general.jdt").unlink()

    exit_code = cli.main(["show", str(header_path)])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out == ""
    assert "Error after 0 messages: FileNotFoundError" in captured.err


def test_list_bases_command_outputs_counts(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write_base(tmp_path / "msgs", "general", [b"one\r", b"two\r"])

    exit_code = cli.main(["list-bases", str(tmp_path / "msgs")])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Message bases discovered" in captured
    general_line = next(line for line in captured.splitlines() if "general" in line)
    assert general_line.split() == ["general", "2", "1", "4"]


def test_scan_command_generates_report(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = tmp_path / "msgs"
    _write_base(root, "general", [b"one\r"])
    _write_base(root, "broken", [b"one\r", b"two\r"])
    (root / "broken.jdt").write_bytes(b"one\r")
    report_path = tmp_path / "scan.json"

    exit_code = cli.main(
        ["scan", str(root), "--report", str(report_path), "--no-progress"]
    )

    captured = capsys.readouterr().out
    assert exit_code == 1
    assert "Scan complete: 2 of 3 messages read across 2 bases." in captured
    assert "ShortReadError" in captured
    data = json.loads(report_path.read_text())
    assert data["failures"][0]["path"] == "broken"


def test_export_command_writes_mbox(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    header_path = _write_base(tmp_path, "general", [b"Hello\r", b"Again\r"])
    target = tmp_path / "general.mbox"

    exit_code = cli.main(["export", str(header_path), str(target), "--no-progress"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Export complete: 2 of 2 messages" in captured
    assert target.read_text().count("From MAILER-DAEMON") == 2


def test_export_command_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    header_path = _write_base(tmp_path, "general", [b"Hello\r"])
    target = tmp_path / "general.mbox"

    exit_code = cli.main(["--verbose", "export", str(header_path), str(target), "--dry-run"])

    captured = capsys.readouterr().out
    assert exit_code == 0
    assert "Dry run complete: 1 of 1 messages" in captured
    assert not target.exists()
