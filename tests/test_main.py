"""Tests for the command line runner."""

import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

import pytest
import main as cli
from chip8_core import Chip8
from chip8_core.rom import parse_hex


class TestParseKeys:

    def test_hex_keys(self):
        assert cli.parse_keys("1, a,F") == [0x1, 0xA, 0xF]

    def test_empty(self):
        assert cli.parse_keys("") == []

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            cli.parse_keys("10")


class TestScheduler:

    def test_feeds_key_on_wait(self):
        cpu = Chip8(parse_hex("F30A 6401 1204"))
        performed = cli.run(cpu, 10, 0, [0x7])
        assert performed == 10
        assert cpu.get_register(3) == 0x7
        assert cpu.get_register(4) == 1
        assert cpu.state.keyboard[0x7] is False

    def test_stops_without_keys(self):
        cpu = Chip8(parse_hex("F30A"))
        assert cli.run(cpu, 10, 0, []) == 1
        assert cpu.awaiting_key is True


class TestMain:

    def test_help_describes_rate(self, monkeypatch, capsys):
        monkeypatch.setenv("COLUMNS", "200")
        monkeypatch.setattr(sys, "argv", ["main.py", "--help"])
        with pytest.raises(SystemExit):
            cli.main()
        out = capsys.readouterr().out
        assert "Typical rate is 125" in out
        assert "original" not in out

    def test_runs_hex_listing(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", [
            "main.py", "--hex", "A000 D015 1204", "--cycles", "5", "--quiet",
        ])
        assert cli.main() == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("####.")
        assert lines[1].startswith("#..#.")

    def test_stack_error_exit_code(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["main.py", "--hex", "00EE", "--quiet"])
        assert cli.main() == 1
        assert "Execution error" in capsys.readouterr().out


class TestPackaging:

    def test_metadata_has_no_readme_pointer(self):
        text = (ROOT / "pyproject.toml").read_text()
        assert "readme" not in text
        assert 'name = "chip8-core"' in text
