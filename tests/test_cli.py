"""Tests for the command-line driver."""

import json
import logging

import pytest

from samplezone.cli import build_parser, main


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers, root.level = handlers, level


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run from an empty directory so no config file is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestCli:
    def test_requires_a_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_detect(self, isolated, write_wav, make_bursts, capsys):
        path = write_wav("loop.wav", make_bursts())
        assert main(["detect", str(path), "--algorithm", "energy"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["algorithm"] == "energy"
        assert data["sample_rate"] == 44100
        assert data["transients"] == sorted(data["transients"])
        assert len(data["regions"]) == len(data["transients"])

    def test_group_writes_output_file(self, isolated, write_wav, make_tone):
        paths = [str(write_wav(f"hit_{i}.wav", make_tone(amplitude=0.1 * (i + 1)))) for i in range(3)]
        output = isolated / "out" / "groups.json"
        assert main(["group", *paths, "--seed", "0", "--output", str(output)]) == 0

        data = json.loads(output.read_text())
        assert sorted(p for cluster in data["clusters"] for p in cluster) == sorted(paths)
        assert data["skipped"] == {}

    def test_group_single_stage(self, isolated, write_wav, make_tone, capsys):
        paths = [str(write_wav(f"n{i}.wav", make_tone(freq=300.0 * (i + 1)))) for i in range(4)]
        assert main(["group", *paths, "--single-stage", "--seed", "1"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert sorted(p for cluster in data["clusters"] for p in cluster) == sorted(paths)

    def test_decode_error_exit_code(self, isolated, capsys):
        bad = isolated / "bad.txt"
        bad.write_text("nope")
        assert main(["detect", str(bad)]) == 1
        assert "Error" in capsys.readouterr().err

    def test_bad_config(self, isolated):
        assert main(["--config", str(isolated / "missing.yaml"), "group", "x.wav"]) == 1
