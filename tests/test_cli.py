"""
Tests for the CLI: compress, presets, check-config, health, sweep-scratch.

Uses Click's CliRunner to test commands without spawning subprocesses.
All commands run with mock codecs.
"""

from __future__ import annotations

import json
import os
import time

import pytest
from click.testing import CliRunner

from pdfshrink.codecs.mock import fake_pdf
from pdfshrink.main import cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("PDFSHRINK_SCRATCH_DIR", str(tmp_path / "scratch"))
    monkeypatch.delenv("PDFSHRINK_CONFIG", raising=False)
    return CliRunner()


class TestCompressCommand:
    """Tests for `pdfshrink compress`."""

    def test_writes_compressed_file(self, runner, tmp_path):
        source = tmp_path / "report.pdf"
        source.write_bytes(fake_pdf(10_000))

        result = runner.invoke(cli, ["--mock", "compress", str(source), "-q", "medium"])

        assert result.exit_code == 0, result.output
        output = tmp_path / "report-compressed.pdf"
        assert output.stat().st_size == 5000
        assert "★ high" in result.output
        assert "50.0% smaller" in result.output

    def test_explicit_output_and_single_strategy(self, runner, tmp_path):
        source = tmp_path / "report.pdf"
        source.write_bytes(fake_pdf(10_000))
        target = tmp_path / "out.pdf"

        result = runner.invoke(
            cli,
            ["compress", str(source), "-o", str(target), "--strategy", "single", "--mock"],
        )

        assert result.exit_code == 0, result.output
        assert target.exists()
        assert "★ medium" in result.output
        assert "  high" not in result.output

    def test_not_a_pdf_fails(self, runner, tmp_path):
        source = tmp_path / "notes.pdf"
        source.write_bytes(b"plain text")

        result = runner.invoke(cli, ["--mock", "compress", str(source)])

        assert result.exit_code == 1
        assert "not a PDF" in result.output

    def test_invalid_config_refuses_to_compress(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("PDFSHRINK_NOT_SMALLER_POLICY", "orignal")
        source = tmp_path / "report.pdf"
        source.write_bytes(fake_pdf(10_000))

        result = runner.invoke(cli, ["--mock", "compress", str(source)])

        assert result.exit_code == 1
        assert "not_smaller_policy" in result.output
        assert not (tmp_path / "report-compressed.pdf").exists()


class TestConfigCommands:
    """Tests for `presets` and `check-config`."""

    def test_presets(self, runner):
        result = runner.invoke(cli, ["presets"])

        assert result.exit_code == 0
        assert "/screen" in result.output
        assert "extreme, high, medium" in result.output

    def test_check_config_json(self, runner):
        result = runner.invoke(cli, ["--mock", "check-config", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["config"]["mock_codecs"] is True
        assert data["issues"] == []

    def test_check_config_errors_exit_nonzero(self, runner, monkeypatch):
        monkeypatch.setenv("PDFSHRINK_STRATEGY", "fastest")

        result = runner.invoke(cli, ["--mock", "check-config"])

        assert result.exit_code == 1
        assert "strategy" in result.output


class TestOpsCommands:
    """Tests for `health` and `sweep-scratch`."""

    def test_health_json(self, runner):
        result = runner.invoke(cli, ["--mock", "health", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "healthy"

    def test_health_invalid_config(self, runner, monkeypatch):
        monkeypatch.setenv("PDFSHRINK_DEFAULT_QUALITY", "ultra")

        result = runner.invoke(cli, ["--mock", "health"])

        assert result.exit_code == 1
        assert "default_tier" in result.output

    def test_sweep_scratch(self, runner, tmp_path):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        orphan = scratch / f"handler-{int(time.time() * 1000):013d}-{'a' * 32}.pdf"
        orphan.write_bytes(b"%PDF-")
        old = time.time() - 3600
        os.utime(orphan, (old, old))
        keep = scratch / "notes.txt"
        keep.write_text("not ours")

        result = runner.invoke(cli, ["sweep-scratch", "--max-age", "60"])

        assert result.exit_code == 0, result.output
        assert not orphan.exists()
        assert keep.exists()
