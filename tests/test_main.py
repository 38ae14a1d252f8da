"""Tests for main.py CLI functionality."""

import argparse
import json
import logging
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from watermark_pipeline.core.models import Region, VideoRunResult, VideoState
from watermark_pipeline.main import main, parse_region
from watermark_pipeline.testing.fakes import write_test_image


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the engine's scratch and settings files into tmp_path."""
    monkeypatch.setenv("WATERMARK_SCRATCH_DIR", str(tmp_path / "scratch"))
    monkeypatch.setenv("WATERMARK_CREDENTIALS_PATH", str(tmp_path / "settings.json"))
    return tmp_path


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParseRegion:
    """Tests for the --region argument type."""

    def test_valid(self):
        """Test a well-formed region."""
        assert parse_region("10, 20,30,40") == Region(x=10, y=20, width=30, height=40)

    @pytest.mark.parametrize("value", ["1,2,3", "a,b,c,d", "-1,0,5,5", "1,2,3,4,5"])
    def test_invalid(self, value):
        """Test malformed regions."""
        with pytest.raises(argparse.ArgumentTypeError):
            parse_region(value)


class TestMainCLI:
    """Tests for the main CLI functionality."""

    def test_main_with_no_args_shows_help(self):
        """Test that running main without arguments shows help."""
        with patch("argparse.ArgumentParser.print_help") as mock_help:
            assert _run([]) == 1
            mock_help.assert_called_once()

    def test_main_version_command(self):
        """Test version command output."""
        with patch("builtins.print") as mock_print:
            assert _run(["version"]) == 0
            mock_print.assert_any_call("Watermark Pipeline CLI")
            mock_print.assert_any_call("Version 0.1.0")

    def test_image_command(self, cli_env):
        """Test removing a watermark from one image with OpenCV."""
        source = write_test_image(cli_env / "photo.png", 80, 60)
        output = cli_env / "out" / "clean.png"

        code = _run(["image", str(source), "--region", "60,45,20,15", "--output", str(output)])

        assert code == 0
        assert output.is_file()
        assert list((cli_env / "scratch").iterdir()) == []

    def test_image_command_lossless_jpeg(self, cli_env):
        """Test that the saved file takes the extension of the real output."""
        source = write_test_image(cli_env / "photo.jpg", 80, 60, "JPEG")

        code = _run(
            [
                "image", str(source), "--region", "0,0,10,10",
                "--output", str(cli_env / "clean.jpg"), "--lossless",
            ]
        )

        assert code == 0
        assert (cli_env / "clean.png").is_file()
        assert not (cli_env / "clean.jpg").exists()

    def test_image_command_missing_file(self, cli_env):
        """Test that errors give a non-zero exit code."""
        code = _run(
            [
                "image", str(cli_env / "missing.png"), "--region", "0,0,10,10",
                "--output", str(cli_env / "clean.png"),
            ]
        )
        assert code == 1

    def test_image_command_cloud_without_key(self, cli_env):
        """Test that cloud processing without a key fails cleanly."""
        source = write_test_image(cli_env / "photo.png")
        code = _run(
            [
                "image", str(source), "--region", "0,0,10,10",
                "--output", str(cli_env / "clean.png"), "--method", "cloud",
            ]
        )
        assert code == 1

    def test_batch_command(self, cli_env):
        """Test a batch with one failing file."""
        sources = [write_test_image(cli_env / f"{name}.png") for name in ("a", "b")]
        out_dir = cli_env / "out"

        code = _run(
            ["batch", *map(str, sources), str(cli_env / "missing.png"),
             "--region", "0,0,10,10", "--output-dir", str(out_dir)]
        )

        assert code == 1
        assert sorted(p.name for p in out_dir.iterdir()) == ["a.png", "b.png"]

    def test_batch_command_same_names(self, cli_env):
        """Test that files sharing a name from different folders are all kept."""
        (cli_env / "one").mkdir()
        (cli_env / "two").mkdir()
        first = write_test_image(cli_env / "one" / "photo.png")
        second = write_test_image(cli_env / "two" / "photo.png")
        out_dir = cli_env / "out"

        code = _run(
            ["batch", str(first), str(second),
             "--region", "0,0,10,10", "--output-dir", str(out_dir)]
        )

        assert code == 0
        names = sorted(p.name for p in out_dir.iterdir())
        assert len(names) == 2
        assert names[0] == "photo.png"
        assert names[1].startswith("photo_") and names[1].endswith(".png")

    def test_api_key_commands(self, cli_env):
        """Test storing, inspecting and clearing the key."""
        with patch("builtins.print") as mock_print:
            assert _run(["api-key", "set", "secret"]) == 0
            mock_print.assert_any_call("API key saved")
        settings = json.loads((cli_env / "settings.json").read_text())
        assert settings["gemini_api_key"] == "secret"

        with patch("builtins.print") as mock_print:
            assert _run(["api-key", "status"]) == 0
            mock_print.assert_any_call("API key configured")

        with patch("builtins.print") as mock_print:
            assert _run(["api-key", "clear"]) == 0
            assert _run(["api-key", "status"]) == 0
            mock_print.assert_any_call("API key not configured")

    def test_api_key_set_requires_key(self, cli_env):
        """Test 'set' without a value."""
        with patch("builtins.print"):
            assert _run(["api-key", "set"]) == 2

    def test_cleanup_command(self, cli_env):
        """Test that leftover scratch files are removed."""
        scratch = cli_env / "scratch"
        scratch.mkdir()
        (scratch / "processed_old.png").write_bytes(b"stale")

        with patch("builtins.print"):
            assert _run(["cleanup"]) == 0
        assert list(scratch.iterdir()) == []

    def test_debug_flag_lowers_every_pipeline_logger(self, cli_env, monkeypatch):
        """Test that --debug reaches engine and runner loggers, not only the CLI."""
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        with patch("builtins.print"):
            assert _run(["--debug", "api-key", "status"]) == 0

        assert os.environ["LOG_LEVEL"] == "DEBUG"
        for name in (
            "watermark-pipeline.cli",
            "watermark-pipeline.engine",
            "watermark-pipeline.video",
            "watermark-pipeline.video-io",
        ):
            assert logging.getLogger(name).level == logging.DEBUG


class TestVideoCommand:
    """Tests for the video subcommand against a mocked engine."""

    def _engine(self, job):
        engine = MagicMock()
        engine.__enter__.return_value = engine
        engine.start_video.return_value = job
        engine.save_output.side_effect = lambda src, dst: dst
        return engine

    def test_video_completed(self, tmp_path):
        """Test saving a completed video."""
        job = MagicMock()
        job.is_running = False
        job.wait.return_value = VideoState.COMPLETED
        job.result = VideoRunResult(
            output_path=str(tmp_path / "processed_video_1.mp4"),
            frames_processed=12,
            duration_seconds=1.0,
        )
        engine = self._engine(job)

        with patch("watermark_pipeline.main.EngineFactory.create_engine", return_value=engine):
            code = _run(
                ["video", str(tmp_path / "clip.mov"), "--region", "0,0,10,10",
                 "--output", str(tmp_path / "clean.mov")]
            )

        assert code == 0
        engine.save_output.assert_called_once_with(
            Path(job.result.output_path), tmp_path / "clean.mp4"
        )

    def test_video_cancelled_by_interrupt(self, tmp_path):
        """Test that Ctrl-C cancels the running job."""
        job = MagicMock()
        job.is_running = True
        job.wait.return_value = VideoState.CANCELLED
        engine = self._engine(job)
        engine.poll_video.side_effect = KeyboardInterrupt

        with patch("watermark_pipeline.main.EngineFactory.create_engine", return_value=engine):
            code = _run(
                ["video", str(tmp_path / "clip.mp4"), "--region", "0,0,10,10",
                 "--output", str(tmp_path / "clean.mp4"), "--poll-interval", "0"]
            )

        assert code == 130
        engine.cancel_video.assert_called_once()
        engine.save_output.assert_not_called()

    def test_video_failed(self, tmp_path):
        """Test a failed video run."""
        job = MagicMock()
        job.is_running = False
        job.wait.return_value = VideoState.FAILED
        job.error = RuntimeError("Frame 3: broken")
        engine = self._engine(job)

        with patch("watermark_pipeline.main.EngineFactory.create_engine", return_value=engine):
            code = _run(
                ["video", str(tmp_path / "clip.mp4"), "--region", "0,0,10,10",
                 "--output", str(tmp_path / "clean.mp4")]
            )

        assert code == 1
