"""
Tests for the clipqueue CLI.

Compression runs use a mocked driver/engine pair; the args command and
validation paths run for real.
"""

from unittest.mock import patch

import pytest

from clipqueue import cli
from clipqueue.deliver.engine_mapping import resolve_arguments


class TestArgsCommand:

    def test_prints_resolved_arguments(self, capsys):
        exit_code = cli.main(["args", "--size", "720p", "--quality", "30", "--speed", "fast"])

        assert exit_code == cli.EXIT_OK
        expected = resolve_arguments("720p", 30, "fast", "input.mov", "output.mp4")
        assert capsys.readouterr().out.strip() == " ".join(expected)

    def test_invalid_quality(self, capsys):
        assert cli.main(["args", "--quality", "99"]) == cli.EXIT_VALIDATION
        assert "Invalid compression settings" in capsys.readouterr().err

    def test_unknown_size_is_a_usage_error(self):
        with pytest.raises(SystemExit):
            cli.main(["args", "--size", "4k"])


class TestCompressValidation:

    def test_missing_file(self, tmp_path, capsys):
        exit_code = cli.main(["compress", str(tmp_path / "missing.mov")])
        assert exit_code == cli.EXIT_VALIDATION
        assert "not found" in capsys.readouterr().err

    def test_invalid_timeout(self, tmp_path):
        source = tmp_path / "clip.mov"
        source.write_bytes(b"data")
        assert cli.main(["compress", str(source), "--timeout", "-1"]) == cli.EXIT_VALIDATION

    def test_engine_unavailable(self, tmp_path, capsys):
        source = tmp_path / "clip.mov"
        source.write_bytes(b"data")
        exit_code = cli.main(["compress", str(source), "--ffmpeg", str(tmp_path / "no-ffmpeg")])

        assert exit_code == cli.EXIT_ENGINE
        assert "not available" in capsys.readouterr().err


class TestCompress:
    """Compression through the CLI with the scripted engine."""

    def _run(self, engine, argv):
        with patch.object(cli, "FFmpegEngine", return_value=engine):
            return cli.main(argv)

    def test_outputs_written_next_to_sources(self, tmp_path, engine, capsys):
        a = tmp_path / "a.mov"
        b = tmp_path / "b.mp4"
        a.write_bytes(b"AAA")
        b.write_bytes(b"BBB")

        exit_code = self._run(engine, ["compress", str(a), str(b)])

        assert exit_code == cli.EXIT_OK
        assert (tmp_path / "a-compressed.mp4").read_bytes() == b"AAA-compressed"
        assert (tmp_path / "b-compressed.mp4").read_bytes() == b"BBB-compressed"
        out = capsys.readouterr().out
        assert "Done: 2  Failed: 0  Not processed: 0" in out

    def test_output_dir_and_settings(self, tmp_path, engine):
        source = tmp_path / "clip.mov"
        source.write_bytes(b"data")
        out_dir = tmp_path / "out"

        exit_code = self._run(engine, [
            "compress", str(source),
            "--output-dir", str(out_dir),
            "--size", "480p",
            "--quality", "35",
        ])

        assert exit_code == cli.EXIT_OK
        assert (out_dir / "clip-compressed.mp4").is_file()
        (arguments,) = engine.executions
        assert "-vf" in arguments
        assert arguments[arguments.index("-crf") + 1] == "35"

    def test_failure_exit_code(self, tmp_path, engine, capsys):
        from clipqueue.execution.base import EngineExecutionError

        engine.script(error=EngineExecutionError("Scripted", "corrupt input", exit_code=1))
        a = tmp_path / "a.mov"
        b = tmp_path / "b.mov"
        a.write_bytes(b"A")
        b.write_bytes(b"B")

        exit_code = self._run(engine, ["compress", str(a), str(b)])

        assert exit_code == cli.EXIT_FAILED
        assert not (tmp_path / "a-compressed.mp4").exists()
        assert (tmp_path / "b-compressed.mp4").exists()
        out = capsys.readouterr().out
        assert "corrupt input" in out
        assert "Done: 1  Failed: 1" in out

    def test_progress_reported_on_stderr(self, tmp_path, engine, capsys):
        engine.script(progress=[0.5, 1.0])
        source = tmp_path / "clip.mov"
        source.write_bytes(b"data")

        self._run(engine, ["compress", str(source)])

        err = capsys.readouterr().err
        assert "[  0%] clip.mov" in err
        assert "[ 50%] clip.mov" in err
        assert "[100%] clip.mov" in err

    def test_interrupt_pauses_after_current_file(self, tmp_path, engine, capsys):
        """Ctrl-C lets the running file finish and leaves the rest queued."""
        step = engine.script(gated=True)
        a = tmp_path / "a.mov"
        b = tmp_path / "b.mov"
        a.write_bytes(b"A")
        b.write_bytes(b"B")

        real_wait = cli.JobDriver.wait_for_idle
        calls = []

        def interrupted_wait(driver, timeout=None):
            calls.append(timeout)
            if len(calls) == 1:
                assert step.started.wait(5.0)
                raise KeyboardInterrupt
            step.release()
            return real_wait(driver, timeout)

        with patch.object(cli.JobDriver, "wait_for_idle", interrupted_wait):
            exit_code = self._run(engine, ["compress", str(a), str(b)])

        assert exit_code == cli.EXIT_FAILED
        assert len(calls) == 2
        assert (tmp_path / "a-compressed.mp4").exists()
        assert not (tmp_path / "b-compressed.mp4").exists()
        captured = capsys.readouterr()
        assert "Pausing" in captured.err
        assert "- b.mov: queued" in captured.out
        assert "Done: 1  Failed: 0  Not processed: 1" in captured.out
