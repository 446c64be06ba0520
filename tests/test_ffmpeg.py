"""Tests for ffmpeg subprocess wrappers and FFMETADATA rendering."""

import subprocess
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from m4bify.config import PipelineConfig
from m4bify.errors import ExternalToolError
from m4bify.ffmpeg import (
    _run_ffmpeg,
    attach_cover,
    concat,
    encode,
    escape_concat_path,
    render_ffmetadata,
    write_concat_list,
    write_tags,
)
from m4bify.models import Quality, QualityKind
from m4bify.toolkit import FFmpegToolkit


def _ok(stdout: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


def _fail(stderr: str, returncode: int = 1) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)


class TestRunFfmpeg:
    @patch("m4bify.ffmpeg.subprocess.run")
    def test_common_flags(self, mock_run):
        mock_run.return_value = _ok()
        _run_ffmpeg(["-i", "in.mp3", "out.m4a"], "/opt/ffmpeg")
        cmd = mock_run.call_args.args[0]
        assert cmd[:4] == ["/opt/ffmpeg", "-hide_banner", "-nostdin", "-y"]
        assert cmd[-1] == "out.m4a"

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_nonzero_exit_raises(self, mock_run):
        mock_run.return_value = _fail("Invalid data found when processing input")
        with pytest.raises(ExternalToolError) as exc_info:
            _run_ffmpeg(["-i", "bad.mp3", "out.m4a"])
        assert exc_info.value.exit_code == 1
        assert "Invalid data" in exc_info.value.stderr

    @patch("m4bify.ffmpeg.subprocess.run", side_effect=FileNotFoundError("ffmpeg"))
    def test_missing_binary(self, mock_run):
        with pytest.raises(ExternalToolError) as exc_info:
            _run_ffmpeg(["-version"])
        assert exc_info.value.exit_code == 127

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_stderr_truncated(self, mock_run):
        mock_run.return_value = _fail("x" * 2000)
        with pytest.raises(ExternalToolError) as exc_info:
            _run_ffmpeg([])
        assert len(exc_info.value.stderr) == 500


class TestEncode:
    @patch("m4bify.ffmpeg.subprocess.run")
    def test_audio_only_with_normalized_params(self, mock_run):
        mock_run.return_value = _ok()
        encode(
            Path("/src/01.mp3"), Path("/tmp/seg.m4a"),
            ["-c:a", "aac", "-b:a", "96k"], sample_rate=44100, channels=2,
        )
        cmd = mock_run.call_args.args[0]
        assert cmd[cmd.index("-map") + 1] == "0:a:0"
        assert "-vn" in cmd
        assert cmd[cmd.index("-b:a") + 1] == "96k"
        assert cmd[cmd.index("-ar") + 1] == "44100"
        assert cmd[cmd.index("-ac") + 1] == "2"
        assert cmd[-1] == "/tmp/seg.m4a"

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_source_params_kept_without_rate(self, mock_run):
        mock_run.return_value = _ok()
        encode(Path("/src/01.flac"), Path("/tmp/seg.m4a"), ["-c:a", "alac"])
        cmd = mock_run.call_args.args[0]
        assert "-ar" not in cmd
        assert "-ac" not in cmd


class TestToolkitEncode:
    def _encode(self, mock_run, quality, **config_kwargs):
        mock_run.return_value = _ok()
        config = PipelineConfig(_env_file=None, encoder="aac", **config_kwargs)
        with patch("m4bify.ffprobe.get_duration", return_value=Decimal("12.5")):
            duration = FFmpegToolkit(config).encode(
                Path("/src/01.flac"), Path("/tmp/seg.m4a"), quality
            )
        assert duration == Decimal("12.5")
        return mock_run.call_args.args[0]

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_lossless_keeps_source_rate_and_layout(self, mock_run):
        cmd = self._encode(mock_run, Quality(QualityKind.LOSSLESS))
        assert cmd[cmd.index("-c:a") + 1] == "alac"
        assert "-ar" not in cmd
        assert "-ac" not in cmd

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_lossless_normalization_opt_in(self, mock_run):
        cmd = self._encode(
            mock_run, Quality(QualityKind.LOSSLESS), normalize_lossless=True, sample_rate=48000
        )
        assert cmd[cmd.index("-ar") + 1] == "48000"
        assert cmd[cmd.index("-ac") + 1] == "2"

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_lossy_normalized(self, mock_run):
        cmd = self._encode(mock_run, Quality(QualityKind.FIXED, "96k"))
        assert cmd[cmd.index("-ar") + 1] == "44100"
        assert cmd[cmd.index("-ac") + 1] == "2"


class TestConcatList:
    def test_plain_path(self):
        assert escape_concat_path(Path("/tmp/a.m4a")) == "file '/tmp/a.m4a'"

    def test_quote_in_path(self):
        assert escape_concat_path(Path("/tmp/it's.m4a")) == "file '/tmp/it'\\''s.m4a'"

    def test_write_list_preserves_order(self, tmp_path):
        list_file = tmp_path / "list.txt"
        write_concat_list([Path("/s/b.m4a"), Path("/s/a.m4a")], list_file)
        assert list_file.read_text() == "file '/s/b.m4a'\nfile '/s/a.m4a'\n"

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_concat_stream_copy(self, mock_run):
        mock_run.return_value = _ok()
        concat(Path("/tmp/list.txt"), Path("/tmp/final.m4a"))
        cmd = mock_run.call_args.args[0]
        assert cmd[cmd.index("-f") + 1] == "concat"
        assert cmd[cmd.index("-c") + 1] == "copy"
        assert "-safe" in cmd


class TestRenderFfmetadata:
    def test_header_and_chapters(self):
        text = render_ffmetadata(
            [(Decimal("0"), "One"), (Decimal("10.5"), "Two")],
            Decimal("30"),
        )
        lines = text.splitlines()
        assert lines[0] == ";FFMETADATA1"
        assert text.count("[CHAPTER]") == 2
        assert "START=0\nEND=10500\ntitle=One" in text
        assert "START=10500\nEND=30000\ntitle=Two" in text

    def test_timebase(self):
        text = render_ffmetadata([(Decimal("0"), "Only")], Decimal("1"))
        assert "TIMEBASE=1/1000" in text

    def test_escapes_special_characters(self):
        text = render_ffmetadata([(Decimal("0"), "A=B; #1 \\ end")], Decimal("1"))
        assert "title=A\\=B\\; \\#1 \\\\ end" in text

    def test_zero_length_chapter(self):
        text = render_ffmetadata(
            [(Decimal("0"), "Empty"), (Decimal("0"), "Full")],
            Decimal("5"),
        )
        assert "START=0\nEND=0\ntitle=Empty" in text

    def test_rounds_to_milliseconds(self):
        text = render_ffmetadata(
            [(Decimal("0"), "a"), (Decimal("1.0005"), "b")], Decimal("2"),
        )
        assert "START=1001" in text


class TestRemuxEdits:
    @patch("m4bify.ffmpeg.subprocess.run")
    def test_write_tags_replaces_file(self, mock_run, tmp_path):
        target = tmp_path / "final.m4a"
        target.write_text("old")

        def fake_run(cmd, **kwargs):
            Path(cmd[-1]).write_text("new")
            return _ok()

        mock_run.side_effect = fake_run
        write_tags(target, {"title": "Book", "artist": "Author"})

        cmd = mock_run.call_args.args[0]
        assert "title=Book" in cmd
        assert "artist=Author" in cmd
        assert cmd[cmd.index("-f") + 1] == "ipod"
        assert cmd[cmd.index("-map_chapters") + 1] == "0"
        assert target.read_text() == "new"
        assert not (tmp_path / "final.m4a.tmp").exists()

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_failed_edit_keeps_original(self, mock_run, tmp_path):
        target = tmp_path / "final.m4a"
        target.write_text("original")

        def fake_run(cmd, **kwargs):
            Path(cmd[-1]).write_text("partial")
            return _fail("disk full")

        mock_run.side_effect = fake_run
        with pytest.raises(ExternalToolError):
            write_tags(target, {"title": "Book"})
        assert target.read_text() == "original"
        assert not (tmp_path / "final.m4a.tmp").exists()

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_attach_cover_copies_jpeg(self, mock_run, tmp_path):
        target = tmp_path / "final.m4a"
        target.write_text("audio")
        mock_run.side_effect = lambda cmd, **kw: (Path(cmd[-1]).write_text("x"), _ok())[1]
        attach_cover(target, tmp_path / "cover.jpg")
        cmd = mock_run.call_args.args[0]
        assert cmd[cmd.index("-c:v") + 1] == "copy"
        assert cmd[cmd.index("-disposition:v:0") + 1] == "attached_pic"

    @patch("m4bify.ffmpeg.subprocess.run")
    def test_attach_cover_converts_webp(self, mock_run, tmp_path):
        target = tmp_path / "final.m4a"
        target.write_text("audio")
        mock_run.side_effect = lambda cmd, **kw: (Path(cmd[-1]).write_text("x"), _ok())[1]
        attach_cover(target, tmp_path / "cover.webp")
        cmd = mock_run.call_args.args[0]
        assert cmd[cmd.index("-c:v") + 1] == "mjpeg"
