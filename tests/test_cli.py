from pathlib import Path

import pytest

from ffconvert import cli
from ffconvert.domain.models import FfmpegReady


def test_flags_parse_into_options(options):
    args = cli.get_args(["convert", "clip.mov", "--crf", "30", "--fps-mode", "variable", "--ext", "mkv"])

    result = cli.build_options(args, options)

    assert args.input == Path("clip.mov")
    assert result.crf == 30
    assert result.fps_mode == "variable"
    assert result.output_ext == "mkv"
    assert result.width == options.width


def test_explicit_flags_override_preset_and_template(options):
    args = cli.get_args(["preview", "clip.mov", "--preset", "sns", "--resolution", "720-portrait", "--crf", "20"])

    result = cli.build_options(args, options)

    assert (result.width, result.height) == (720, 1280)
    assert result.crf == 20
    assert result.fps_mode == "fixed"


def test_no_flags_keep_defaults(options):
    args = cli.get_args(["preview", "clip.mov"])

    assert cli.build_options(args, options) == options


def test_subcommand_is_required():
    with pytest.raises(SystemExit):
        cli.get_args([])


def test_unverified_ffmpeg_is_announced(capsys):
    cli._report_ready(FfmpegReady(source="path-fallback", ffmpeg_path="/usr/bin/ffmpeg", version="6.1"))
    cli._report_ready(FfmpegReady(source="cached", ffmpeg_path="/data/ffmpeg", version="8.0.1"))

    err = capsys.readouterr().err
    assert err.count("WARNING: using unverified FFmpeg") == 1
    assert "/usr/bin/ffmpeg" in err
