import subprocess
from pathlib import Path

import pytest

from ffconvert.utils import ffmpeg_utils
from ffconvert.utils.ffmpeg_utils import read_version


@pytest.fixture
def fake_run_cmd(monkeypatch):
    """Replaces run_cmd; the test sets the completed process it returns."""
    calls = []
    behaviour = {"result": None}

    def _run_cmd(cmd_list, show_cmd=False, timeout=None):
        calls.append({"cmd": cmd_list, "show_cmd": show_cmd, "timeout": timeout})
        return behaviour["result"]

    monkeypatch.setattr(ffmpeg_utils, "run_cmd", _run_cmd)
    return calls, behaviour


def test_version_check_is_logged_and_parsed(fake_run_cmd):
    """
    Verifies that the version check announces the command it runs and reads the
    version token from the banner.
    """
    calls, behaviour = fake_run_cmd
    behaviour["result"] = subprocess.CompletedProcess(
        args=[], returncode=0, stdout="ffmpeg version 6.1.1-3ubuntu5 Copyright (c) 2000-2023\nbuilt with gcc\n"
    )

    version = read_version(Path("/usr/bin/ffmpeg"), timeout=3.0)

    assert version == "6.1.1-3ubuntu5"
    assert calls == [{"cmd": [str(Path("/usr/bin/ffmpeg")), "-version"], "show_cmd": True, "timeout": 3.0}]


def test_unrecognised_banner_is_external(fake_run_cmd):
    _, behaviour = fake_run_cmd
    behaviour["result"] = subprocess.CompletedProcess(args=[], returncode=0, stdout="some wrapper script\n")

    assert read_version(Path("ffmpeg")) == "external"


@pytest.mark.parametrize(
    "result",
    [None, subprocess.CompletedProcess(args=[], returncode=1, stdout="ffmpeg version 7.0\n")],
)
def test_executable_that_does_not_run_has_no_version(fake_run_cmd, result):
    _, behaviour = fake_run_cmd
    behaviour["result"] = result

    assert read_version(Path("ffmpeg")) is None
