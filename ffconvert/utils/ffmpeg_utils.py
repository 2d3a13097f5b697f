"""
This module provides utility functions related to FFmpeg and other external tools.
It includes a wrapper for running short-lived command-line processes and helpers for
locating FFmpeg on the system PATH and reading its version.
"""

import os
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from loguru import logger

# Matches the version token on the first line of `ffmpeg -version`,
# e.g. "ffmpeg version 6.1.1-3ubuntu5 Copyright (c) 2000-2023 the FFmpeg developers".
_VERSION_PATTERN = re.compile(r"^\S+\s+version\s+(\S+)", re.IGNORECASE)


def display_command(cmd_list: Sequence[Union[str, Path]]) -> str:
    """
    Renders a command list as a single, correctly quoted string for logs.

    Uses Windows quoting rules on Windows and POSIX shell quoting elsewhere.
    """
    parts = [str(p) for p in cmd_list]
    if os.name == "nt":
        return subprocess.list2cmdline(parts)
    return shlex.join(parts)


def run_cmd(
    cmd_list: List[str],
    show_cmd: bool = False,
    timeout: Optional[float] = None,
) -> Optional[subprocess.CompletedProcess]:
    """
    Executes an external command and captures its output.

    This is a wrapper around Python's `subprocess.run` for short commands whose
    output is needed in full (version checks and the like). Long-running
    conversions go through the conversion runner instead.

    Args:
        cmd_list: The command to execute as a list of arguments.
        show_cmd: If True, the command will be logged at the DEBUG level before execution.
        timeout: Seconds to wait before giving up on the command.

    Returns:
        A `subprocess.CompletedProcess` object containing the return code, stdout and
        stderr. Returns `None` if the command could not be started or timed out.
    """
    if not cmd_list:
        logger.error("run_cmd received an empty command list.")
        return None

    display_cmd_str = display_command(cmd_list)
    if show_cmd:
        logger.debug(f"Executing command: {display_cmd_str}")

    try:
        result = subprocess.run(
            [str(c) for c in cmd_list],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            shell=False,
        )
    except FileNotFoundError:
        logger.debug(f"Command not found: '{cmd_list[0]}'")
        return None
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {display_cmd_str}")
        return None
    except OSError as e:
        logger.error(f"Could not execute '{display_cmd_str}': {e}")
        return None

    # Distinguish between error output and informational noise on stderr.
    if result.stderr and result.returncode != 0:
        logger.debug(f"Command stderr (error, rc={result.returncode}): {result.stderr}")
    elif result.stderr:
        logger.trace(f"Command stderr (non-error, rc={result.returncode}): {result.stderr}")
    return result


def find_on_path(tool: str) -> Optional[Path]:
    """
    Looks for an executable on the system PATH.

    Returns:
        The absolute path of the executable, or None if it is not installed.
    """
    found = shutil.which(tool)
    return Path(found) if found else None


def read_version(executable: Path, timeout: float = 15.0) -> Optional[str]:
    """
    Runs `<executable> -version` and extracts the version token from the first line.

    Returns:
        The version string, "external" if the tool ran but its banner was not
        recognised, or None if the executable does not run successfully.
    """
    result = run_cmd([str(executable), "-version"], show_cmd=True, timeout=timeout)
    if result is None or result.returncode != 0:
        return None

    first_line = result.stdout.splitlines()[0] if result.stdout else ""
    logger.debug(f"{executable} -version: {first_line}")
    match = _VERSION_PATTERN.match(first_line.strip())
    return match.group(1) if match else "external"
