"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across the converter. It centralizes parameters for logging, managed storage,
networking and the conversion runner. It also handles the loading of user-specific
configuration from an external YAML file, allowing for easy customization without
modifying the source code.
"""
import os
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

# --- User-Defined Configuration ---
# This block loads user-specific settings from a 'config.user.yaml' file located
# at the project root. Every key is optional; anything missing keeps the default
# defined below.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = PROJECT_ROOT / "config.user.yaml"

# The root of the application's managed storage. Downloaded FFmpeg builds, their
# verification manifest and the run logs all live below this directory.
DATA_DIR: Path = Path(os.getenv("FFCONVERT_DATA_DIR", str(Path.home() / ".ffconvert")))

# Seconds to wait for the FFmpeg download server before treating it as unreachable.
NETWORK_TIMEOUT_SECONDS: float = 30.0

# Seconds between a polite terminate request and a hard kill when a conversion
# is cancelled and FFmpeg does not exit on its own.
CANCEL_GRACE_SECONDS: float = 5.0

# Optional overrides for the pinned acquisition policy (see config/acquisition.py).
ACQUISITION_OVERRIDES: dict = {}


def _load_user_config(config_path: Path) -> Optional[dict]:
    if not config_path.is_file():
        logger.debug(f"User config '{config_path}' not found. Using built-in defaults.")
        return None
    try:
        with config_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load or parse '{config_path}': {e}")
        return None


user_config = _load_user_config(USER_CONFIG_PATH)
if user_config:
    paths_config = user_config.get("paths") or {}
    network_config = user_config.get("network") or {}
    runner_config = user_config.get("runner") or {}

    if paths_config.get("data_dir"):
        DATA_DIR = Path(paths_config["data_dir"]).expanduser()
    if network_config.get("timeout_seconds"):
        NETWORK_TIMEOUT_SECONDS = float(network_config["timeout_seconds"])
    if runner_config.get("cancel_grace_seconds") is not None:
        CANCEL_GRACE_SECONDS = float(runner_config["cancel_grace_seconds"])
    ACQUISITION_OVERRIDES = user_config.get("acquisition") or {}


# --- Logging Configuration ---

# The format string for the Loguru logger. It defines the structure and appearance
# of log messages, including timestamp, level, module name, and the message itself.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - <level>{message}</level>"
)

# Directory for the rotating application log and the run logs written after each job.
LOG_DIR_NAME = "logs"
APP_LOG_FILE_NAME = "ffconvert.log"
APP_LOG_ROTATION = "5 MB"
ERROR_LOG_FILE_NAME = "error.txt"
SUCCESS_LOG_FILE_NAME = "success_log.yaml"

# How many trailing lines of FFmpeg output are kept with a failed job's error log entry.
ERROR_LOG_TAIL_LINES = 40


# --- Event Names ---
# Channels on which the core reports back to its caller.

EVENT_CONVERT_LOG = "convert-log"
EVENT_CONVERT_PROGRESS = "convert-progress"


# --- Job Status Constants ---
# The lifecycle of a conversion job. A job only ever moves forward through these
# states; see domain/job.py for the allowed transitions.

JOB_STATUS_IDLE = "idle"
JOB_STATUS_STARTING = "starting"
JOB_STATUS_RUNNING = "running"
JOB_STATUS_CANCEL_REQUESTED = "cancel_requested"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"
JOB_STATUS_CANCELLED = "cancelled"


def log_dir(data_dir: Path = None) -> Path:
    """Returns the directory that holds application and run logs."""
    return (data_dir or DATA_DIR) / LOG_DIR_NAME
