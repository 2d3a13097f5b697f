"""
This module provides classes for the persistent run logs kept in managed storage.

It separates logging concerns into specific classes for handling failed jobs
(ErrorLog) and finished conversions (SuccessLog). Success logs are written in a
machine-readable YAML format, while error logs are plain text holding the command
and the tail of FFmpeg's output for easy debugging. Both are independent of the
real-time console logging done with loguru.
"""

from pathlib import Path
from typing import Dict, List, Union

import yaml
from loguru import logger

from ..config.common import ERROR_LOG_FILE_NAME, SUCCESS_LOG_FILE_NAME


class Log:
    """
    A base class for all run log files.

    It handles the basic setup of the log directory, creating it if necessary.
    """

    # A decorative separator line used in text-based logs for better readability.
    linesep_marker: str = "=" * 50

    def __init__(self, log_dir: Path):
        self.log_file_path: Path  # To be defined by the subclass.
        self.log_dir: Path = log_dir.resolve()
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, log_content: Union[dict, list, str]):
        raise NotImplementedError("Subclasses must implement the write() method.")


class ErrorLog(Log):
    """
    Appends human-readable records of failed or cancelled jobs to a text file.

    Each record is followed by a separator line, making the file a chronological
    record of problems.
    """

    def __init__(self, log_dir: Path, filename: str = ERROR_LOG_FILE_NAME):
        super().__init__(log_dir)
        self.log_file_path = self.log_dir / filename

    def write(self, *error_messages: str):
        """
        Writes one or more message parts as a single record.

        Args:
            *error_messages: Pieces of the record, each written on its own line.
        """
        if not error_messages:
            return

        content_to_write = "\n".join(error_messages) + "\n" + self.linesep_marker + "\n"
        try:
            with self.log_file_path.open("a", encoding="utf-8") as f:
                f.write(content_to_write)
        except OSError as e:
            # Keep the record in the console log if the file cannot be written.
            logger.error(f"Failed to write to error log {self.log_file_path}: {e}")
            for msg in error_messages:
                logger.error(f"  - {msg}")


class SuccessLog(Log):
    """
    Keeps a YAML list with one entry per completed conversion.
    """

    def __init__(self, log_dir: Path, filename: str = SUCCESS_LOG_FILE_NAME):
        super().__init__(log_dir)
        self.log_file_path = self.log_dir / filename

    def _read_entries(self) -> List[Dict]:
        if not self.log_file_path.is_file():
            return []
        try:
            with self.log_file_path.open("r", encoding="utf-8") as f:
                loaded_entries = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error reading success log {self.log_file_path}: {e}. Starting a new log.")
            return []
        if loaded_entries is None:
            return []
        if not isinstance(loaded_entries, list):
            logger.warning(f"Success log {self.log_file_path} contained unexpected data. Starting a new log.")
            return []
        return loaded_entries

    def write(self, new_log_entry: dict):
        """
        Appends a structured entry, assigning it the next `index`.

        The whole list is rewritten so that the file always stays a valid YAML list.
        """
        if not isinstance(new_log_entry, dict):
            logger.error("SuccessLog.write expects a dictionary as a log entry.")
            return

        log_entries = self._read_entries()
        current_max_index = max(
            (entry.get("index", 0) for entry in log_entries if isinstance(entry, dict)),
            default=0,
        )
        log_entries.append({"index": current_max_index + 1, **new_log_entry})

        try:
            with self.log_file_path.open("w", encoding="utf-8") as f:
                yaml.dump(
                    log_entries,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True,
                    indent=4,
                    width=220,
                )
        except OSError as e:
            logger.error(f"Failed to write to success log {self.log_file_path}: {e}")
