"""
This module launches and supervises the FFmpeg process of a conversion job.

The runner owns a single job slot: at most one conversion is live at any time. Each
job gets a reader thread that drains FFmpeg's merged stdout/stderr, forwards every
line to the event channel, reaps the process and settles the job's outcome. The
outcome of a job is decided by compare-and-set transitions on the job itself, so a
natural exit racing with a user's cancel request resolves to exactly one result.
"""
import itertools
import platform
import subprocess
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from ..config.common import CANCEL_GRACE_SECONDS, EVENT_CONVERT_LOG
from ..domain.exceptions import (
    ConversionCancelledException,
    ConversionFailedException,
    ConverterBusyException,
    ConverterException,
    ProcessStartException,
)
from ..domain.job import ConversionJob, JobState
from ..domain.models import CancelResult, ConvertPreview, ConvertResult, LogEvent
from ..utils.ffmpeg_utils import display_command
from ..utils.format_utils import format_timedelta, formatted_size
from .event_channel import EventChannel
from .logging_service import ErrorLog, SuccessLog


def _own_process_group() -> dict:
    # Keeps a terminal's Ctrl+C away from FFmpeg; stopping it is the runner's job.
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


class ConversionRunner:
    """
    Runs one FFmpeg conversion at a time and reports on it through an EventChannel.

    Attributes:
        events (EventChannel): Receives a `convert-log` event for every output line.
        cancel_grace_seconds (float): How long a cancelled process may take to exit
                                      after the terminate request before it is killed.
    """

    def __init__(
        self,
        events: EventChannel,
        cancel_grace_seconds: float = CANCEL_GRACE_SECONDS,
        error_log: Optional[ErrorLog] = None,
        success_log: Optional[SuccessLog] = None,
    ):
        self.events = events
        self.cancel_grace_seconds = cancel_grace_seconds
        self.error_log = error_log
        self.success_log = success_log
        self._job: Optional[ConversionJob] = None
        self._slot_lock = threading.Lock()
        self._kill_timer: Optional[threading.Timer] = None
        self._sequence = itertools.count(1)

    @property
    def active_job(self) -> Optional[ConversionJob]:
        """The live job, or None when the runner is idle."""
        with self._slot_lock:
            if self._job is not None and self._job.is_live:
                return self._job
            return None

    def start(self, executable: Path, preview: ConvertPreview, input_path: Path) -> ConversionJob:
        """
        Spawns FFmpeg for a prepared command.

        The returned job's `outcome` future resolves to a `ConvertResult`, or fails
        with `ProcessStartException`, `ConversionFailedException` or
        `ConversionCancelledException`.

        Raises:
            ConverterBusyException: Another job is still live. Nothing is spawned.
        """
        with self._slot_lock:
            if self._job is not None and self._job.is_live:
                raise ConverterBusyException(
                    f"A conversion is already running for {self._job.input_path.name}"
                )
            job = ConversionJob(Path(input_path), preview.output_path, Path(executable), preview.args)
            self._job = job

        self._emit(f"Starting ffmpeg: {display_command(job.command)}")
        logger.info(f"Converting {job.input_path.name} -> {job.output_path.name}")
        try:
            process = subprocess.Popen(
                job.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                **_own_process_group(),
            )
        except (OSError, ValueError) as e:
            logger.error(f"Could not launch {job.executable}: {e}")
            job.transition(JobState.STARTING, JobState.FAILED)
            self._settle(job, ProcessStartException(f"Failed to start ffmpeg: {e}"))
            return job

        job.process = process
        job.transition(JobState.STARTING, JobState.RUNNING)
        logger.debug(f"ffmpeg started with pid {process.pid}")

        reader = threading.Thread(
            target=self._drain_output,
            args=(job,),
            name=f"ffmpeg-reader-{process.pid}",
            daemon=True,
        )
        reader.start()
        return job

    def cancel(self) -> CancelResult:
        """
        Asks the running FFmpeg process to stop.

        The process receives a terminate request right away and is killed if it is
        still alive after `cancel_grace_seconds`. The job itself is settled by its
        reader thread once the process is gone.

        Returns:
            `CancelResult(requested=True)` if a running job was asked to stop, or
            `CancelResult(requested=False)` if there was nothing to cancel.
        """
        with self._slot_lock:
            job = self._job
        if job is None or not job.transition(JobState.RUNNING, JobState.CANCEL_REQUESTED):
            logger.debug("Cancel requested but no conversion is running.")
            return CancelResult(requested=False)

        self._emit("Cancel requested, stopping ffmpeg...")
        logger.info(f"Cancelling conversion of {job.input_path.name} (pid {job.pid})")
        try:
            job.process.terminate()
        except OSError as e:
            # The process exited between the transition and the signal.
            logger.debug(f"terminate() on pid {job.pid} failed: {e}")

        timer = threading.Timer(self.cancel_grace_seconds, self._force_kill, args=(job,))
        timer.daemon = True
        with self._slot_lock:
            self._kill_timer = timer
        timer.start()
        return CancelResult(requested=True)

    def _force_kill(self, job: ConversionJob):
        if job.process is None or job.process.poll() is not None:
            return
        logger.warning(
            f"ffmpeg (pid {job.pid}) did not exit within {self.cancel_grace_seconds}s of the cancel request; killing it."
        )
        try:
            job.process.kill()
        except OSError as e:
            logger.debug(f"kill() on pid {job.pid} failed: {e}")

    def _drain_output(self, job: ConversionJob):
        process = job.process
        try:
            # Universal newlines turn FFmpeg's carriage-return progress updates into lines.
            for raw_line in process.stdout:
                line = raw_line.strip()
                if line:
                    job.output_tail.append(line)
                    self._emit(line)
        finally:
            process.stdout.close()

        exit_code = process.wait()
        job.exit_code = exit_code

        if exit_code == 0 and job.transition(JobState.RUNNING, JobState.COMPLETED):
            self._settle(job, None)
        elif exit_code != 0 and job.transition(JobState.RUNNING, JobState.FAILED):
            self._settle(job, ConversionFailedException(exit_code))
        else:
            # A cancel request won the race; its outcome stands whatever the exit code.
            job.transition(JobState.CANCEL_REQUESTED, JobState.CANCELLED)
            self._settle(job, ConversionCancelledException(f"Conversion cancelled (exit={exit_code})"))

    def _settle(self, job: ConversionJob, error: Optional[ConverterException]):
        """
        Finishes a job that has reached a terminal state.

        The summary line and run logs are written and the slot is released before
        the outcome future resolves, so a caller woken by the future can start the
        next conversion immediately.
        """
        with self._slot_lock:
            timer, self._kill_timer = self._kill_timer, None
        if timer is not None:
            timer.cancel()

        if error is None:
            self._emit(f"ffmpeg finished: exit={job.exit_code}")
            logger.success(f"Conversion finished: {job.output_path}")
            self._write_success_log(job)
        else:
            self._emit(str(error))
            if job.state is JobState.CANCELLED:
                logger.warning(f"Conversion of {job.input_path.name} was cancelled.")
            else:
                logger.error(f"Conversion of {job.input_path.name} failed: {error}")
            self._write_error_log(job, error)

        with self._slot_lock:
            if self._job is job:
                self._job = None

        if error is None:
            job.outcome.set_result(ConvertResult(output_path=job.output_path, exit_code=job.exit_code))
        else:
            job.outcome.set_exception(error)

    def _emit(self, message: str):
        event = LogEvent(message=message, sequence=next(self._sequence))
        logger.trace(f"[{event.sequence}] {event.message}")
        self.events.publish(EVENT_CONVERT_LOG, event.to_dict())

    def _write_error_log(self, job: ConversionJob, error: ConverterException):
        if self.error_log is None:
            return
        self.error_log.write(
            f"Date: {datetime.now().strftime('%Y%m%d_%H:%M:%S')}",
            f"Input file: {job.input_path}",
            f"Command: {display_command(job.command)}",
            f"Result: {error}",
            "Output (last lines):",
            *job.output_tail,
        )

    def _write_success_log(self, job: ConversionJob):
        if self.success_log is None:
            return
        try:
            output_size = job.output_path.stat().st_size
        except OSError:
            output_size = 0
        try:
            input_size = job.input_path.stat().st_size
        except OSError:
            input_size = 0
        ended_at = job.ended_at or datetime.now()

        self.success_log.write(
            {
                "input_file": str(job.input_path),
                "output_file": str(job.output_path),
                "command": display_command(job.command),
                "exit_code": job.exit_code,
                "elapsed_time_formatted": format_timedelta(ended_at - job.started_at),
                "original_size_bytes": input_size,
                "original_size_formatted": formatted_size(input_size),
                "output_size_bytes": output_size,
                "output_size_formatted": formatted_size(output_size),
                "size_ratio_percent": round(output_size / input_size * 100, 2) if input_size > 0 else "N/A",
                "ended_datetime": ended_at.strftime("%Y%m%d_%H:%M:%S"),
                "platform_info": platform.platform(),
            }
        )
