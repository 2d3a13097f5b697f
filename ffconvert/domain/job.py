"""
Defines the state model of a single conversion job.

A `ConversionJob` moves forward through a fixed lifecycle and never backwards:

    starting -> running -> completed
                        -> failed
                        -> cancel_requested -> cancelled
    starting -> failed

Transitions are compare-and-set operations guarded by the job's lock, so when two
threads race (FFmpeg exiting on its own while the user presses cancel) exactly one
of them wins and the other observes the new state and backs off. The job's final
outcome is published once through a `concurrent.futures.Future`.
"""
import collections
import threading
from concurrent.futures import Future
from datetime import datetime
from enum import Enum, unique
from pathlib import Path
from subprocess import Popen
from typing import Deque, List, Optional

from ..config.common import (
    ERROR_LOG_TAIL_LINES,
    JOB_STATUS_CANCEL_REQUESTED,
    JOB_STATUS_CANCELLED,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_IDLE,
    JOB_STATUS_RUNNING,
    JOB_STATUS_STARTING,
)
from .models import ConvertResult


@unique
class JobState(str, Enum):
    IDLE = JOB_STATUS_IDLE
    STARTING = JOB_STATUS_STARTING
    RUNNING = JOB_STATUS_RUNNING
    CANCEL_REQUESTED = JOB_STATUS_CANCEL_REQUESTED
    COMPLETED = JOB_STATUS_COMPLETED
    FAILED = JOB_STATUS_FAILED
    CANCELLED = JOB_STATUS_CANCELLED

    @property
    def is_live(self) -> bool:
        return self in (JobState.STARTING, JobState.RUNNING, JobState.CANCEL_REQUESTED)

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED)


_ALLOWED_TRANSITIONS = {
    JobState.STARTING: {JobState.RUNNING, JobState.FAILED},
    JobState.RUNNING: {JobState.COMPLETED, JobState.FAILED, JobState.CANCEL_REQUESTED},
    JobState.CANCEL_REQUESTED: {JobState.CANCELLED},
}


class ConversionJob:
    """
    One conversion attempt for one input file.

    Attributes:
        input_path (Path): The source video.
        output_path (Path): Where FFmpeg writes the converted file.
        executable (Path): The ffmpeg binary that runs the job.
        args (List[str]): The argument vector passed to the executable.
        state (JobState): Current lifecycle state.
        process (Optional[Popen]): The child process while it is owned by the job.
        exit_code (Optional[int]): The process exit code once it has been reaped.
        outcome (Future): Resolves to a `ConvertResult`, or fails with a
                          `ConverterException` subclass.
    """

    def __init__(self, input_path: Path, output_path: Path, executable: Path, args: List[str]):
        self.input_path = input_path
        self.output_path = output_path
        self.executable = executable
        self.args = list(args)
        self.state = JobState.STARTING
        self.process: Optional[Popen] = None
        self.exit_code: Optional[int] = None
        self.outcome: Future = Future()
        self.started_at = datetime.now()
        self.ended_at: Optional[datetime] = None
        # The last lines of output, kept for the error log.
        self.output_tail: Deque[str] = collections.deque(maxlen=ERROR_LOG_TAIL_LINES)
        self._lock = threading.Lock()

    def transition(self, expected: JobState, new_state: JobState) -> bool:
        """
        Moves the job from `expected` to `new_state` if it is still in `expected`.

        Returns:
            True if this call performed the transition, False if another thread got
            there first or the transition is not allowed.
        """
        with self._lock:
            if self.state is not expected or new_state not in _ALLOWED_TRANSITIONS.get(expected, ()):
                return False
            self.state = new_state
            if new_state.is_terminal:
                self.ended_at = datetime.now()
            return True

    @property
    def is_live(self) -> bool:
        return self.state.is_live

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    @property
    def command(self) -> List[str]:
        return [str(self.executable), *self.args]

    def result(self, timeout: Optional[float] = None) -> ConvertResult:
        """Blocks until the job resolves and returns its result, or raises its failure."""
        return self.outcome.result(timeout)

    def __repr__(self) -> str:
        return f"ConversionJob(input={self.input_path.name!r}, state={self.state.value}, pid={self.pid})"
