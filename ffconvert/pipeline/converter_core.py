"""
The ConverterCore is the single entry point that front ends talk to.

It wires the services together (resolver, probe, command builder, runner, progress
tracker and event channel) and exposes the converter's operations. Everything that
touches the network, the file system or a child process runs on a thread pool and
is returned as a `concurrent.futures.Future`; building a preview is pure and is
answered directly.

Typical use:

    core = ConverterCore()
    core.subscribe("convert-log", lambda e: print(e["message"]))
    probe = core.probe_video("clip.mov").result()
    options = probe.to_convert_options().with_changes(crf=28)
    result = core.run_convert("clip.mov", options).result()
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from loguru import logger

from ..config.common import (
    CANCEL_GRACE_SECONDS,
    DATA_DIR,
    EVENT_CONVERT_LOG,
    EVENT_CONVERT_PROGRESS,
    log_dir,
)
from ..domain.exceptions import ConverterBusyException, InputNotFoundException
from ..domain.job import ConversionJob
from ..domain.models import (
    CancelResult,
    ConvertOptions,
    ConvertPreview,
    ConvertResult,
    FfmpegReady,
    ProbeResult,
    ProgressEvent,
)
from ..services import command_builder
from ..services.binary_resolver import BinaryResolver
from ..services.conversion_runner import ConversionRunner
from ..services.event_channel import EventChannel
from ..services.logging_service import ErrorLog, SuccessLog
from ..services.probe_service import ProbeService
from ..services.progress_tracker import ProgressTracker
from ..utils.single_flight import SingleFlight

PathLike = Union[str, Path]

_ENSURE_READY_KEY = "ensure-ready"


def _relay(source: Future, target: Future):
    """Copies the outcome of one future onto another."""
    if source.cancelled():
        target.cancel()
        return
    error = source.exception()
    if error is not None:
        target.set_exception(error)
    else:
        target.set_result(source.result())


def _require_input(input_path: PathLike) -> Path:
    path = Path(input_path)
    if not path.is_file():
        raise InputNotFoundException(f"Input file does not exist: {path}")
    return path


class ConverterCore:
    """
    Facade over the acquisition, probing and conversion services.

    Args:
        data_dir: Root of managed storage. Defaults to the configured `DATA_DIR`.
        resolver: The BinaryResolver to use. Built from `data_dir` if omitted.
        probe_service: The ProbeService to use.
        runner: The ConversionRunner to use. It must publish to `events`.
        events: The channel on which `convert-log` and `convert-progress` are delivered.
        max_workers: Size of the thread pool that runs the asynchronous operations.
    """

    def __init__(
        self,
        data_dir: Optional[PathLike] = None,
        resolver: Optional[BinaryResolver] = None,
        probe_service: Optional[ProbeService] = None,
        runner: Optional[ConversionRunner] = None,
        events: Optional[EventChannel] = None,
        max_workers: int = 4,
    ):
        self.data_dir = Path(data_dir) if data_dir else DATA_DIR
        self.events = events or (runner.events if runner is not None else EventChannel())
        self.resolver = resolver or BinaryResolver(self.data_dir)
        self.probe_service = probe_service or ProbeService()
        if runner is None:
            logs = log_dir(self.data_dir)
            runner = ConversionRunner(
                self.events,
                cancel_grace_seconds=CANCEL_GRACE_SECONDS,
                error_log=ErrorLog(logs),
                success_log=SuccessLog(logs),
            )
        self.runner = runner

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ffconvert")
        self._single_flight = SingleFlight(self._executor)
        # Input durations from the latest probe of each file, used for progress.
        self._durations: Dict[Path, float] = {}
        self._durations_lock = threading.Lock()
        self.events.subscribe(EVENT_CONVERT_LOG, self._track_progress)

    # --- Operations ---

    def ensure_ffmpeg_ready(self) -> "Future[FfmpegReady]":
        """
        Makes sure a runnable FFmpeg is available.

        Concurrent calls share one resolution; no second download is started while
        one is in flight.
        """
        return self._single_flight.submit(_ENSURE_READY_KEY, self._ensure_ready)

    def probe_video(self, input_path: PathLike) -> "Future[ProbeResult]":
        """
        Reads the metadata of an input file.

        Concurrent probes of the same file share one ffprobe run. The reported
        duration is remembered and drives progress for later conversions of the file.
        """
        path = Path(input_path)
        return self._single_flight.submit(("probe", path.resolve()), self._probe, path)

    def preview_convert_command(self, input_path: PathLike, options: ConvertOptions) -> ConvertPreview:
        """
        Shows the exact FFmpeg arguments a conversion with these options would run.

        Raises:
            InvalidOptionsException: The options are invalid (ERR_OPTIONS).
        """
        return command_builder.build(Path(input_path), options)

    def run_convert(self, input_path: PathLike, options: ConvertOptions) -> "Future[ConvertResult]":
        """
        Converts one file.

        The input is checked, the command is built exactly as `preview_convert_command`
        builds it, FFmpeg is made ready and the job is started. The returned future
        resolves when the job ends: with a `ConvertResult` on success, or with the
        job's failure (ERR_CONVERT, ERR_CANCELLED, ERR_START) or any failure of the
        preparation steps (ERR_INPUT, ERR_OPTIONS, ERR_BUSY, resolver errors).
        """
        result: Future = Future()
        started = self._executor.submit(self._start_conversion, input_path, options)

        def _on_started(f: Future):
            if f.cancelled() or f.exception() is not None:
                _relay(f, result)
                return
            job: ConversionJob = f.result()
            job.outcome.add_done_callback(partial(_relay, target=result))

        started.add_done_callback(_on_started)
        return result

    def cancel_convert(self) -> CancelResult:
        """Requests cancellation of the running conversion, if there is one."""
        return self.runner.cancel()

    def subscribe(self, event: str, callback: Callable) -> Callable[[], None]:
        return self.events.subscribe(event, callback)

    def unsubscribe(self, event: str, callback: Callable) -> None:
        self.events.unsubscribe(event, callback)

    def shutdown(self, wait: bool = True, cancel_running: bool = True):
        """Stops the thread pool, cancelling the running conversion first if asked to."""
        if cancel_running and self.runner.active_job is not None:
            self.runner.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    # --- Workers ---

    def _ensure_ready(self) -> FfmpegReady:
        return self.resolver.ensure_ready().to_ready()

    def _probe(self, input_path: Path) -> ProbeResult:
        input_path = _require_input(input_path)
        handle = self.resolver.ensure_ready()
        result = self.probe_service.probe(handle, input_path)
        with self._durations_lock:
            self._durations[input_path.resolve()] = result.duration_sec
        return result

    def _start_conversion(self, input_path: PathLike, options: ConvertOptions) -> ConversionJob:
        input_path = _require_input(input_path)
        preview = command_builder.build(input_path, options)
        logger.debug(f"Prepared conversion of {input_path.name} -> {preview.output_path}")
        # Checked before acquisition so a busy runner never waits on a download.
        active = self.runner.active_job
        if active is not None:
            raise ConverterBusyException(f"A conversion is already running for {active.input_path.name}")
        handle = self.resolver.ensure_ready()
        return self.runner.start(handle.ffmpeg_path, preview, input_path)

    def _track_progress(self, payload: dict):
        job = self.runner.active_job
        if job is None:
            return
        with self._durations_lock:
            duration = self._durations.get(job.input_path.resolve(), 0.0)
        percent = ProgressTracker.on_log_line(payload.get("message", ""), duration)
        if percent is not None:
            self.events.publish(EVENT_CONVERT_PROGRESS, ProgressEvent(percent).to_dict())
