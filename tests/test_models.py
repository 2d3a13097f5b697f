import threading
from pathlib import Path

import pytest

from ffconvert.domain.exceptions import ConversionFailedException, ConverterException, HashMismatchException
from ffconvert.domain.job import ConversionJob, JobState
from ffconvert.domain.models import ConvertOptions, ExecutableHandle, Provenance


def make_job() -> ConversionJob:
    return ConversionJob(Path("clip.mov"), Path("clip_converted.mp4"), Path("ffmpeg"), ["-y"])


def test_job_moves_forward_only():
    job = make_job()

    assert job.state is JobState.STARTING
    assert job.transition(JobState.STARTING, JobState.RUNNING)
    assert job.transition(JobState.RUNNING, JobState.COMPLETED)
    assert job.ended_at is not None
    assert not job.transition(JobState.COMPLETED, JobState.RUNNING)
    assert not job.transition(JobState.RUNNING, JobState.CANCEL_REQUESTED)
    assert job.state is JobState.COMPLETED


def test_cancel_request_cannot_complete():
    job = make_job()
    job.transition(JobState.STARTING, JobState.RUNNING)
    job.transition(JobState.RUNNING, JobState.CANCEL_REQUESTED)

    assert not job.transition(JobState.CANCEL_REQUESTED, JobState.COMPLETED)
    assert job.transition(JobState.CANCEL_REQUESTED, JobState.CANCELLED)


def test_exactly_one_racing_transition_wins():
    """
    Verifies that when completion and cancellation race, only one of them takes effect.
    """
    for _ in range(50):
        job = make_job()
        job.transition(JobState.STARTING, JobState.RUNNING)
        barrier = threading.Barrier(2)
        outcomes = {}

        def attempt(name, new_state):
            barrier.wait()
            outcomes[name] = job.transition(JobState.RUNNING, new_state)

        threads = [
            threading.Thread(target=attempt, args=("complete", JobState.COMPLETED)),
            threading.Thread(target=attempt, args=("cancel", JobState.CANCEL_REQUESTED)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes.values()) == [False, True]


def test_job_states_classify():
    assert JobState.CANCEL_REQUESTED.is_live
    assert not JobState.CANCEL_REQUESTED.is_terminal
    assert JobState.CANCELLED.is_terminal
    assert not JobState.IDLE.is_live


def test_options_wire_format_round_trip(options):
    wire = options.to_dict()

    assert wire["videoBitrateK"] == 3000
    assert wire["audioFormat"] == "aac"
    assert ConvertOptions.from_dict(wire) == options


def test_options_accept_attribute_names(options):
    data = {"video_bitrate_k": 2000, **{k: v for k, v in options.to_dict().items() if k != "videoBitrateK"}}

    assert ConvertOptions.from_dict(data).video_bitrate_k == 2000


def test_options_missing_field():
    with pytest.raises(KeyError):
        ConvertOptions.from_dict({"width": 1280})


def test_handle_provenance():
    cached = ExecutableHandle(Path("ffmpeg"), Path("ffprobe"), "8.0.1", Provenance.CACHED)
    fallback = ExecutableHandle(Path("ffmpeg"), Path("ffprobe"), "6.1", Provenance.PATH_FALLBACK)

    assert cached.verified
    assert not fallback.verified


def test_error_codes_render_in_messages():
    assert str(ConversionFailedException(2)) == "ERR_CONVERT: ffmpeg failed: exit=2"
    assert ConversionFailedException(2).exit_code == 2
    assert isinstance(HashMismatchException("a", "b"), ConverterException)
    assert str(ConverterException()) == "ERR_UNKNOWN"
