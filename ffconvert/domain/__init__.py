"""
This package contains the core domain models of the converter.

The domain layer represents the fundamental concepts of the application: the FFmpeg
installation it runs, the media metadata it reads, the options a user picks, and the
lifecycle of a conversion job. It is independent of the service layer that talks to
the network, the filesystem and child processes.

Modules:
    exceptions.py: The closed set of typed errors, each with a stable `code` string
                   (`ERR_DOWNLOAD`, `ERR_HASH`, `ERR_START`, ...).
    models.py: Immutable value objects (`ExecutableHandle`, `ProbeResult`,
               `ConvertOptions`, response records and events).
    job.py: `ConversionJob` and its `JobState` lifecycle.
"""
