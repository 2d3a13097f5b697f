"""
ffconvert: video conversion on top of a verified FFmpeg build.

The package is organised in layers:

- `config`: constants, the pinned FFmpeg acquisition policy, presets, and the
  optional `config.user.yaml` overrides.
- `domain`: value objects, the conversion job state model and the exception
  hierarchy with its stable error codes.
- `services`: the working parts (binary resolver, probe, command builder,
  conversion runner, progress tracker, event channel, run logs).
- `pipeline`: the `ConverterCore` facade that front ends call.

For example:

    from ffconvert.pipeline.converter_core import ConverterCore
"""
