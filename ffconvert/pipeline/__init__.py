"""
This package contains the converter's orchestration layer.

`ConverterCore` ties the services together: it schedules acquisition and probing on
a thread pool, makes concurrent identical requests share one result, hands prepared
commands to the conversion runner and derives progress from the runner's output.
"""
