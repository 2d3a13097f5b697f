"""
Configuration Package for the converter.

This package centralizes all the static configuration settings for the application.
By separating configuration from the application logic, it becomes easier to manage
and modify parameters without changing the core code.

This package includes settings for:
- Common application settings like logging formats, managed storage, event names and
  job statuses, with user overrides loaded from `config.user.yaml`.
- The pinned FFmpeg acquisition policy (download URL, version and SHA-256 digest).
- Conversion option defaults, presets and resolution templates.
"""
