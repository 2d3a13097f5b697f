"""
Conversion presets and resolution templates.

These mirror the quick choices offered by the conversion form: a preset rewrites a
subset of the current options, a resolution template rewrites width and height.
Both are pure functions over `ConvertOptions`.
"""
from typing import Dict, Optional, Tuple

from ..domain.exceptions import InvalidOptionsException
from ..domain.models import ConvertOptions, FpsMode

PRESET_EDIT = "edit"
PRESET_SNS = "sns"
PRESET_CUSTOM = "custom"
PRESETS = (PRESET_EDIT, PRESET_SNS, PRESET_CUSTOM)

# Constant frame rate, AAC audio in an mp4 container: friendly to editing software.
EDIT_PRESET_CHANGES = {
    "fps_mode": FpsMode.FIXED.value,
    "audio_codec": "aac",
    "output_ext": "mp4",
}

# Small 480p file for sharing on social networks.
SNS_PRESET_CHANGES = {
    "width": 854,
    "height": 480,
    "crf": 28,
    "fps_mode": FpsMode.FIXED.value,
    "frame_rate": 30.0,
    "audio_codec": "aac",
    "output_ext": "mp4",
}

RESOLUTION_TEMPLATES: Dict[str, Tuple[int, int]] = {
    "480-landscape": (854, 480),
    "480-portrait": (480, 854),
    "720-landscape": (1280, 720),
    "720-portrait": (720, 1280),
    "1080-landscape": (1920, 1080),
    "1080-portrait": (1080, 1920),
}


def apply_preset(current: ConvertOptions, preset: str, defaults: Optional[ConvertOptions] = None) -> ConvertOptions:
    """
    Applies a named preset on top of the current options.

    Args:
        current: The options as currently edited.
        preset: One of 'edit', 'sns' or 'custom'.
        defaults: The probe-derived defaults; 'custom' restores these.

    Returns:
        A new `ConvertOptions`; `current` is left untouched.
    """
    if preset == PRESET_EDIT:
        return current.with_changes(**EDIT_PRESET_CHANGES)
    if preset == PRESET_SNS:
        return current.with_changes(**SNS_PRESET_CHANGES)
    if preset == PRESET_CUSTOM:
        return defaults if defaults is not None else current
    raise InvalidOptionsException(f"Unknown preset '{preset}'. Choose from: {', '.join(PRESETS)}", field="preset")


def apply_resolution_template(current: ConvertOptions, template: str) -> ConvertOptions:
    if template not in RESOLUTION_TEMPLATES:
        raise InvalidOptionsException(f"Unknown resolution template '{template}'", field="resolution")
    width, height = RESOLUTION_TEMPLATES[template]
    return current.with_changes(width=width, height=height)
